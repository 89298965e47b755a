"""
Session Store for Resume

Persists the single saved session snapshot so a restarted process can pick
the learning session back up. Uses a local JSON file when a path is given,
otherwise an in-memory slot.
"""

import json
import logging
import os
import tempfile
from typing import Optional

from study_companion.errors import PersistenceError
from study_companion.session_state import SavedSessionSnapshot

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Holds at most one SavedSessionSnapshot.

    The controller is the only writer: it reads once at startup, overwrites
    the snapshot on every mutation while learning, and deletes it on reset.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize SessionStore.

        Args:
            path: JSON file to persist to (optional, in-memory when omitted)
        """
        self.path = path
        self.use_file = path is not None

        # Raw stored form, mirrors what would be on disk
        self._in_memory_snapshot: Optional[str] = None

    def has_snapshot(self) -> bool:
        """Check whether a snapshot is stored, without parsing it."""
        if not self.use_file:
            return self._in_memory_snapshot is not None
        return os.path.exists(self.path)

    def get(self) -> Optional[SavedSessionSnapshot]:
        """
        Load the saved snapshot.

        Returns:
            SavedSessionSnapshot, or None if nothing is stored

        Raises:
            PersistenceError: if the stored snapshot cannot be read or parsed
        """
        raw = self._read_raw()
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Saved session is not valid JSON: {e}") from e

        snapshot = SavedSessionSnapshot.from_dict(data)
        logger.info(f"📂 [SessionStore] Loaded saved session {snapshot.session.session_id} "
                    f"({len(snapshot.chat_messages)} messages)")
        return snapshot

    def put(self, snapshot: SavedSessionSnapshot) -> None:
        """
        Overwrite the saved snapshot.

        Raises:
            PersistenceError: if the snapshot cannot be written
        """
        try:
            raw = json.dumps(snapshot.to_dict())
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Could not serialize session: {e}") from e

        if not self.use_file:
            self._in_memory_snapshot = raw
            return

        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            # Write beside the target then swap, so readers never see half a file
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".session-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(raw)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not save session to {self.path}: {e}") from e

    def delete(self) -> None:
        """Remove the saved snapshot if there is one."""
        if not self.use_file:
            self._in_memory_snapshot = None
            return

        try:
            os.remove(self.path)
            logger.info(f"🗑️ [SessionStore] Removed saved session at {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Could not remove saved session at {self.path}: {e}") from e

    def _read_raw(self) -> Optional[str]:
        if not self.use_file:
            return self._in_memory_snapshot

        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                return handle.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read saved session at {self.path}: {e}") from e
