"""Study companion: session state machine, persistence and generation client"""

from .learning_style import LearningStyle, DEFAULT_LEARNING_STYLE
from .errors import GenerationError, InvariantViolation, PersistenceError, ValidationError
from .session_state import ActiveTab, AppState, SavedSessionSnapshot
from .session_store import SessionStore
from .session_controller import SessionController

__all__ = [
    "LearningStyle",
    "DEFAULT_LEARNING_STYLE",
    "GenerationError",
    "InvariantViolation",
    "PersistenceError",
    "ValidationError",
    "ActiveTab",
    "AppState",
    "SavedSessionSnapshot",
    "SessionStore",
    "SessionController",
]
