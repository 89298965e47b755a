"""
Session State Data Model

Dataclasses for a learning session, its chat transcript and generated
artifacts, the saved-session snapshot, and the screens the controller moves
between.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from study_companion.errors import InvariantViolation, PersistenceError
from study_companion.learning_style import LearningStyle

SNAPSHOT_VERSION = 1

GREETING_MESSAGE = (
    "Hello! I've reviewed your material. Here's a quick summary and some "
    "questions to get us started. Feel free to ask me anything!"
)


def new_id() -> str:
    return uuid.uuid4().hex


# ==================== Session data ====================

@dataclass(frozen=True)
class Session:
    """One learning engagement over a single piece of content."""
    original_content: str
    summary: str
    outline: Tuple[str, ...]
    key_questions: Tuple[str, ...]
    session_id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "original_content": self.original_content,
            "summary": self.summary,
            "outline": list(self.outline),
            "key_questions": list(self.key_questions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            session_id=_require_str(data, "session_id"),
            original_content=_require_str(data, "original_content"),
            summary=_require_str(data, "summary"),
            outline=tuple(_require_str_list(data, "outline")),
            key_questions=tuple(_require_str_list(data, "key_questions")),
        )


class ChatSender(Enum):
    USER = "user"
    AI = "ai"


@dataclass
class ChatMessage:
    """
    One transcript entry.

    The sender is fixed when the message is appended; only the text of an
    in-flight AI reply grows while it streams.
    """
    sender: ChatSender
    text: str
    message_id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"message_id": self.message_id, "sender": self.sender.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            message_id=_require_str(data, "message_id"),
            sender=_require_enum(data, "sender", ChatSender),
            text=_require_str(data, "text"),
        )


@dataclass(frozen=True)
class QuizQuestion:
    question: str
    options: Tuple[str, ...]
    correct_answer: str
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizQuestion":
        return cls(
            question=_require_str(data, "question"),
            options=tuple(_require_str_list(data, "options")),
            correct_answer=_require_str(data, "correct_answer"),
            explanation=_require_str(data, "explanation"),
        )


@dataclass(frozen=True)
class CornellNotes:
    main_notes: str
    cues: str
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {"main_notes": self.main_notes, "cues": self.cues, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CornellNotes":
        return cls(
            main_notes=_require_str(data, "main_notes"),
            cues=_require_str(data, "cues"),
            summary=_require_str(data, "summary"),
        )


# Shown instead of generated notes for every style except Cornell Notes
NOTES_PLACEHOLDER = CornellNotes(
    main_notes="Notes feature is optimized for Cornell Notes style. Try it out!",
    cues="",
    summary="",
)


class ActiveTab(Enum):
    CHAT = "chat"
    NOTES = "notes"
    QUIZ = "quiz"


@dataclass(frozen=True)
class QuizScore:
    correct: int
    total: int


def score_quiz(quiz: List[QuizQuestion], selected_answers: Dict[int, str]) -> QuizScore:
    """Count how many picked options match the correct answer, by question index."""
    correct = sum(
        1 for index, question in enumerate(quiz)
        if selected_answers.get(index) == question.correct_answer
    )
    return QuizScore(correct=correct, total=len(quiz))


# ==================== Saved snapshot ====================

@dataclass
class SavedSessionSnapshot:
    """Everything needed to put the user back where they were in LEARNING."""
    session: Session
    learning_style: LearningStyle
    chat_messages: List[ChatMessage] = field(default_factory=list)
    quiz: Optional[List[QuizQuestion]] = None
    notes: Optional[CornellNotes] = None
    active_tab: ActiveTab = ActiveTab.CHAT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "session": self.session.to_dict(),
            "learning_style": self.learning_style.value,
            "chat_messages": [message.to_dict() for message in self.chat_messages],
            "quiz": [question.to_dict() for question in self.quiz] if self.quiz is not None else None,
            "notes": self.notes.to_dict() if self.notes is not None else None,
            "active_tab": self.active_tab.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SavedSessionSnapshot":
        """
        Rebuild a snapshot from its stored form.

        Raises:
            PersistenceError: if any field is missing, mistyped or unknown
        """
        if not isinstance(data, dict):
            raise PersistenceError("Saved session is not an object")
        if data.get("version") != SNAPSHOT_VERSION:
            raise PersistenceError(f"Unsupported saved session version: {data.get('version')!r}")

        session_data = data.get("session")
        if not isinstance(session_data, dict):
            raise PersistenceError("Saved session has no session data")

        messages = data.get("chat_messages")
        if not isinstance(messages, list) or not all(isinstance(m, dict) for m in messages):
            raise PersistenceError("Saved session has an invalid chat transcript")

        quiz_data = data.get("quiz")
        if quiz_data is not None and (
            not isinstance(quiz_data, list) or not all(isinstance(q, dict) for q in quiz_data)
        ):
            raise PersistenceError("Saved session has an invalid quiz")

        notes_data = data.get("notes")
        if notes_data is not None and not isinstance(notes_data, dict):
            raise PersistenceError("Saved session has invalid notes")

        return cls(
            session=Session.from_dict(session_data),
            learning_style=_require_enum(data, "learning_style", LearningStyle),
            chat_messages=[ChatMessage.from_dict(m) for m in messages],
            quiz=[QuizQuestion.from_dict(q) for q in quiz_data] if quiz_data is not None else None,
            notes=CornellNotes.from_dict(notes_data) if notes_data is not None else None,
            active_tab=_require_enum(data, "active_tab", ActiveTab),
        )


# ==================== Screens ====================

class AppState(Enum):
    WELCOME = "WELCOME"
    LOADING = "LOADING"
    LEARNING = "LEARNING"
    SHOW_QUIZ = "SHOW_QUIZ"
    SHOW_QUIZ_RESULTS = "SHOW_QUIZ_RESULTS"


class LoadingPurpose(Enum):
    ANALYZE = "analyze"
    CLASSIFY = "classify"


@dataclass(frozen=True)
class WelcomeScreen:
    app_state: ClassVar[AppState] = AppState.WELCOME


@dataclass(frozen=True)
class LoadingScreen:
    """Waiting on analysis or classification; epoch identifies the request."""
    purpose: LoadingPurpose
    epoch: int
    app_state: ClassVar[AppState] = AppState.LOADING


@dataclass(frozen=True)
class LearningScreen:
    session: Session
    learning_style: LearningStyle
    app_state: ClassVar[AppState] = AppState.LEARNING

    def __post_init__(self):
        if self.session is None or self.learning_style is None:
            raise InvariantViolation("LEARNING requires both a session and a learning style")


@dataclass(frozen=True)
class StyleQuizScreen:
    answers: Tuple[str, ...] = ()
    app_state: ClassVar[AppState] = AppState.SHOW_QUIZ


@dataclass(frozen=True)
class StyleQuizResultsScreen:
    learning_style: LearningStyle
    app_state: ClassVar[AppState] = AppState.SHOW_QUIZ_RESULTS

    def __post_init__(self):
        if self.learning_style is None:
            raise InvariantViolation("SHOW_QUIZ_RESULTS requires a learning style")


Screen = Union[WelcomeScreen, LoadingScreen, LearningScreen, StyleQuizScreen, StyleQuizResultsScreen]


# ==================== Field helpers ====================

def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise PersistenceError(f"Expected text for '{key}', got {type(value).__name__}")
    return value


def _require_str_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise PersistenceError(f"Expected a list of text for '{key}'")
    return value


def _require_enum(data: Dict[str, Any], key: str, enum_cls):
    try:
        return enum_cls(data.get(key))
    except ValueError as e:
        raise PersistenceError(f"Unknown value for '{key}': {data.get(key)!r}") from e
