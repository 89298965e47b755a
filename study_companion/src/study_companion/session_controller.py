"""
Session Controller

Owns the screen state machine for a study session and mediates every
transition:

    WELCOME -> LOADING -> LEARNING              (submit content)
    WELCOME -> SHOW_QUIZ -> LOADING -> SHOW_QUIZ_RESULTS -> WELCOME
    any     -> WELCOME                          (start over)
    WELCOME -> LEARNING                         (resume saved session)

It calls the generation client, keeps the chat transcript and lazily
generated quiz/notes, and keeps the saved-session snapshot in step with
what the user sees.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, AsyncGenerator, Dict, List, Optional, Set, Tuple

from study_companion.errors import ErrorInfo, ErrorKind, InvariantViolation, PersistenceError, ValidationError
from study_companion.learning_style import STYLE_QUIZ_LENGTH, LearningStyle
from study_companion.session_state import (
    GREETING_MESSAGE,
    NOTES_PLACEHOLDER,
    ActiveTab,
    AppState,
    ChatMessage,
    ChatSender,
    CornellNotes,
    LearningScreen,
    LoadingPurpose,
    LoadingScreen,
    QuizQuestion,
    SavedSessionSnapshot,
    Screen,
    Session,
    StyleQuizResultsScreen,
    StyleQuizScreen,
    WelcomeScreen,
)
from study_companion.session_store import SessionStore

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Sorry, I couldn't process that content. Please try again."
CLASSIFICATION_FAILED_MESSAGE = "Sorry, there was an error analyzing your quiz results. Please try again."
QUIZ_FAILED_MESSAGE = "Sorry, I couldn't generate the quiz. Please try again."
NOTES_FAILED_MESSAGE = "Sorry, I couldn't generate the notes. Please try again."
RESUME_CORRUPT_MESSAGE = "Your saved session might be corrupted. Starting fresh."
RESUME_MISSING_MESSAGE = "Could not find a saved session to resume."
CHAT_APOLOGY_MESSAGE = "I'm having a little trouble right now. Please try again in a moment."
EXPLAIN_MORE_PROMPT = "Can you elaborate on your last response?"


@dataclass(frozen=True)
class ControllerSnapshot:
    """Read-only view of everything a renderer needs."""
    app_state: AppState
    session: Optional[Session]
    learning_style: Optional[LearningStyle]
    chat_messages: Tuple[ChatMessage, ...]
    quiz: Optional[Tuple[QuizQuestion, ...]]
    notes: Optional[CornellNotes]
    active_tab: ActiveTab
    is_loading: bool
    error: Optional[ErrorInfo]
    has_resumable_session: bool
    style_quiz_answered: int
    is_chat_streaming: bool
    can_explain_more: bool

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app_state": self.app_state.value,
            "session": self.session.to_dict() if self.session else None,
            "learning_style": self.learning_style.value if self.learning_style else None,
            "chat_messages": [message.to_dict() for message in self.chat_messages],
            "quiz": [question.to_dict() for question in self.quiz] if self.quiz is not None else None,
            "notes": self.notes.to_dict() if self.notes else None,
            "active_tab": self.active_tab.value,
            "is_loading": self.is_loading,
            "error": self.error.to_dict() if self.error else None,
            "has_resumable_session": self.has_resumable_session,
            "style_quiz_answered": self.style_quiz_answered,
            "is_chat_streaming": self.is_chat_streaming,
            "can_explain_more": self.can_explain_more,
        }


class SessionController:
    """
    Single actor driving one user's study session.

    Suspension points are exactly the awaits on the generation client. Results
    that arrive after the user has moved on (start over, new session, new
    loading request) are recognised as stale and dropped; the underlying
    request is never aborted.
    """

    def __init__(self, client, store: SessionStore):
        """
        Initialize SessionController.

        Args:
            client: GenerationClient (or anything with the same coroutines)
            store: SessionStore holding the saved session for resume
        """
        self.client = client
        self.store = store

        self.screen: Screen = WelcomeScreen()
        self.selected_style: Optional[LearningStyle] = None
        self.chat_messages: List[ChatMessage] = []
        self.quiz: Optional[List[QuizQuestion]] = None
        self.notes: Optional[CornellNotes] = None
        self.active_tab = ActiveTab.CHAT
        self.error: Optional[ErrorInfo] = None

        self._generating: Set[ActiveTab] = set()
        self._streaming_message_id: Optional[str] = None
        self._epoch = 0

        self.has_resumable_session = self.store.has_snapshot()
        if self.has_resumable_session:
            logger.info("📂 [Controller] Saved session available to resume")

    # ==================== Read side ====================

    @property
    def app_state(self) -> AppState:
        return self.screen.app_state

    @property
    def session(self) -> Optional[Session]:
        return self.screen.session if isinstance(self.screen, LearningScreen) else None

    @property
    def learning_style(self) -> Optional[LearningStyle]:
        if isinstance(self.screen, (LearningScreen, StyleQuizResultsScreen)):
            return self.screen.learning_style
        return self.selected_style

    @property
    def is_loading(self) -> bool:
        return bool(self._generating)

    @property
    def is_chat_streaming(self) -> bool:
        return self._streaming_message_id is not None

    @property
    def can_explain_more(self) -> bool:
        if not isinstance(self.screen, LearningScreen) or self.is_chat_streaming:
            return False
        if not self.chat_messages:
            return False
        last = self.chat_messages[-1]
        return last.sender == ChatSender.AI and last.text.strip() != ""

    def snapshot(self) -> ControllerSnapshot:
        return ControllerSnapshot(
            app_state=self.app_state,
            session=self.session,
            learning_style=self.learning_style,
            chat_messages=tuple(replace(message) for message in self.chat_messages),
            quiz=tuple(self.quiz) if self.quiz is not None else None,
            notes=self.notes,
            active_tab=self.active_tab,
            is_loading=self.is_loading,
            error=self.error,
            has_resumable_session=self.has_resumable_session,
            style_quiz_answered=len(self.screen.answers) if isinstance(self.screen, StyleQuizScreen) else 0,
            is_chat_streaming=self.is_chat_streaming,
            can_explain_more=self.can_explain_more,
        )

    # ==================== Intake and style quiz ====================

    def select_style(self, style: LearningStyle) -> None:
        if not isinstance(self.screen, WelcomeScreen):
            logger.debug(f"[Controller] Ignoring style selection in {self.app_state.value}")
            return
        self.selected_style = style

    async def submit_content(self, content: str, style: Optional[LearningStyle] = None) -> None:
        """
        Start a new session from pasted content.

        Raises:
            ValidationError: if content is blank or no style has been chosen
        """
        style = style or self.selected_style
        if not content or not content.strip():
            raise ValidationError("Please paste some content to study.")
        if style is None:
            raise ValidationError("Please choose a learning style.")
        if not isinstance(self.screen, WelcomeScreen):
            logger.warning(f"⚠️ [Controller] Ignoring submit in {self.app_state.value}")
            return

        self._discard_saved_session()
        self._clear_session_data()
        self.error = None
        self.selected_style = style
        epoch = self._begin_loading(LoadingPurpose.ANALYZE)
        logger.info(f"🔄 [Controller] Analyzing {len(content)} chars of content ({style.value})")

        try:
            analysis = await self.client.analyze(content, style)
        except Exception as e:
            if not self._is_current_loading(epoch):
                logger.info("[Controller] Dropping stale analysis failure")
                return
            logger.warning(f"⚠️ [Controller] Content analysis failed: {e}", exc_info=True)
            self.error = ErrorInfo(ErrorKind.GENERATION, ANALYSIS_FAILED_MESSAGE)
            self.screen = WelcomeScreen()
            return

        if not self._is_current_loading(epoch):
            logger.info("[Controller] Dropping stale analysis result")
            return

        session = Session(
            original_content=content,
            summary=analysis.summary,
            outline=tuple(analysis.outline),
            key_questions=tuple(analysis.key_questions),
        )
        self.chat_messages = [ChatMessage(sender=ChatSender.AI, text=GREETING_MESSAGE)]
        if self._enter_learning(session, style):
            logger.info(f"✅ [Controller] Session {session.session_id} started")
            self._persist()

    def take_quiz(self) -> None:
        if not isinstance(self.screen, WelcomeScreen):
            return
        self.error = None
        self.screen = StyleQuizScreen()

    def leave_quiz(self) -> None:
        if isinstance(self.screen, StyleQuizScreen):
            self.screen = WelcomeScreen()

    async def answer_quiz_question(self, answer: str) -> None:
        """Record one style-quiz answer; the last one triggers classification."""
        if not isinstance(self.screen, StyleQuizScreen):
            logger.debug(f"[Controller] Ignoring quiz answer in {self.app_state.value}")
            return

        answers = self.screen.answers + (answer,)
        if len(answers) < STYLE_QUIZ_LENGTH:
            self.screen = StyleQuizScreen(answers=answers)
            return

        self.error = None
        epoch = self._begin_loading(LoadingPurpose.CLASSIFY)

        try:
            style = await self.client.classify_style(list(answers))
        except Exception as e:
            if not self._is_current_loading(epoch):
                return
            logger.warning(f"⚠️ [Controller] Style classification failed: {e}", exc_info=True)
            self.error = ErrorInfo(ErrorKind.GENERATION, CLASSIFICATION_FAILED_MESSAGE)
            self.screen = StyleQuizScreen()
            return

        if not self._is_current_loading(epoch):
            return

        self.selected_style = style
        try:
            self.screen = StyleQuizResultsScreen(learning_style=style)
        except InvariantViolation as e:
            self._repair(e)

    def continue_from_results(self) -> None:
        if isinstance(self.screen, StyleQuizResultsScreen):
            self.error = None
            self.screen = WelcomeScreen()

    # ==================== Learning tabs ====================

    async def change_tab(self, tab: ActiveTab) -> None:
        """Switch tabs; the first visit to quiz or notes generates it."""
        if not isinstance(self.screen, LearningScreen):
            return

        self.active_tab = tab
        self._persist()

        if tab == ActiveTab.QUIZ and self.quiz is None:
            await self._generate_quiz()
        elif tab == ActiveTab.NOTES and self.notes is None:
            await self._generate_notes()

    async def _generate_quiz(self) -> None:
        if ActiveTab.QUIZ in self._generating or self.quiz is not None:
            return

        session, style = self.screen.session, self.screen.learning_style
        self._generating.add(ActiveTab.QUIZ)
        try:
            quiz = await self.client.generate_quiz(session.original_content, style)
        except Exception as e:
            if not self._is_current_session(session):
                return
            self._generating.discard(ActiveTab.QUIZ)
            logger.warning(f"⚠️ [Controller] Quiz generation failed: {e}", exc_info=True)
            self.error = ErrorInfo(ErrorKind.GENERATION, QUIZ_FAILED_MESSAGE)
            return

        if not self._is_current_session(session):
            logger.info("[Controller] Dropping quiz generated for a previous session")
            return
        self._generating.discard(ActiveTab.QUIZ)
        self.quiz = list(quiz)
        self.error = None
        self._persist()

    async def _generate_notes(self) -> None:
        if ActiveTab.NOTES in self._generating or self.notes is not None:
            return

        session, style = self.screen.session, self.screen.learning_style
        if style != LearningStyle.CORNELL_NOTES:
            self.notes = NOTES_PLACEHOLDER
            self._persist()
            return

        self._generating.add(ActiveTab.NOTES)
        try:
            notes = await self.client.generate_notes(session.original_content, list(self.chat_messages))
        except Exception as e:
            if not self._is_current_session(session):
                return
            self._generating.discard(ActiveTab.NOTES)
            logger.warning(f"⚠️ [Controller] Notes generation failed: {e}", exc_info=True)
            self.error = ErrorInfo(ErrorKind.GENERATION, NOTES_FAILED_MESSAGE)
            return

        if not self._is_current_session(session):
            logger.info("[Controller] Dropping notes generated for a previous session")
            return
        self._generating.discard(ActiveTab.NOTES)
        self.notes = notes
        self.error = None
        self._persist()

    # ==================== Chat ====================

    async def stream_chat_message(self, text: str) -> AsyncGenerator[str, None]:
        """
        Run one chat turn, yielding each delta once it lands in the transcript.

        Ignored (yields nothing) when not learning, when the text is blank, or
        while another turn is still streaming.
        """
        text = (text or "").strip()
        if not text or not isinstance(self.screen, LearningScreen):
            return
        if self.is_chat_streaming:
            logger.info("[Controller] Chat turn already in flight, ignoring new message")
            return

        session, style = self.screen.session, self.screen.learning_style
        self.chat_messages.append(ChatMessage(sender=ChatSender.USER, text=text))
        history = list(self.chat_messages)
        placeholder = ChatMessage(sender=ChatSender.AI, text="")
        self.chat_messages.append(placeholder)
        self._streaming_message_id = placeholder.message_id
        self._persist()

        try:
            async for delta in self.client.stream_chat(session.original_content, history, style):
                if self._append_to_message(placeholder.message_id, delta):
                    yield delta
        except Exception as e:
            logger.warning(f"⚠️ [Controller] Chat stream failed: {e}", exc_info=True)
            self._fail_chat_turn(placeholder.message_id)
        finally:
            if self._streaming_message_id == placeholder.message_id:
                self._streaming_message_id = None
            # Also runs when the consumer stops iterating mid-turn
            self._persist()

    async def send_chat_message(self, text: str) -> None:
        async for _ in self.stream_chat_message(text):
            pass

    async def request_explain_more(self) -> None:
        if self.can_explain_more:
            await self.send_chat_message(EXPLAIN_MORE_PROMPT)

    def _find_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in reversed(self.chat_messages):
            if message.message_id == message_id:
                return message
        return None

    def _append_to_message(self, message_id: str, delta: str) -> bool:
        message = self._find_message(message_id)
        if message is None or message.sender != ChatSender.AI:
            return False
        message.text += delta
        return True

    def _fail_chat_turn(self, message_id: str) -> None:
        placeholder = self._find_message(message_id)
        if placeholder is None:
            # Transcript was reset while streaming
            return
        if placeholder.text == "":
            placeholder.text = CHAT_APOLOGY_MESSAGE
        else:
            self.chat_messages.append(ChatMessage(sender=ChatSender.AI, text=CHAT_APOLOGY_MESSAGE))

    # ==================== Start over and resume ====================

    def start_over(self) -> None:
        """Discard the session, its artifacts and the saved snapshot."""
        logger.info("🔄 [Controller] Starting over")
        self._discard_saved_session()
        self._reset()
        self.error = None

    def request_resume(self) -> None:
        """Restore the saved session straight into LEARNING (one-shot)."""
        if not isinstance(self.screen, WelcomeScreen):
            logger.debug(f"[Controller] Ignoring resume in {self.app_state.value}")
            return

        try:
            saved = self.store.get()
        except PersistenceError as e:
            logger.warning(f"⚠️ [Controller] Saved session unreadable, discarding: {e}")
            self._discard_saved_session()
            self._reset()
            self.error = ErrorInfo(ErrorKind.PERSISTENCE, RESUME_CORRUPT_MESSAGE)
            return

        if saved is None:
            self.has_resumable_session = False
            self.error = ErrorInfo(ErrorKind.PERSISTENCE, RESUME_MISSING_MESSAGE)
            return

        self._clear_session_data()
        self.chat_messages = list(saved.chat_messages)
        self.quiz = list(saved.quiz) if saved.quiz is not None else None
        self.notes = saved.notes
        self.active_tab = saved.active_tab
        self.selected_style = saved.learning_style
        self.error = None
        self._discard_saved_session()

        if self._enter_learning(saved.session, saved.learning_style):
            logger.info(f"✅ [Controller] Resumed session {saved.session.session_id}")

    # ==================== Internals ====================

    def _begin_loading(self, purpose: LoadingPurpose) -> int:
        self._epoch += 1
        self.screen = LoadingScreen(purpose=purpose, epoch=self._epoch)
        return self._epoch

    def _is_current_loading(self, epoch: int) -> bool:
        return isinstance(self.screen, LoadingScreen) and self.screen.epoch == epoch

    def _is_current_session(self, session: Session) -> bool:
        current = self.session
        return current is not None and current.session_id == session.session_id

    def _enter_learning(self, session: Optional[Session], style: Optional[LearningStyle]) -> bool:
        try:
            self.screen = LearningScreen(session=session, learning_style=style)
        except InvariantViolation as e:
            self._repair(e)
            return False
        return True

    def _repair(self, violation: InvariantViolation) -> None:
        """Reset silently when a screen would be entered without its data."""
        logger.error(f"🚨 [Controller] Invariant violated ({violation}), forcing start over")
        self._discard_saved_session()
        self._reset()

    def _clear_session_data(self) -> None:
        self.chat_messages = []
        self.quiz = None
        self.notes = None
        self.active_tab = ActiveTab.CHAT
        self._generating.clear()
        self._streaming_message_id = None

    def _reset(self) -> None:
        self._clear_session_data()
        self._epoch += 1
        self.selected_style = None
        self.screen = WelcomeScreen()

    def _discard_saved_session(self) -> None:
        self.has_resumable_session = False
        try:
            self.store.delete()
        except PersistenceError as e:
            logger.warning(f"⚠️ [Controller] Could not remove saved session: {e}")

    def _persist(self) -> None:
        """Overwrite the saved snapshot; best-effort, only while learning."""
        if not isinstance(self.screen, LearningScreen):
            return
        snapshot = SavedSessionSnapshot(
            session=self.screen.session,
            learning_style=self.screen.learning_style,
            chat_messages=list(self.chat_messages),
            quiz=list(self.quiz) if self.quiz is not None else None,
            notes=self.notes,
            active_tab=self.active_tab,
        )
        try:
            self.store.put(snapshot)
        except PersistenceError as e:
            logger.warning(f"⚠️ [Controller] Could not save session: {e}")
