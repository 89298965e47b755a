"""
FastAPI Backend for the Study Companion

Local, single-user HTTP surface over the session controller:
- One read endpoint returning the full controller snapshot
- One endpoint per controller event
- Chat turns streamed as Server-Sent Events
"""

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from typing import Optional, Dict, Any
import os
import sys
import json
import time
import logging

from lib.logger import setup_logging, get_logger

# Add the study_companion package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'study_companion', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from study_companion import config
from study_companion.errors import ValidationError
from study_companion.generation_client import GenerationClient
from study_companion.learning_style import LearningStyle, STYLE_DESCRIPTIONS, STYLE_QUIZ_QUESTIONS
from study_companion.session_controller import EXPLAIN_MORE_PROMPT, SessionController
from study_companion.session_state import ActiveTab, score_quiz
from study_companion.session_store import SessionStore

setup_logging(level=getattr(logging, config.LOG_LEVEL, logging.INFO), use_colors=True)
logger = get_logger("backend.main")

# Single user, single device: one controller for the whole process
_controller_instance: Optional[SessionController] = None


def get_controller() -> SessionController:
    """Get or create the singleton SessionController."""
    global _controller_instance
    if _controller_instance is None:
        _controller_instance = SessionController(
            client=GenerationClient(),
            store=SessionStore(config.SESSION_STORE_PATH),
        )
    return _controller_instance


app = FastAPI(
    title="Study Companion API",
    description="Local API for an AI study companion: chat tutor, quiz and Cornell notes",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================

class ContentSubmission(BaseModel):
    content: str
    learning_style: Optional[str] = None


class StyleSelection(BaseModel):
    learning_style: str


class QuizAnswer(BaseModel):
    answer: str


class TabChange(BaseModel):
    tab: str


class ChatMessageIn(BaseModel):
    content: str


class QuizScoreRequest(BaseModel):
    answers: Dict[int, str]


class QuizScoreResponse(BaseModel):
    correct: int
    total: int


# ==================== Helper Functions ====================

def parse_style(raw: Optional[str]) -> Optional[LearningStyle]:
    if raw is None:
        return None
    style = LearningStyle.parse(raw)
    if style is None:
        raise HTTPException(status_code=422, detail=f"Unknown learning style: {raw}")
    return style


def state_of(controller: SessionController) -> Dict[str, Any]:
    return controller.snapshot().to_dict()


def sse_frame(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def stream_turn(controller: SessionController, text: str):
    """Forward one chat turn as SSE chunk frames, then a done frame."""
    start_time = time.time()
    chunk_count = 0
    try:
        async for chunk in controller.stream_chat_message(text):
            chunk_count += 1
            yield sse_frame({"type": "chunk", "content": chunk, "done": False})

        logger.success("Chat turn finished", data={
            "chunks": chunk_count,
            "duration_ms": f"{(time.time() - start_time) * 1000:.0f}",
        })
        yield sse_frame({"type": "done", "state": state_of(controller), "done": True})
    except Exception as e:
        logger.error("Error in chat stream", error=e)
        yield sse_frame({"type": "error", "content": f"Error: {str(e)}", "done": True})


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Study Companion API",
        "version": "1.0.0",
    }


@app.get("/api/styles")
async def get_styles():
    """Learning styles and the style-discovery quiz, for the intake screen."""
    return {
        "styles": [
            {"name": style.value, "description": STYLE_DESCRIPTIONS[style]}
            for style in LearningStyle
        ],
        "quiz": STYLE_QUIZ_QUESTIONS,
    }


@app.get("/api/state")
async def get_state(controller: SessionController = Depends(get_controller)):
    """Current controller snapshot."""
    return state_of(controller)


@app.post("/api/content")
async def submit_content(submission: ContentSubmission, controller: SessionController = Depends(get_controller)):
    """Analyze pasted content and start a learning session."""
    style = parse_style(submission.learning_style)
    logger.event("submit-content", data={
        "content_length": len(submission.content),
        "learning_style": style.value if style else None,
    })
    try:
        await controller.submit_content(submission.content, style)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return state_of(controller)


@app.post("/api/style")
async def select_style(selection: StyleSelection, controller: SessionController = Depends(get_controller)):
    controller.select_style(parse_style(selection.learning_style))
    return state_of(controller)


@app.post("/api/style-quiz/start")
async def start_style_quiz(controller: SessionController = Depends(get_controller)):
    controller.take_quiz()
    return state_of(controller)


@app.post("/api/style-quiz/answer")
async def answer_style_quiz(answer: QuizAnswer, controller: SessionController = Depends(get_controller)):
    """Record an answer; the last answer classifies the learning style."""
    logger.event("answer-quiz-question", data={"answered": controller.snapshot().style_quiz_answered + 1})
    await controller.answer_quiz_question(answer.answer)
    return state_of(controller)


@app.post("/api/style-quiz/back")
async def leave_style_quiz(controller: SessionController = Depends(get_controller)):
    controller.leave_quiz()
    return state_of(controller)


@app.post("/api/style-quiz/continue")
async def continue_from_results(controller: SessionController = Depends(get_controller)):
    controller.continue_from_results()
    return state_of(controller)


@app.post("/api/tab")
async def change_tab(change: TabChange, controller: SessionController = Depends(get_controller)):
    """Switch tabs, generating the quiz or notes on first visit."""
    try:
        tab = ActiveTab(change.tab)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown tab: {change.tab}")
    logger.event("change-tab", data={"tab": tab.value})
    await controller.change_tab(tab)
    return state_of(controller)


@app.post("/api/chat/stream")
async def chat_stream(message: ChatMessageIn, controller: SessionController = Depends(get_controller)):
    """Stream the tutor's reply in real-time with SSE."""
    logger.event("send-chat-message", data={"message_length": len(message.content)})
    return StreamingResponse(stream_turn(controller, message.content), media_type="text/event-stream")


@app.post("/api/chat/explain-more")
async def explain_more(controller: SessionController = Depends(get_controller)):
    """Ask the tutor to elaborate on its last reply, streamed like a chat turn."""
    if not controller.can_explain_more:
        raise HTTPException(status_code=409, detail="Nothing to explain further right now")
    logger.event("request-explain-more")
    return StreamingResponse(
        stream_turn(controller, EXPLAIN_MORE_PROMPT),
        media_type="text/event-stream",
    )


@app.post("/api/quiz/score", response_model=QuizScoreResponse)
async def score_generated_quiz(request: QuizScoreRequest, controller: SessionController = Depends(get_controller)):
    """Score the learner's picks against the generated quiz."""
    if controller.quiz is None:
        raise HTTPException(status_code=409, detail="No quiz has been generated yet")
    score = score_quiz(controller.quiz, request.answers)
    return QuizScoreResponse(correct=score.correct, total=score.total)


@app.post("/api/start-over")
async def start_over(controller: SessionController = Depends(get_controller)):
    logger.event("start-over")
    controller.start_over()
    return state_of(controller)


@app.post("/api/resume")
async def resume(controller: SessionController = Depends(get_controller)):
    logger.event("request-resume")
    controller.request_resume()
    return state_of(controller)


@app.on_event("startup")
async def startup_event():
    """Create the controller and report whether a saved session exists."""
    controller = get_controller()
    logger.section("STUDY COMPANION STARTUP", {
        "model": config.OPENAI_MODEL,
        "session_store": config.SESSION_STORE_PATH,
        "resumable_session": controller.has_resumable_session,
    })
    logger.end_section()


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(app, host="127.0.0.1", port=8000)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
