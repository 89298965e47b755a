"""
Generation Client - all language-model calls for a study session

- Content analysis (summary, outline, key questions)
- Learning-style classification from the style quiz
- Multiple-choice quiz generation
- Cornell notes generation
- Streaming chat turns
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from openai import AsyncOpenAI

from study_companion import config
from study_companion.errors import GenerationError
from study_companion.learning_style import DEFAULT_LEARNING_STYLE, STYLE_QUIZ_LENGTH, LearningStyle
from study_companion.session_state import ChatMessage, ChatSender, CornellNotes, QuizQuestion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    summary: str
    outline: Tuple[str, ...]
    key_questions: Tuple[str, ...]


def tutor_persona(style: LearningStyle) -> str:
    """System prompt for the tutor, tuned to the learning style."""
    persona = (
        "You are 'Lumi', a friendly, patient and encouraging learning companion. "
        "You help learners, including neurodiverse learners, understand complex topics "
        "by breaking information into simple, manageable steps. You never judge mistakes "
        "and treat them as learning opportunities."
    )
    if style == LearningStyle.VISUAL:
        persona += (" You use visual analogies, describe diagrams, and lay information out "
                    "so it is easy to picture, such as text mind maps.")
    elif style == LearningStyle.FEYNMAN:
        persona += (" You apply the Feynman technique: explain everything in the simplest "
                    "possible terms, with analogies and no jargon.")
    elif style == LearningStyle.CORNELL_NOTES:
        persona += (" You are a master of structure and help the learner build and understand "
                    "notes in the Cornell Notes format.")
    elif style == LearningStyle.SQ3R:
        persona += (" You guide the learner through SQ3R (Survey, Question, Read, Recite, "
                    "Review) so they engage actively with the material.")
    return persona


class GenerationClient:
    """
    Thin async wrapper over the chat-completions API.

    Every failure (transport, empty reply, malformed JSON, missing fields)
    surfaces as GenerationError so callers branch on a single type.
    """

    def __init__(self, llm_client: Optional[Any] = None, model: Optional[str] = None):
        if llm_client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment variables")
            llm_client = AsyncOpenAI(api_key=api_key, timeout=config.GENERATION_TIMEOUT_SECONDS)
        self.llm_client = llm_client
        self.model = model or config.OPENAI_MODEL

    # ==================== Public operations ====================

    async def analyze(self, content: str, style: LearningStyle) -> AnalysisResult:
        """Prepare the opening of a session: summary, outline and key questions."""
        prompt = f"""Act as the learner's study companion and prepare their first session on the content below.

Content:
---
{content}
---

Return ONLY a JSON object with:
- "summary": a brief, simple overview of the content, tailored to the learning style
- "outline": array of strings, the key topics in order
- "key_questions": array of 3 thought-provoking questions to start the discussion"""

        data = await self._complete_json(tutor_persona(style), prompt, temperature=0.4)

        summary = data.get("summary")
        outline = data.get("outline")
        key_questions = data.get("key_questions", data.get("keyQuestions"))
        if not isinstance(summary, str) or not summary.strip():
            raise GenerationError("Analysis response has no summary")
        if not _is_str_list(outline) or not _is_str_list(key_questions):
            raise GenerationError("Analysis response has a malformed outline or key questions")

        logger.info(f"✅ [Generation] Analysis ready ({len(outline)} outline items, "
                    f"{len(key_questions)} questions)")
        return AnalysisResult(summary=summary, outline=tuple(outline), key_questions=tuple(key_questions))

    async def classify_style(self, answers: Sequence[str]) -> LearningStyle:
        """
        Map the four style-quiz answers to a learning style.

        An answer that names no known style falls back to the default style
        instead of failing.
        """
        if len(answers) != STYLE_QUIZ_LENGTH:
            raise GenerationError(f"Expected {STYLE_QUIZ_LENGTH} quiz answers, got {len(answers)}")

        numbered = "\n".join(f"{i}. {answer}" for i, answer in enumerate(answers, start=1))
        options = ", ".join(style.value for style in LearningStyle)
        prompt = f"""A learner answered a quiz about how they like to learn. Which of these learning styles do they align with most? Options: {options}.

Answers:
{numbered}

Respond with only the name of the learning style (e.g. "Visual")."""

        raw = await self._complete_text(prompt, temperature=0.0)
        style = LearningStyle.parse(raw)
        if style is None:
            logger.warning(f"⚠️ [Generation] Unrecognised style '{raw}', using {DEFAULT_LEARNING_STYLE.value}")
            return DEFAULT_LEARNING_STYLE
        logger.info(f"🎯 [Generation] Classified learning style: {style.value}")
        return style

    async def generate_quiz(self, content: str, style: LearningStyle) -> List[QuizQuestion]:
        """Build a multiple-choice quiz testing the key concepts of the content."""
        prompt = f"""Based on the content below, write a {config.QUIZ_QUESTION_COUNT}-question multiple-choice quiz that tests understanding of the key concepts.

Content:
---
{content}
---

Return ONLY a JSON object {{"questions": [...]}} where each question has:
- "question": the question text
- "options": array of 4 answer options
- "correct_answer": the correct option, copied exactly from "options"
- "explanation": a brief, encouraging explanation of the correct answer"""

        data = await self._complete_json(tutor_persona(style), prompt, temperature=0.5)

        raw_questions = data.get("questions")
        if not isinstance(raw_questions, list) or not raw_questions:
            raise GenerationError("Quiz response has no questions")

        quiz = []
        for item in raw_questions:
            if not isinstance(item, dict):
                raise GenerationError("Quiz question is not an object")
            question = item.get("question")
            options = item.get("options")
            correct_answer = item.get("correct_answer", item.get("correctAnswer"))
            explanation = item.get("explanation", "")
            if not isinstance(question, str) or not _is_str_list(options) or not options:
                raise GenerationError("Quiz question is missing its text or options")
            if not isinstance(correct_answer, str) or not isinstance(explanation, str):
                raise GenerationError("Quiz question is missing its answer")
            quiz.append(QuizQuestion(
                question=question,
                options=tuple(options),
                correct_answer=correct_answer,
                explanation=explanation,
            ))

        logger.info(f"✅ [Generation] Quiz ready ({len(quiz)} questions)")
        return quiz

    async def generate_notes(self, content: str, transcript: Sequence[ChatMessage]) -> CornellNotes:
        """Write Cornell notes from the content and the conversation so far."""
        conversation = "\n".join(f"{m.sender.value}: {m.text}" for m in transcript)
        prompt = f"""Create a set of Cornell Notes from the original content and our conversation.

Original Content:
---
{content}
---

Conversation History:
---
{conversation}
---

Return ONLY a JSON object with:
- "main_notes": detailed notes from the content and conversation
- "cues": keywords and questions to jog memory, one per line
- "summary": a one or two sentence summary of the material covered"""

        data = await self._complete_json(tutor_persona(LearningStyle.CORNELL_NOTES), prompt, temperature=0.4)

        fields = {}
        for key, alias in (("main_notes", "mainNotes"), ("cues", "cues"), ("summary", "summary")):
            value = data.get(key, data.get(alias))
            if not isinstance(value, str):
                raise GenerationError(f"Notes response is missing '{key}'")
            fields[key] = value

        logger.info("✅ [Generation] Cornell notes ready")
        return CornellNotes(**fields)

    async def stream_chat(
        self,
        content: str,
        transcript: Sequence[ChatMessage],
        style: LearningStyle,
    ) -> AsyncGenerator[str, None]:
        """
        Stream the tutor's reply to the latest turn.

        Yields:
            Non-empty text deltas, in order

        Raises:
            GenerationError: if the request or the stream fails
        """
        messages = self._build_chat_messages(content, transcript, style)

        try:
            stream = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=messages,
                stream=True,
                temperature=0.7,
            )
            async for chunk in stream:
                if chunk.choices and len(chunk.choices) > 0:
                    delta = chunk.choices[0].delta
                    if delta and delta.content:
                        yield delta.content
        except GenerationError:
            raise
        except Exception as e:
            logger.warning(f"⚠️ [Generation] Chat stream failed: {e}")
            raise GenerationError(f"Chat stream failed: {e}") from e

    # ==================== Helpers ====================

    def _build_chat_messages(
        self,
        content: str,
        transcript: Sequence[ChatMessage],
        style: LearningStyle,
    ) -> List[Dict[str, str]]:
        preview = content[:config.CHAT_CONTENT_PREVIEW_CHARS]
        if len(content) > config.CHAT_CONTENT_PREVIEW_CHARS:
            preview += "..."

        system = (
            f"{tutor_persona(style)}\n\n"
            "You are continuing a conversation with the learner about the content below. "
            "Keep answers concise and tailored to their learning style.\n\n"
            f"Original Content:\n---\n{preview}\n---"
        )
        messages = [{"role": "system", "content": system}]
        for message in list(transcript)[-config.CHAT_HISTORY_WINDOW:]:
            if not message.text:
                continue
            role = "user" if message.sender == ChatSender.USER else "assistant"
            messages.append({"role": role, "content": message.text})
        return messages

    async def _complete_text(self, prompt: str, temperature: float) -> str:
        messages = [{"role": "user", "content": prompt}]
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
            )
        except Exception as e:
            logger.warning(f"⚠️ [Generation] Request failed: {e}")
            raise GenerationError(f"Generation request failed: {e}") from e

        if not response.choices:
            raise GenerationError("Empty response from generation service")
        # A blank answer is left for the caller to interpret
        return (response.choices[0].message.content or "").strip()

    async def _complete_json(self, system: str, prompt: str, temperature: float) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=temperature,
            )
        except Exception as e:
            logger.warning(f"⚠️ [Generation] Request failed: {e}")
            raise GenerationError(f"Generation request failed: {e}") from e

        if not response.choices:
            raise GenerationError("Empty response from generation service")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationError("Empty response from generation service")

        content = content.strip()
        # Remove markdown code blocks if present
        if content.startswith("```"):
            content = content.split("```")[1]
            if content.startswith("json"):
                content = content[4:]
        content = content.strip()

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Malformed JSON from generation service: {e}") from e
        if not isinstance(data, dict):
            raise GenerationError("Expected a JSON object from generation service")
        return data


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)
