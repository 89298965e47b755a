"""
Shared fixtures: a scripted generation client for controller tests and a
fake OpenAI client for generation client tests. No test touches the network.
"""

import asyncio
import json
import os
import sys
from collections import defaultdict
from types import SimpleNamespace
from typing import List, Optional

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "study_companion", "src"))

from study_companion.errors import GenerationError
from study_companion.generation_client import AnalysisResult
from study_companion.learning_style import LearningStyle
from study_companion.session_controller import SessionController
from study_companion.session_state import CornellNotes, QuizQuestion
from study_companion.session_store import SessionStore

SAMPLE_CONTENT = (
    "Photosynthesis converts light energy into chemical energy. Chlorophyll in the "
    "chloroplasts absorbs light, water is split, and carbon dioxide is fixed into glucose."
)


class FakeGenerationClient:
    """
    Generation client double with scripted results.

    Set an *_error attribute to make that operation fail. Set `gate` to an
    asyncio.Event to hold every operation until the test releases it.
    """

    def __init__(self):
        self.calls = defaultdict(int)
        self.gate: Optional[asyncio.Event] = None

        self.analysis = AnalysisResult(
            summary="Plants turn light into sugar.",
            outline=("Light reactions", "Calvin cycle"),
            key_questions=("Why is chlorophyll green?", "Where is water split?", "What is fixed?"),
        )
        self.analyze_error: Optional[Exception] = None

        self.classification = LearningStyle.VISUAL
        self.classify_error: Optional[Exception] = None

        self.quiz = [
            QuizQuestion(
                question="What pigment absorbs light?",
                options=("Chlorophyll", "Keratin", "Melanin", "Hemoglobin"),
                correct_answer="Chlorophyll",
                explanation="Chlorophyll sits in the chloroplasts.",
            ),
            QuizQuestion(
                question="What gas is fixed?",
                options=("Oxygen", "Carbon dioxide", "Nitrogen", "Helium"),
                correct_answer="Carbon dioxide",
                explanation="CO2 is fixed in the Calvin cycle.",
            ),
        ]
        self.quiz_error: Optional[Exception] = None

        self.notes = CornellNotes(
            main_notes="Light reactions split water.",
            cues="Where? Thylakoid.",
            summary="Photosynthesis stores light as sugar.",
        )
        self.notes_error: Optional[Exception] = None
        self.notes_transcripts: List[list] = []

        self.chat_deltas: List[str] = ["Hel", "lo", "!"]
        self.chat_error: Optional[Exception] = None
        self.chat_transcripts: List[list] = []

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    async def analyze(self, content, style):
        self.calls["analyze"] += 1
        await self._wait()
        if self.analyze_error:
            raise self.analyze_error
        return self.analysis

    async def classify_style(self, answers):
        self.calls["classify_style"] += 1
        await self._wait()
        if self.classify_error:
            raise self.classify_error
        return self.classification

    async def generate_quiz(self, content, style):
        self.calls["generate_quiz"] += 1
        await self._wait()
        if self.quiz_error:
            raise self.quiz_error
        return list(self.quiz)

    async def generate_notes(self, content, transcript):
        self.calls["generate_notes"] += 1
        self.notes_transcripts.append(list(transcript))
        await self._wait()
        if self.notes_error:
            raise self.notes_error
        return self.notes

    async def stream_chat(self, content, transcript, style):
        self.calls["stream_chat"] += 1
        self.chat_transcripts.append([(m.sender, m.text) for m in transcript])
        for delta in self.chat_deltas:
            await self._wait()
            yield delta
        if self.chat_error:
            raise self.chat_error


class FakeStream:
    """Async iterable of chat-completion chunks; an Exception item is raised in place."""

    def __init__(self, deltas):
        self.deltas = deltas

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for delta in self.deltas:
            if isinstance(delta, Exception):
                raise delta
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=delta))])


class FakeCompletions:
    """Stands in for `AsyncOpenAI().chat.completions`, replaying queued responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if kwargs.get("stream"):
            return FakeStream(item)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=item))])


def make_llm_client(*responses):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(responses)))


@pytest.fixture
def llm_client_factory():
    """Build a fake OpenAI client from queued responses (text, delta lists or exceptions)."""
    return make_llm_client


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def memory_store():
    return SessionStore()


@pytest.fixture
def controller(fake_client, memory_store):
    return SessionController(client=fake_client, store=memory_store)


@pytest.fixture
def generation_failure():
    return GenerationError("provider unavailable")


@pytest.fixture
def plant_raw_snapshot():
    """Put unvalidated text (or a JSON-able object) where a store keeps its snapshot."""
    def plant(store: SessionStore, raw):
        text = raw if isinstance(raw, str) else json.dumps(raw)
        if not store.use_file:
            store._in_memory_snapshot = text
            return
        os.makedirs(os.path.dirname(os.path.abspath(store.path)), exist_ok=True)
        with open(store.path, "w", encoding="utf-8") as handle:
            handle.write(text)
    return plant
