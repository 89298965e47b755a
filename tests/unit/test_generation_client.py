"""
Unit Tests for the Generation Client

Tests response parsing, failure mapping and chat message construction
against a fake chat-completions client.
"""

import json
import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "study_companion", "src"))

from study_companion import config
from study_companion.errors import GenerationError
from study_companion.generation_client import GenerationClient
from study_companion.learning_style import LearningStyle
from study_companion.session_state import ChatMessage, ChatSender

ANSWERS = ["Diagrams", "Explaining it", "Structured notes", "Previewing first"]


def client_with(llm_client_factory, *responses):
    llm = llm_client_factory(*responses)
    return GenerationClient(llm_client=llm, model="test-model"), llm.chat.completions


class TestAnalyze:
    """Test suite for content analysis."""

    @pytest.mark.asyncio
    async def test_parses_analysis(self, llm_client_factory):
        payload = {"summary": "Short.", "outline": ["A", "B"], "key_questions": ["Q1?", "Q2?", "Q3?"]}
        client, completions = client_with(llm_client_factory, json.dumps(payload))

        result = await client.analyze("Some content", LearningStyle.VISUAL)

        assert result.summary == "Short."
        assert result.outline == ("A", "B")
        assert result.key_questions == ("Q1?", "Q2?", "Q3?")
        request = completions.requests[0]
        assert request["model"] == "test-model"
        assert request["response_format"] == {"type": "json_object"}
        assert "Some content" in request["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_accepts_code_fenced_camel_case_reply(self, llm_client_factory):
        reply = '```json\n{"summary": "S", "outline": [], "keyQuestions": ["Q?"]}\n```'
        client, _ = client_with(llm_client_factory, reply)

        result = await client.analyze("Content", LearningStyle.FEYNMAN)

        assert result.key_questions == ("Q?",)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        "not json at all",
        json.dumps(["a", "list"]),
        json.dumps({"outline": ["A"], "key_questions": ["Q?"]}),
        json.dumps({"summary": "S", "outline": "A", "key_questions": ["Q?"]}),
        "",
    ])
    async def test_malformed_reply_raises(self, llm_client_factory, reply):
        client, _ = client_with(llm_client_factory, reply)
        with pytest.raises(GenerationError):
            await client.analyze("Content", LearningStyle.FEYNMAN)

    @pytest.mark.asyncio
    async def test_transport_error_raises_generation_error(self, llm_client_factory):
        client, _ = client_with(llm_client_factory, ConnectionError("offline"))
        with pytest.raises(GenerationError):
            await client.analyze("Content", LearningStyle.FEYNMAN)


class TestClassifyStyle:
    """Test suite for learning-style classification."""

    @pytest.mark.asyncio
    async def test_recognised_style(self, llm_client_factory):
        client, completions = client_with(llm_client_factory, "Cornell Notes")

        assert await client.classify_style(ANSWERS) == LearningStyle.CORNELL_NOTES
        prompt = completions.requests[0]["messages"][0]["content"]
        for answer in ANSWERS:
            assert answer in prompt

    @pytest.mark.asyncio
    async def test_unrecognised_reply_falls_back_to_feynman(self, llm_client_factory):
        client, _ = client_with(llm_client_factory, "banana")
        assert await client.classify_style(ANSWERS) == LearningStyle.FEYNMAN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "   \n", None])
    async def test_blank_reply_falls_back_to_feynman(self, llm_client_factory, reply):
        client, _ = client_with(llm_client_factory, reply)
        assert await client.classify_style(ANSWERS) == LearningStyle.FEYNMAN

    @pytest.mark.asyncio
    async def test_wrong_answer_count_raises(self, llm_client_factory):
        client, completions = client_with(llm_client_factory)
        with pytest.raises(GenerationError):
            await client.classify_style(ANSWERS[:3])
        assert completions.requests == []


class TestGenerateQuiz:
    """Test suite for quiz generation."""

    @pytest.mark.asyncio
    async def test_parses_questions(self, llm_client_factory):
        payload = {"questions": [
            {"question": "2+2?", "options": ["3", "4"], "correct_answer": "4", "explanation": "Sum."},
            {"question": "Sky?", "options": ["Blue", "Red"], "correctAnswer": "Blue", "explanation": ""},
        ]}
        client, _ = client_with(llm_client_factory, json.dumps(payload))

        quiz = await client.generate_quiz("Content", LearningStyle.SQ3R)

        assert [q.correct_answer for q in quiz] == ["4", "Blue"]
        assert quiz[0].options == ("3", "4")

    @pytest.mark.asyncio
    async def test_empty_quiz_raises(self, llm_client_factory):
        client, _ = client_with(llm_client_factory, json.dumps({"questions": []}))
        with pytest.raises(GenerationError):
            await client.generate_quiz("Content", LearningStyle.SQ3R)

    @pytest.mark.asyncio
    async def test_question_without_answer_raises(self, llm_client_factory):
        payload = {"questions": [{"question": "Q?", "options": ["a", "b"]}]}
        client, _ = client_with(llm_client_factory, json.dumps(payload))
        with pytest.raises(GenerationError):
            await client.generate_quiz("Content", LearningStyle.SQ3R)


class TestGenerateNotes:
    """Test suite for Cornell notes generation."""

    @pytest.mark.asyncio
    async def test_parses_notes_and_includes_conversation(self, llm_client_factory):
        payload = {"mainNotes": "Main.", "cues": "Cue?", "summary": "Sum."}
        client, completions = client_with(llm_client_factory, json.dumps(payload))
        transcript = [ChatMessage(sender=ChatSender.USER, text="What is a cue column?")]

        notes = await client.generate_notes("Content", transcript)

        assert notes.main_notes == "Main."
        assert notes.cues == "Cue?"
        assert "What is a cue column?" in completions.requests[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_missing_field_raises(self, llm_client_factory):
        client, _ = client_with(llm_client_factory, json.dumps({"main_notes": "Main."}))
        with pytest.raises(GenerationError):
            await client.generate_notes("Content", [])


class TestStreamChat:
    """Test suite for streamed chat turns."""

    @pytest.mark.asyncio
    async def test_yields_non_empty_deltas(self, llm_client_factory):
        client, completions = client_with(llm_client_factory, ["Hel", None, "", "lo!"])

        deltas = [d async for d in client.stream_chat("Content", [], LearningStyle.VISUAL)]

        assert deltas == ["Hel", "lo!"]
        assert completions.requests[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_mid_stream_failure_raises_after_partial_output(self, llm_client_factory):
        client, _ = client_with(llm_client_factory, ["Par", "tial", ConnectionError("reset")])
        received = []

        with pytest.raises(GenerationError):
            async for delta in client.stream_chat("Content", [], LearningStyle.VISUAL):
                received.append(delta)
        assert received == ["Par", "tial"]

    def test_history_window_and_roles(self, llm_client_factory):
        client, _ = client_with(llm_client_factory)
        transcript = [
            ChatMessage(sender=ChatSender.USER if i % 2 else ChatSender.AI, text=f"m{i}")
            for i in range(10)
        ]
        transcript.append(ChatMessage(sender=ChatSender.AI, text=""))

        messages = client._build_chat_messages("Content", transcript, LearningStyle.FEYNMAN)

        assert messages[0]["role"] == "system"
        history = messages[1:]
        assert len(history) == config.CHAT_HISTORY_WINDOW - 1
        assert history[-1] == {"role": "user", "content": "m9"}
        assert history[-2] == {"role": "assistant", "content": "m8"}

    def test_long_content_is_truncated_in_system_prompt(self, llm_client_factory):
        client, _ = client_with(llm_client_factory)
        content = "x" * (config.CHAT_CONTENT_PREVIEW_CHARS + 50)

        system = client._build_chat_messages(content, [], LearningStyle.FEYNMAN)[0]["content"]

        assert "x" * config.CHAT_CONTENT_PREVIEW_CHARS + "..." in system
        assert "x" * (config.CHAT_CONTENT_PREVIEW_CHARS + 1) not in system


class TestConstruction:
    def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            GenerationClient()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
