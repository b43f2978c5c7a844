"""
Tests for document generation through the OpenAI client.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from visamate.llm import client as llm_client
from visamate.llm.client import generate_document, generate_text, strip_code_fences


def completion(content):
    message = MagicMock(content=content)
    return MagicMock(choices=[MagicMock(message=message)])


@pytest.fixture
def openai_client(monkeypatch):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("```html\n<h2>Statement</h2>\n```"))
    monkeypatch.setattr(llm_client, "get_client", lambda: client)
    return client


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("  <p>Hi</p> ") == "<p>Hi</p>"


class TestGenerateText:
    def test_returns_text_without_fences(self, openai_client):
        assert asyncio.run(generate_text("Write something")) == "<h2>Statement</h2>"

    def test_sends_system_and_user_messages(self, openai_client):
        asyncio.run(generate_text("Write something"))
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4.1-mini"
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert kwargs["messages"][1]["content"] == "Write something"

    def test_empty_completion_raises(self, openai_client):
        openai_client.chat.completions.create.return_value = completion("")
        with pytest.raises(ValueError):
            asyncio.run(generate_text("Write something"))


class TestGenerateDocument:
    def test_sop_prompt_names_university_and_country(self, openai_client):
        text = asyncio.run(generate_document("sop", "CS masters", country="Germany", university="TU Munich"))
        assert text == "<h2>Statement</h2>"
        prompt = openai_client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "Statement of Purpose" in prompt
        assert "TU Munich, Germany" in prompt
        assert "CS masters" in prompt

    def test_cover_letter_defaults_missing_country(self, openai_client):
        asyncio.run(generate_document("cover_letter", "Backend engineer"))
        prompt = openai_client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "Not specified" in prompt
