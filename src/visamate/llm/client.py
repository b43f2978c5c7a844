"""
VisaMate - LLM Client.

Wraps the OpenAI chat completions API. Every generation call goes through
generate_text() so model selection and logging stay in one place.
"""

import logging
import re
from typing import Literal

from openai import AsyncOpenAI

from visamate.config import get_settings

logger = logging.getLogger(__name__)

DocumentType = Literal["sop", "cover_letter"]

# Singleton client instance
_client: AsyncOpenAI | None = None

SYSTEM_PROMPT = (
    "You write visa and university application documents. "
    "Return only HTML using <h2>, <h3>, <p>, <strong>, <ul> and <li>."
)

DOCUMENT_BRIEFS: dict[str, str] = {
    "sop": "a Statement of Purpose (800-1000 words) for studying at {university}, {country}",
    "cover_letter": "a professional cover letter (300-500 words) for an application in {country}",
}

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")


class LLMNotConfigured(RuntimeError):
    """No API key is configured for document generation."""


def get_client() -> AsyncOpenAI:
    """
    Get the OpenAI client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        api_key = get_settings().openai_api_key
        if not api_key:
            raise LLMNotConfigured("OPENAI_API_KEY is not set")
        _client = AsyncOpenAI(api_key=api_key)

    return _client


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```html ... ```) if present."""
    text = text.strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


async def generate_text(prompt: str, *, system_prompt: str = SYSTEM_PROMPT, temperature: float = 0.7) -> str:
    """Single chat completion; returns the cleaned text."""
    settings = get_settings()
    client = get_client()

    response = await client.chat.completions.create(
        model=settings.openai_model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        temperature=temperature,
    )
    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise ValueError("No content generated")

    logger.info(f"Generated {len(content)} chars with {settings.openai_model}")
    return strip_code_fences(content)


async def generate_document(
    document_type: DocumentType,
    details: str,
    country: str | None = None,
    university: str | None = None,
) -> str:
    """Generate an SOP or cover letter from the viewer's free-text details."""
    brief = DOCUMENT_BRIEFS[document_type].format(
        country=country or "Not specified",
        university=university or "Not specified",
    )
    prompt = f"Write {brief}.\n\nAdditional information provided by the user:\n{details}"
    return await generate_text(prompt)
