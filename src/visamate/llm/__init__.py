"""
VisaMate - LLM access.

Single request/response text generation for SOPs and cover letters.
"""

from visamate.llm.client import LLMNotConfigured, generate_document, strip_code_fences

__all__ = [
    "LLMNotConfigured",
    "generate_document",
    "strip_code_fences",
]
