"""Pluggable provider implementations for the external text model."""

from .openai_text import OpenAITextProvider

__all__ = ["OpenAITextProvider"]
