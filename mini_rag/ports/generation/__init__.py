"""Generation client exports."""

from .openai import OpenAIChatGenerator

__all__ = ["OpenAIChatGenerator"]
