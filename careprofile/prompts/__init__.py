"""
LLM prompt templates for the onboarding conversation.

  SYSTEM_PROMPT               agent persona, field priorities, stop conditions
  JSON_RESPONSE_INSTRUCTIONS  suffix for providers that answer in one JSON object
"""

from .onboarding import JSON_RESPONSE_INSTRUCTIONS, SYSTEM_PROMPT

__all__ = ["SYSTEM_PROMPT", "JSON_RESPONSE_INSTRUCTIONS"]
