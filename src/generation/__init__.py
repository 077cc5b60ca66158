"""
Answer generation module.

- Context building from ranked chunks ([Context i - Pages a-b] blocks)
- Conversation history formatting
- Prompt assembly with the fixed refusal sentence
"""

from .config import GenerationConfig
from .context_builder import build_context, format_history
from .prompt_builder import build_prompt
from .prompts import ANSWER_PROMPT, REFUSAL_SENTENCE, SUBJECT_PREAMBLES

__all__ = [
    "build_context",
    "format_history",
    "build_prompt",
    "GenerationConfig",
    "ANSWER_PROMPT",
    "REFUSAL_SENTENCE",
    "SUBJECT_PREAMBLES",
]
