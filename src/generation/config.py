"""Configuration for answer generation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """Settings for prompt assembly and model sampling."""

    temperature: float = 0.2
    max_output_tokens: int = 2048
    top_k: int = 40
    top_p: float = 0.95
    history_messages: int = 6
