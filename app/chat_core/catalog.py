"""
Purpose: Selectable completion models. One place so the UI select box and
preference loading agree on which ids are valid.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .models import DEFAULT_MODEL_ID


@dataclass(frozen=True)
class AIModel:
    id: str
    name: str
    description: str


AI_MODELS = [
    AIModel(
        DEFAULT_MODEL_ID,
        "Mistral 7B",
        "Fast and efficient model for general conversations",
    ),
    AIModel("openai/gpt-3.5-turbo", "GPT-3.5 Turbo", "Balanced performance and speed"),
    AIModel("openai/gpt-4", "GPT-4", "Most capable model for complex tasks"),
    AIModel(
        "anthropic/claude-3-haiku",
        "Claude 3 Haiku",
        "Fast and lightweight Claude model",
    ),
    AIModel(
        "anthropic/claude-3-sonnet",
        "Claude 3 Sonnet",
        "Balanced Claude model for most tasks",
    ),
]


def find_model(model_id: str) -> Optional[AIModel]:
    return next((m for m in AI_MODELS if m.id == model_id), None)


def known_model_id(model_id: Optional[str]) -> str:
    """Return model_id if it is in the catalog, else the default."""
    if model_id and find_model(model_id):
        return model_id
    return DEFAULT_MODEL_ID
