"""
Safety categories, thresholds and ratings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class HarmCategory(str, Enum):
    """Category of potentially harmful content."""

    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"
    CIVIC_INTEGRITY = "HARM_CATEGORY_CIVIC_INTEGRITY"


class HarmBlockThreshold(str, Enum):
    """Probability at and above which content is blocked."""

    UNSPECIFIED = "HARM_BLOCK_THRESHOLD_UNSPECIFIED"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_NONE = "BLOCK_NONE"
    OFF = "OFF"


class SafetySetting(BaseModel):
    """Blocking threshold for one harm category."""

    model_config = ConfigDict(frozen=True)

    category: HarmCategory
    threshold: HarmBlockThreshold

    def to_wire(self) -> dict[str, Any]:
        return {"category": self.category.value, "threshold": self.threshold.value}


class SafetyRating(BaseModel):
    """Rating the service attached to a candidate.

    ``category`` and ``probability`` are kept as strings: the service adds
    values over time and a rating must never fail to decode.
    """

    model_config = ConfigDict(frozen=True)

    category: str
    probability: str
    blocked: bool = False
