"""Pydantic models for rate samples, alert entries and analyzer verdicts."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

# ── Enums ──────────────────────────────────────────────────────────────

class AlertKind(str, Enum):
    APPRECIATION = "appreciation"
    SYSTEM = "system"


# ── Rate feed ─────────────────────────────────────────────────────────

class RateSample(BaseModel):
    """One observation of the SGD→EUR rate.

    ``time`` is the local HH:MM label, ``unix`` is epoch milliseconds.
    """

    time: str
    rate: float
    unix: int

    model_config = {"frozen": True}


# ── Alert log ─────────────────────────────────────────────────────────

def _new_entry_id() -> str:
    return uuid.uuid4().hex


class AlertLogEntry(BaseModel):
    id: str = Field(default_factory=_new_entry_id)
    timestamp: str
    message: str
    rate: float
    kind: AlertKind = AlertKind.APPRECIATION

    model_config = {"frozen": True}


# ── Analyzer verdict ──────────────────────────────────────────────────

class AppreciationVerdict(BaseModel):
    """Structured answer from the appreciation analyzer.

    Wire names are camelCase (``isAppreciating``); all four are required.
    """

    is_appreciating: bool = Field(alias="isAppreciating")
    subject: str
    body: str
    analysis: str

    model_config = {"frozen": True, "populate_by_name": True}
