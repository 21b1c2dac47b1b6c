"""Application state snapshot models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from dreadmarch.models._base import DreadmarchModel
from dreadmarch.models.dataset import NormalizedDataset


class Mode(StrEnum):
    """Top-level interaction modes of the map UI."""

    NAVCOM = "navcom"
    STRATEGIC = "strategic"
    EDITOR = "editor"

    @classmethod
    def parse(cls, value: Any) -> Mode | None:
        """Return the matching member, or ``None`` for anything else."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class Selection(DreadmarchModel):
    system: str | None = None


class EditorJob(DreadmarchModel):
    """A queued edit against a dataset."""

    target_dataset: str
    op_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class EditorState(DreadmarchModel):
    enabled: bool = False
    jobs: tuple[EditorJob, ...] = ()


class ApplicationState(DreadmarchModel):
    """Complete application snapshot.

    Instances are never modified.  Each action produces a new snapshot that
    shares every untouched field with the previous one.
    """

    config: Any = None
    dataset: NormalizedDataset = Field(default_factory=NormalizedDataset)
    campaign: Any = None
    access: dict[str, Any] = Field(default_factory=dict)
    selection: Selection = Field(default_factory=Selection)
    mode: Mode = Mode.NAVCOM
    editor: EditorState = Field(default_factory=EditorState)
