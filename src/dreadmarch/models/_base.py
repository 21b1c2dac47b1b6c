"""Base models shared by dataset and state shapes.

Every model is frozen: state transitions build new instances (usually via
``model_copy(update=...)``) instead of mutating existing ones, so a
snapshot handed to a subscriber never changes under its feet.

:class:`PassThroughModel` additionally keeps unknown keys.  Raw datasets
are shape-tolerant and may carry arbitrary fields that downstream
consumers still expect to find.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


def is_absent(value: Any) -> bool:
    """Return ``True`` when *value* means "not supplied".

    Only ``None`` counts.  Empty containers and empty strings are present
    values and must survive normalization untouched.
    """
    return value is None


class DreadmarchModel(BaseModel):
    """Frozen base for all dreadmarch models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )


class PassThroughModel(DreadmarchModel):
    """Frozen model that preserves unknown top-level keys."""

    model_config = ConfigDict(extra="allow")

    @property
    def extras(self) -> dict[str, Any]:
        """Unknown keys carried through from the source mapping."""
        return dict(self.model_extra or {})
