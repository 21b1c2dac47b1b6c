"""Canonical dataset shapes produced by the normalization engine."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from dreadmarch.models._base import DreadmarchModel, PassThroughModel, is_absent

#: Result field reserved for per-system failures.  A raw dataset key with
#: this name is not passed through.
ERRORS_FIELD = "normalization_errors"


class CanonicalSystem(PassThroughModel):
    """One system with its side-table data folded in.

    Base record fields are kept as extras.  ``coords``, ``grid`` and
    ``sector`` are always present as attributes; ``None`` means the value
    could be resolved from neither the record nor its side table.
    """

    coords: Any = None
    grid: Any = None
    sector: Any = None

    @property
    def has_coords(self) -> bool:
        return not is_absent(self.coords)

    @property
    def has_grid(self) -> bool:
        return not is_absent(self.grid)

    @property
    def has_sector(self) -> bool:
        return not is_absent(self.sector)

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping with base fields plus the three canonical keys."""
        data = self.extras
        data["coords"] = self.coords
        data["grid"] = self.grid
        data["sector"] = self.sector
        return data


class NormalizationIssue(DreadmarchModel):
    """A system dropped because its record could not be merged."""

    system_id: str
    message: str


class NormalizedDataset(PassThroughModel):
    """Raw dataset with ``systems`` replaced by canonical records.

    Every other top-level field of the raw dataset is carried over by
    reference (shallow copy).  Mutating those nested structures after
    normalization is unsupported: cached results share them.
    """

    systems: dict[str, CanonicalSystem] = Field(default_factory=dict)
    normalization_errors: tuple[NormalizationIssue, ...] | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.normalization_errors)

    def system(self, system_id: str) -> CanonicalSystem | None:
        return self.systems.get(system_id)

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping form, as a consumer of the raw format expects it."""
        data = self.extras
        data["systems"] = {system_id: system.to_dict() for system_id, system in self.systems.items()}
        if self.normalization_errors is not None:
            data[ERRORS_FIELD] = [issue.model_dump() for issue in self.normalization_errors]
        return data
