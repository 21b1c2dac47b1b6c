"""Dataset normalization.

Raw datasets spread system information over several top-level tables:

- base records in ``systems``
- pixel coordinates in ``system_pixels`` (or the older ``endpoint_pixels``)
- grid positions in ``system_grid``
- sector membership in ``sectors`` (sector name -> list of system ids)

:func:`normalize` folds those tables into one record per system.  It is a
pure function of its input so results can be cached by content.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.exceptions import InvalidDatasetError, SystemNormalizationError
from dreadmarch.models._base import is_absent
from dreadmarch.models.dataset import ERRORS_FIELD, CanonicalSystem, NormalizationIssue, NormalizedDataset

_logger = logging.getLogger(__name__)

PIXEL_SOURCES: tuple[str, ...] = ("system_pixels", "endpoint_pixels")


def _empty_dataset() -> NormalizedDataset:
    return NormalizedDataset(systems={})


def _side_table(raw: Mapping[str, Any], key: str, diagnostics: DiagnosticsSink) -> Mapping[Any, Any]:
    value = raw.get(key)
    if is_absent(value):
        return {}
    if not diagnostics.validate(isinstance(value, Mapping), f"{key} is not a mapping; ignoring it"):
        return {}
    return value


def pixel_source_name(raw: Mapping[str, Any]) -> str | None:
    """Name of the table coordinates are read from, or ``None``."""
    for key in PIXEL_SOURCES:
        if not is_absent(raw.get(key)):
            return key
    return None


def build_sector_index(sectors: Mapping[Any, Any]) -> dict[Any, Any]:
    """Reverse ``sectors`` into ``{system_id: sector_name}``.

    When an id is listed under more than one sector, the first sector in
    insertion order wins.  Non-list entries are skipped.
    """

    index: dict[Any, Any] = {}
    for sector_name, members in sectors.items():
        if is_absent(members) or isinstance(members, (str, bytes)) or not isinstance(members, Sequence):
            continue
        for system_id in members:
            try:
                index.setdefault(system_id, sector_name)
            except TypeError:
                _logger.debug("Skipping unhashable system id in sector %r", sector_name)
    return index


def _valid_coords(coords: Any) -> bool:
    return isinstance(coords, Sequence) and not isinstance(coords, (str, bytes)) and len(coords) >= 2


def merge_system(
    system_id: str,
    record: Any,
    *,
    pixels: Mapping[Any, Any],
    grid: Mapping[Any, Any],
    sector_index: Mapping[Any, Any],
) -> CanonicalSystem:
    """Merge one raw record with its side-table entries.

    Own fields win; the side table is consulted only when the own field is
    absent.  Raises :class:`SystemNormalizationError` for records that are
    not mappings.
    """

    if not isinstance(system_id, str):
        raise SystemNormalizationError(
            f"system id must be a string, got {type(system_id).__name__}",
            system_id=str(system_id),
        )
    base: Any = {} if is_absent(record) else record
    if not isinstance(base, Mapping):
        raise SystemNormalizationError(
            f"record must be a mapping, got {type(base).__name__}",
            system_id=system_id,
        )

    coords = base.get("coords")
    if is_absent(coords):
        coords = pixels.get(system_id)

    grid_value = base.get("grid")
    if is_absent(grid_value):
        grid_value = grid.get(system_id)

    sector = base.get("sector")
    if is_absent(sector):
        sector = sector_index.get(system_id)

    merged = dict(base)
    merged["coords"] = coords
    merged["grid"] = grid_value
    merged["sector"] = sector
    return CanonicalSystem.model_validate(merged)


def normalize(raw: Any, *, diagnostics: DiagnosticsSink | None = None) -> NormalizedDataset:
    """Normalize a raw dataset.

    Never raises.  A non-mapping input yields an empty dataset; systems
    whose records cannot be merged are dropped and reported on
    ``normalization_errors``.
    """

    sink: DiagnosticsSink = diagnostics if diagnostics is not None else Diagnostics()

    if not isinstance(raw, Mapping):
        fallback = sink.critical_with_fallback(
            "normalize: empty or invalid raw dataset",
            InvalidDatasetError(f"expected a mapping, got {type(raw).__name__}"),
            _empty_dataset,
        )
        return fallback if fallback is not None else _empty_dataset()

    systems_src = _side_table(raw, "systems", sink)
    pixel_key = pixel_source_name(raw)
    pixels = _side_table(raw, pixel_key, sink) if pixel_key is not None else {}
    grid = _side_table(raw, "system_grid", sink)
    sector_index = build_sector_index(_side_table(raw, "sectors", sink))

    systems: dict[str, CanonicalSystem] = {}
    issues: list[NormalizationIssue] = []

    for system_id, record in systems_src.items():
        try:
            system = merge_system(
                system_id,
                record,
                pixels=pixels,
                grid=grid,
                sector_index=sector_index,
            )
        except Exception as exc:
            issues.append(NormalizationIssue(system_id=str(system_id), message=str(exc)))
            sink.warn(f"Failed to normalize system {system_id}: {exc}")
            continue

        if system.has_coords:
            sink.validate(_valid_coords(system.coords), f"System {system_id} has invalid coords format")
        systems[system_id] = system

    result: dict[str, Any] = {}
    for key, value in raw.items():
        if key == "systems":
            continue
        if key == ERRORS_FIELD or not isinstance(key, str):
            sink.warn(f"Raw dataset field {key!r} is reserved or not a string and was dropped")
            continue
        result[key] = value
    result["systems"] = systems

    if issues:
        sink.warn("Normalization completed with errors", [issue.model_dump() for issue in issues])
        result[ERRORS_FIELD] = tuple(issues)
    return NormalizedDataset.model_validate(result)
