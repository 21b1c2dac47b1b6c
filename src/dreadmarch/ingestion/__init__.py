"""Ingestion layer.

Turns raw, loosely structured datasets into canonical
:class:`dreadmarch.models.dataset.NormalizedDataset` objects.
"""

from dreadmarch.ingestion.normalize import build_sector_index, merge_system, normalize, pixel_source_name

__all__ = ["build_sector_index", "merge_system", "normalize", "pixel_source_name"]
