"""Data models for datasets and application state."""

from dreadmarch.models._base import DreadmarchModel, PassThroughModel, is_absent
from dreadmarch.models.dataset import (
    ERRORS_FIELD,
    CanonicalSystem,
    NormalizationIssue,
    NormalizedDataset,
)
from dreadmarch.models.state import (
    ApplicationState,
    EditorJob,
    EditorState,
    Mode,
    Selection,
)

__all__ = [
    "ERRORS_FIELD",
    "ApplicationState",
    "CanonicalSystem",
    "DreadmarchModel",
    "EditorJob",
    "EditorState",
    "Mode",
    "NormalizationIssue",
    "NormalizedDataset",
    "PassThroughModel",
    "Selection",
    "is_absent",
]
