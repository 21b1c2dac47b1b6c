"""dreadmarch - Dataset normalization and reactive state core for campaign maps."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dreadmarch")
except PackageNotFoundError:
    __version__ = "0+local"
from dreadmarch._cache import CacheStats, NormalizationCache
from dreadmarch.client import DatasetClient
from dreadmarch.config import CoreConfig
from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.exceptions import (
    CacheKeyError,
    DreadmarchConfigError,
    DreadmarchError,
    InvalidDatasetError,
    InvalidModeError,
    SystemNormalizationError,
    WorkerError,
    WorkerFaultError,
    WorkerRequestError,
    WorkerUnavailableError,
)
from dreadmarch.ingestion.normalize import normalize
from dreadmarch.models import (
    ApplicationState,
    CanonicalSystem,
    EditorJob,
    EditorState,
    Mode,
    NormalizationIssue,
    NormalizedDataset,
    Selection,
)
from dreadmarch.state.store import StateContainer, StoreActions, create_container
from dreadmarch.state.timers import LoopTimer, ManualTimer

__all__ = [
    "__version__",
    "ApplicationState",
    "CacheKeyError",
    "CacheStats",
    "CanonicalSystem",
    "CoreConfig",
    "DatasetClient",
    "Diagnostics",
    "DiagnosticsSink",
    "DreadmarchConfigError",
    "DreadmarchError",
    "EditorJob",
    "EditorState",
    "InvalidDatasetError",
    "InvalidModeError",
    "LoopTimer",
    "ManualTimer",
    "Mode",
    "NormalizationCache",
    "NormalizationIssue",
    "NormalizedDataset",
    "Selection",
    "StateContainer",
    "StoreActions",
    "SystemNormalizationError",
    "WorkerError",
    "WorkerFaultError",
    "WorkerRequestError",
    "WorkerUnavailableError",
    "create_container",
    "normalize",
]
