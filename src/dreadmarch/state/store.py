"""Reactive application state container.

The container holds one frozen :class:`ApplicationState` snapshot.  Every
action builds a new snapshot (sharing untouched fields with the previous
one), swaps it in and reports the changed path to the notification
scheduler.  Subscribers are called once per batch with the snapshot that
is current at delivery time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.exceptions import InvalidModeError
from dreadmarch.models.dataset import NormalizedDataset
from dreadmarch.models.state import ApplicationState, EditorJob, Mode, Selection
from dreadmarch.state import scopes
from dreadmarch.state.scheduler import DEFAULT_WINDOW, NotificationScheduler
from dreadmarch.state.scopes import ChangePath, as_path, batch_matches
from dreadmarch.state.timers import LoopTimer, Timer

_logger = logging.getLogger(__name__)

StateHandler = Callable[[ApplicationState], None]


@dataclass(slots=True, eq=False)
class _Subscription:
    handler: StateHandler
    scope: ChangePath
    active: bool = True


class StateContainer:
    """Single source of truth for application state.

    Usage::

        container = create_container(config, dataset)
        unsubscribe = container.subscribe(render_panel, ("selection",))
        container.actions.select_system("sol")
    """

    def __init__(
        self,
        initial: ApplicationState,
        *,
        diagnostics: DiagnosticsSink | None = None,
        timer: Timer | None = None,
        window: float = DEFAULT_WINDOW,
    ) -> None:
        self._state = initial
        self._diagnostics: DiagnosticsSink = diagnostics if diagnostics is not None else Diagnostics()
        self._subscriptions: list[_Subscription] = []
        self._scheduler = NotificationScheduler(
            self._deliver,
            timer=timer if timer is not None else LoopTimer(),
            window=window,
            diagnostics=self._diagnostics,
        )
        self._actions = StoreActions(self)

    @property
    def actions(self) -> StoreActions:
        return self._actions

    @property
    def diagnostics(self) -> DiagnosticsSink:
        return self._diagnostics

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def get_state(self) -> ApplicationState:
        return self._state

    def subscribe(self, handler: StateHandler, scope: str | Sequence[str] | None = None) -> Callable[[], None]:
        """Register *handler* for changes under *scope*.

        Returns an unsubscribe callable; calling it more than once is a no-op.
        """

        subscription = _Subscription(handler=handler, scope=as_path(scope))
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            self._subscriptions = [sub for sub in self._subscriptions if sub is not subscription]

        return unsubscribe

    def flush(self) -> None:
        """Deliver pending notifications immediately."""
        self._scheduler.flush()

    def close(self) -> None:
        """Drop pending notifications and all subscriptions."""
        self._scheduler.cancel()
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions = []

    def _commit(self, state: ApplicationState, path: ChangePath) -> None:
        self._state = state
        self._scheduler.schedule(path)

    def _deliver(self, batch: tuple[ChangePath, ...]) -> None:
        state = self._state
        for subscription in list(self._subscriptions):
            if not subscription.active or not batch_matches(subscription.scope, batch):
                continue
            try:
                subscription.handler(state)
            except Exception as exc:
                self._diagnostics.error(f"State subscriber failed: {exc}")
                _logger.debug("State subscriber failed", exc_info=True)


class StoreActions:
    """The fixed set of state transitions.

    Each action replaces the snapshot wholesale; nested structures are
    rebuilt, never modified.
    """

    def __init__(self, container: StateContainer) -> None:
        self._container = container

    def _state(self) -> ApplicationState:
        return self._container.get_state()

    def _replace(self, path: ChangePath, **update: Any) -> None:
        self._container._commit(self._state().model_copy(update=update), path)  # noqa: SLF001

    def select_system(self, system_id: str | None) -> None:
        self._replace(scopes.SELECTION, selection=Selection(system=system_id))

    def set_mode(self, mode: Mode | str) -> bool:
        parsed = Mode.parse(mode)
        if parsed is None:
            allowed = ", ".join(member.value for member in Mode)
            self._container.diagnostics.warn(
                f"set_mode: ignoring invalid mode {mode!r}",
                InvalidModeError(f"mode must be one of {allowed}"),
            )
            return False
        self._replace(scopes.MODE, mode=parsed)
        return True

    def set_dataset(self, dataset: NormalizedDataset) -> bool:
        if not isinstance(dataset, NormalizedDataset):
            self._container.diagnostics.error(
                f"set_dataset: expected a normalized dataset, got {type(dataset).__name__}"
            )
            return False
        self._replace(scopes.DATASET, dataset=dataset)
        return True

    def set_campaign(self, campaign: Any) -> None:
        self._replace(scopes.CAMPAIGN, campaign=campaign)

    def set_access(self, partial: Mapping[str, Any]) -> bool:
        if not isinstance(partial, Mapping):
            self._container.diagnostics.error(f"set_access: expected a mapping, got {type(partial).__name__}")
            return False
        self._replace(scopes.ACCESS, access={**self._state().access, **partial})
        return True

    def set_editor_enabled(self, enabled: bool) -> None:
        editor = self._state().editor.model_copy(update={"enabled": bool(enabled)})
        self._replace(scopes.EDITOR, editor=editor)

    def add_editor_job(self, job: EditorJob | Mapping[str, Any]) -> EditorJob | None:
        if not isinstance(job, EditorJob):
            try:
                job = EditorJob.model_validate(job)
            except ValidationError as exc:
                self._container.diagnostics.error(f"add_editor_job: invalid job: {exc}")
                return None
        current = self._state().editor
        editor = current.model_copy(update={"jobs": (*current.jobs, job)})
        self._replace(scopes.EDITOR_JOBS, editor=editor)
        return job

    def clear_editor_jobs(self) -> None:
        editor = self._state().editor.model_copy(update={"jobs": ()})
        self._replace(scopes.EDITOR_JOBS, editor=editor)


def create_container(
    config: Any,
    dataset: NormalizedDataset | None = None,
    campaign: Any = None,
    *,
    access: Mapping[str, Any] | None = None,
    mode: Mode = Mode.NAVCOM,
    diagnostics: DiagnosticsSink | None = None,
    timer: Timer | None = None,
    window: float = DEFAULT_WINDOW,
) -> StateContainer:
    """Create a container holding the initial session state."""
    if dataset is not None and not isinstance(dataset, NormalizedDataset):
        raise TypeError(f"dataset must be a NormalizedDataset, got {type(dataset).__name__}")

    initial = ApplicationState(
        config=config,
        dataset=dataset if dataset is not None else NormalizedDataset(),
        campaign=campaign,
        access=dict(access or {}),
        mode=mode,
    )
    return StateContainer(initial, diagnostics=diagnostics, timer=timer, window=window)
