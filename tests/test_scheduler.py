from __future__ import annotations

from dreadmarch.state.scheduler import NotificationScheduler
from dreadmarch.state.scopes import as_path, batch_matches, scope_matches
from dreadmarch.state.timers import ManualTimer


def test_manual_timer_fires_in_deadline_order() -> None:
    timer = ManualTimer()
    fired: list[str] = []
    timer.call_later(2.0, lambda: fired.append("late"))
    timer.call_later(1.0, lambda: fired.append("early"))

    assert timer.advance(1.5) == 1
    assert fired == ["early"]
    assert timer.now == 1.5

    assert timer.advance(1.0) == 1
    assert fired == ["early", "late"]


def test_manual_timer_cancelled_handle_does_not_fire() -> None:
    timer = ManualTimer()
    fired: list[int] = []
    handle = timer.call_later(1.0, lambda: fired.append(1))

    handle.cancel()

    assert timer.pending == 0
    assert timer.advance(2.0) == 0
    assert fired == []


def test_manual_timer_runs_callbacks_scheduled_during_advance() -> None:
    timer = ManualTimer()
    fired: list[float] = []

    def first() -> None:
        fired.append(timer.now)
        timer.call_later(0.5, lambda: fired.append(timer.now))

    timer.call_later(1.0, first)

    assert timer.advance(2.0) == 2
    assert fired == [1.0, 1.5]


def test_scheduler_batches_and_deduplicates_paths() -> None:
    timer = ManualTimer()
    batches: list[tuple] = []
    scheduler = NotificationScheduler(batches.append, timer=timer, window=0.01)

    scheduler.schedule(("selection",))
    scheduler.schedule(("mode",))
    scheduler.schedule(("selection",))

    assert scheduler.armed
    assert scheduler.pending == (("selection",), ("mode",))
    assert timer.pending == 1

    timer.advance(0.01)

    assert batches == [(("selection",), ("mode",))]
    assert not scheduler.armed
    assert scheduler.pending == ()


def test_scheduler_flush_and_cancel() -> None:
    timer = ManualTimer()
    batches: list[tuple] = []
    scheduler = NotificationScheduler(batches.append, timer=timer, window=0.01)

    scheduler.flush()
    assert batches == []

    scheduler.schedule(("campaign",))
    scheduler.flush()
    assert batches == [(("campaign",),)]
    assert timer.pending == 0

    scheduler.schedule(("access",))
    scheduler.cancel()
    timer.advance(1.0)
    assert batches == [(("campaign",),)]


def test_scope_helpers() -> None:
    assert as_path(None) == ()
    assert as_path("selection") == ("selection",)
    assert as_path(["editor", "jobs"]) == ("editor", "jobs")

    assert scope_matches(("editor",), ("editor", "jobs"))
    assert scope_matches(("editor", "jobs"), ("editor", "jobs"))
    assert not scope_matches(("editor", "jobs"), ("editor",))
    assert not scope_matches(("selection",), ("mode",))

    assert batch_matches((), [("anything",)])
    assert batch_matches(("mode",), [("selection",), ("mode",)])
    assert not batch_matches(("mode",), [("selection",)])


def test_scheduler_delivers_immediately_when_timer_fails(diagnostics) -> None:
    class _NoLoopTimer:
        def call_later(self, delay: float, callback) -> None:
            raise RuntimeError("no running event loop")

    batches: list[tuple] = []
    scheduler = NotificationScheduler(batches.append, timer=_NoLoopTimer(), diagnostics=diagnostics)

    scheduler.schedule(("selection",))

    assert batches == [(("selection",),)]
    assert scheduler.pending == ()
    assert not scheduler.armed
    assert diagnostics.messages("error") == [
        "Notification timer unavailable, delivering immediately: no running event loop"
    ]
