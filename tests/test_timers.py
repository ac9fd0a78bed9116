from stayawake.timers import SchedScheduler, TkScheduler


class FakeWidget:
    """Stands in for a tkinter widget: after() only queues."""

    def __init__(self):
        self.queued = []

    def after(self, ms, callback):
        self.queued.append((ms, callback))

    def run_pending(self):
        queued, self.queued = self.queued, []
        for _, callback in queued:
            callback()


def test_tk_call_later_converts_to_milliseconds():
    widget = FakeWidget()
    scheduler = TkScheduler(widget)

    scheduler.call_later(0.042, lambda: None)
    scheduler.call_later(-1, lambda: None)

    assert [ms for ms, _ in widget.queued] == [42, 0]


def test_tk_call_every_reschedules_itself():
    widget = FakeWidget()
    scheduler = TkScheduler(widget)
    ticks = []

    scheduler.call_every(1.0, lambda: ticks.append(1))
    for _ in range(3):
        widget.run_pending()

    assert len(ticks) == 3
    assert [ms for ms, _ in widget.queued] == [1000]


def test_tk_failing_callback_keeps_ticking():
    widget = FakeWidget()
    scheduler = TkScheduler(widget)
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("tick failure")

    scheduler.call_every(1.0, flaky)
    widget.run_pending()
    widget.run_pending()

    assert len(calls) == 2


def test_tk_stop_turns_queued_callbacks_into_noops():
    widget = FakeWidget()
    scheduler = TkScheduler(widget)
    fired = []

    scheduler.call_later(0.1, lambda: fired.append("waypoint"))
    scheduler.call_every(1.0, lambda: fired.append("tick"))
    scheduler.stop()
    widget.run_pending()
    scheduler.call_later(0.1, lambda: fired.append("late"))

    assert fired == []
    assert widget.queued == []


def test_sched_runs_in_deadline_order_until_stopped():
    scheduler = SchedScheduler()
    order = []

    scheduler.call_later(0.02, lambda: order.append("second"))
    scheduler.call_later(0.0, lambda: order.append("first"))

    def finish():
        order.append("stop")
        scheduler.stop()

    scheduler.call_later(0.03, finish)
    scheduler.call_later(5.0, lambda: order.append("never"))
    scheduler.run()

    assert order == ["first", "second", "stop"]


def test_sched_call_every_survives_errors():
    scheduler = SchedScheduler()
    calls = []

    def flaky():
        calls.append(scheduler.now())
        if len(calls) == 3:
            scheduler.stop()
        raise RuntimeError("tick failure")

    scheduler.call_every(0.01, flaky)
    scheduler.run()

    assert len(calls) == 3
    assert calls == sorted(calls)
