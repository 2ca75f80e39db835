from dreamscape.core.timers import ManualScheduler


def test_call_every_fires_on_each_period():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_every(10.0, lambda: fired.append(scheduler.now()))

    assert scheduler.advance(35.0) == 3
    assert fired == [10.0, 20.0, 30.0]
    assert scheduler.now() == 35.0
    assert handle.period == 10.0


def test_cancel_stops_future_firings():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_every(5.0, lambda: fired.append(1))
    scheduler.advance(5.0)
    handle.cancel()
    scheduler.advance(50.0)

    assert fired == [1]
    assert handle.cancelled
    assert scheduler.pending() == []


def test_call_later_fires_once_in_deadline_order():
    scheduler = ManualScheduler(start=100.0)
    order = []
    scheduler.call_later(3.0, lambda: order.append("late"))
    scheduler.call_later(1.0, lambda: order.append("early"))

    scheduler.advance(2.0)
    assert order == ["early"]
    scheduler.advance(2.0)
    assert order == ["early", "late"]
    scheduler.advance(10.0)
    assert order == ["early", "late"]


def test_failing_callback_does_not_break_scheduler():
    scheduler = ManualScheduler()
    fired = []

    def boom():
        raise RuntimeError("boom")

    scheduler.call_every(1.0, boom)
    scheduler.call_every(1.0, lambda: fired.append(scheduler.now()))
    scheduler.advance(3.0)

    assert fired == [1.0, 2.0, 3.0]
