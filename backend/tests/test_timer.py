from oddword.game.timer import CountdownTimer, time_left

T = 1_700_000_000_000


def test_time_left_counts_whole_seconds():
    assert time_left(T, T, 180) == 180
    assert time_left(T + 999, T, 180) == 180
    assert time_left(T + 1000, T, 180) == 179
    assert time_left(T + 179_999, T, 180) == 1
    assert time_left(T + 180_000, T, 180) == 0
    assert time_left(T + 181_000, T, 180) == 0


def test_expiry_fires_once():
    fired = []
    ticks = []
    timer = CountdownTimer(T, 180, on_tick=ticks.append, on_expire=lambda: fired.append(1))

    assert timer.evaluate(T + 181_000) == 0
    assert timer.evaluate(T + 182_000) == 0
    assert fired == [1]
    assert timer.expired
    assert ticks == [0, 0]


def test_no_expiry_before_deadline():
    fired = []
    timer = CountdownTimer(T, 180, on_expire=lambda: fired.append(1))
    assert timer.evaluate(T + 60_000) == 120
    assert fired == []
    assert not timer.expired


def test_cancelled_timer_never_fires():
    fired = []
    ticks = []
    timer = CountdownTimer(T, 180, on_tick=ticks.append, on_expire=lambda: fired.append(1))
    timer.cancel()
    timer.evaluate(T + 200_000)
    assert fired == []
    assert ticks == []
    assert timer.cancelled


def test_start_evaluates_immediately_and_cancel_stops_thread():
    now = [T]
    ticks = []
    timer = CountdownTimer(T, 180, on_tick=ticks.append, clock=lambda: now[0])
    timer.start(interval=60)
    assert ticks == [180]
    timer.cancel()
    assert timer.cancelled


def test_start_on_expired_round_fires_without_thread():
    fired = []
    timer = CountdownTimer(T, 10, on_expire=lambda: fired.append(1), clock=lambda: T + 11_000)
    timer.start(interval=60)
    assert fired == [1]
    timer.cancel()


def test_cancel_without_wait_does_not_join(mocker):
    timer = CountdownTimer(T, 180, clock=lambda: T)
    timer.start(interval=60)
    join = mocker.spy(timer._thread, 'join')

    timer.cancel(wait=False)

    assert timer.cancelled
    join.assert_not_called()
    timer._thread.join(timeout=1.0)
    assert not timer._thread.is_alive()
