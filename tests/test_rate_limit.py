from ratewall.rate_limit import SlidingWindow


def test_record_counts_the_new_event():
    window = SlidingWindow()
    assert window.record("198.51.100.9", 0, 10_000) == 1
    assert window.record("198.51.100.9", 100, 10_000) == 2
    assert window.record("203.0.113.5", 100, 10_000) == 1


def test_record_drops_timestamps_older_than_window():
    window = SlidingWindow()
    window.record("198.51.100.9", 0, 10_000)
    window.record("198.51.100.9", 5_000, 10_000)

    assert window.record("198.51.100.9", 10_001, 10_000) == 2


def test_timestamp_exactly_one_window_old_is_kept():
    window = SlidingWindow()
    window.record("198.51.100.9", 0, 10_000)

    assert window.record("198.51.100.9", 10_000, 10_000) == 2


def test_sweep_forgets_idle_ips_and_keeps_active_ones():
    window = SlidingWindow()
    window.record("198.51.100.9", 0, 10_000)
    window.record("203.0.113.5", 9_000, 10_000)

    removed = window.sweep(15_000, 10_000)

    assert removed == 1
    assert window.active_ips == 1
    assert window.count("198.51.100.9") == 0
    assert window.count("203.0.113.5") == 1


def test_count_does_not_record():
    window = SlidingWindow()
    window.record("198.51.100.9", 0, 10_000)
    window.record("198.51.100.9", 1_000, 10_000)

    assert window.count("198.51.100.9") == 2
    assert window.count("198.51.100.9", now=10_500, window_ms=10_000) == 1
    assert window.count("198.51.100.9") == 2
