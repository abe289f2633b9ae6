from sealkit.stats import CounterStat, QueueStat


def test_queue_stat_records_and_reports():
    stat = QueueStat("queue", 10)
    stat.record(4)
    stat.record(8)
    stat.snapshot()
    assert stat.snap.samples == 2
    assert stat.snap.total == 4 + 8
    assert stat.snap.last_size == 8
    report = stat.report()
    assert report.index(":") == 30
    assert "avg_size          6" in report


def test_queue_stat_clear_keeps_snapshot():
    stat = QueueStat("queue", 10)
    stat.record(5)
    stat.snapshot()
    stat.clear()
    assert stat.cur.samples == 0
    assert stat.cur.total == 0
    assert stat.snap.total == 5


def test_queue_stat_empty_average_is_zero():
    stat = QueueStat("empty", 3)
    stat.snapshot()
    assert stat.report().endswith("avg_size " + f"{0:10d}")


def test_queue_stat_disabled_ignores_records():
    stat = QueueStat("queue", 10, enabled=False)
    stat.record(7)
    assert stat.cur.samples == 0


def test_counter_stat():
    counter = CounterStat("hashes")
    for _ in range(3):
        counter.record()
    counter.snapshot()
    counter.clear()
    assert counter.count == 0
    assert counter.snap_count == 3
    assert counter.report().endswith(": count 3")


def test_counter_stat_disabled():
    counter = CounterStat("hashes", enabled=False)
    counter.record()
    counter.snapshot()
    assert counter.snap_count == 0