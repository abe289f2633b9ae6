import pytest

from sealkit.planner import BufferPool, NodeId, Scheduler, WorkItem
from sealkit.sector import parameters_for

PARAMS = parameters_for(2048)


def list_pool():
    return BufferPool(1, factory=lambda n: [0] * n)


def summing_callback(log=None):
    def hash_cb(work):
        if log is not None:
            log.append((work.idx.layer(PARAMS), work.idx.node(PARAMS), work.is_leaf))
        if work.is_leaf:
            work.buf[0] = work.idx.node(PARAMS)
        else:
            work.buf[0] = sum(inp[0] for inp in work.inputs)

    return hash_cb


def test_node_id_round_trip():
    nid = NodeId.of(PARAMS, 3, 17)
    assert nid.layer(PARAMS) == 3
    assert nid.node(PARAMS) == 17


def test_node_id_ordering_by_layer_then_node():
    assert NodeId.of(PARAMS, 1, 63) < NodeId.of(PARAMS, 2, 0)
    assert NodeId.of(PARAMS, 1, 2) < NodeId.of(PARAMS, 1, 3)


def test_node_id_rejects_large_node():
    with pytest.raises(ValueError):
        NodeId.of(PARAMS, 1, PARAMS.node_mask + 1)


def test_work_item_leaf_num():
    item = WorkItem(NodeId.of(PARAMS, 1, 13), True)
    assert item.leaf_num(8) == 13 % 8


def test_buffer_pool_reuses_returned_buffers():
    pool = BufferPool(4)
    first = pool.get()
    assert first == bytearray(4)
    pool.put(first)
    assert len(pool) == 1
    assert pool.get() is first
    assert pool.created == 1


def test_scheduler_runs_whole_tree():
    pool = list_pool()
    scheduler = Scheduler(PARAMS, 64, 8, pool)
    root = scheduler.run(summing_callback())
    assert root[0] == sum(range(64))
    assert scheduler.hash_count == 64 + 8 + 1
    assert scheduler.is_done() is True
    assert pool.created < scheduler.hash_count


def test_scheduler_order_is_depth_first():
    log = []
    scheduler = Scheduler(PARAMS, 64, 8, list_pool())
    scheduler.run(summing_callback(log))
    assert log[:8] == [(1, n, True) for n in range(8)]
    assert log[8] == (2, 0, False)
    assert log[-1] == (3, 0, False)


def test_next_reports_remaining_work():
    scheduler = Scheduler(PARAMS, 8, 8, list_pool())
    results = []
    callback = summing_callback()
    while True:
        more = scheduler.next(callback)
        results.append(more)
        if not more:
            break
    assert results[-1] is False
    assert all(results[:-1])
    assert scheduler.next(callback) is False


def test_is_done_before_run_raises():
    scheduler = Scheduler(PARAMS, 8, 8, list_pool())
    with pytest.raises(RuntimeError):
        scheduler.is_done()


def test_reset_restarts():
    scheduler = Scheduler(PARAMS, 8, 8, list_pool())
    first = scheduler.run(summing_callback())[0]
    scheduler.reset()
    assert scheduler.hash_count == 0
    assert scheduler.run(summing_callback())[0] == first


def test_scheduler_rejects_bad_arity():
    with pytest.raises(ValueError):
        Scheduler(PARAMS, 8, 6, list_pool())