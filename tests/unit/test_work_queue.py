from __future__ import annotations

import threading
from collections import Counter

import pytest

from sqlindexer.errors import QueueClosedError
from sqlindexer.pipeline.work_queue import WorkQueue

ITEM_COUNT = 500
CONSUMERS = 5
CAPACITY = 3
JOIN_TIMEOUT = 5.0


def test_single_consumer_sees_items_in_push_order():
    queue: WorkQueue[int] = WorkQueue(capacity=10)
    for value in range(5):
        assert queue.push(value) is True
    queue.close()

    assert list(queue.drain()) == [0, 1, 2, 3, 4]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        WorkQueue(capacity=0)


def test_push_blocks_while_full_until_a_consumer_pops():
    queue: WorkQueue[int] = WorkQueue(capacity=1)
    queue.push(1)
    pushed = threading.Event()

    def producer() -> None:
        queue.push(2)
        pushed.set()

    thread = threading.Thread(target=producer)
    thread.start()

    assert not pushed.wait(timeout=0.2)
    assert len(queue) == 1

    assert queue.pop() == 1
    assert pushed.wait(timeout=JOIN_TIMEOUT)
    thread.join(timeout=JOIN_TIMEOUT)
    assert queue.pop() == 2
    assert queue.high_water_mark == 1


def test_close_lets_consumers_drain_then_signals_end_of_stream():
    queue: WorkQueue[str] = WorkQueue(capacity=4)
    queue.push("a")
    queue.push("b")
    queue.close()

    assert queue.pop() == "a"
    assert queue.pop() == "b"
    assert queue.pop() is None
    assert queue.pop() is None


def test_push_after_close_raises():
    queue: WorkQueue[int] = WorkQueue(capacity=2)
    queue.close()
    queue.close()

    with pytest.raises(QueueClosedError):
        queue.push(1)


def test_close_wakes_blocked_consumers():
    queue: WorkQueue[int] = WorkQueue(capacity=2)
    results: list = []
    threads = [threading.Thread(target=lambda: results.append(queue.pop())) for _ in range(3)]
    for thread in threads:
        thread.start()

    queue.close()
    for thread in threads:
        thread.join(timeout=JOIN_TIMEOUT)

    assert results == [None, None, None]


def test_abort_discards_items_and_unblocks_producer():
    queue: WorkQueue[int] = WorkQueue(capacity=1)
    queue.push(1)
    outcome: list = []
    thread = threading.Thread(target=lambda: outcome.append(queue.push(2)))
    thread.start()

    dropped = queue.abort()
    thread.join(timeout=JOIN_TIMEOUT)

    assert dropped == 1
    assert outcome == [False]
    assert queue.pop() is None
    assert queue.push(3) is False


def test_concurrent_consumers_receive_each_item_exactly_once():
    queue: WorkQueue[int] = WorkQueue(capacity=CAPACITY)
    seen: Counter = Counter()
    lock = threading.Lock()

    def consumer() -> None:
        for item in queue.drain():
            with lock:
                seen[item] += 1

    consumers = [threading.Thread(target=consumer) for _ in range(CONSUMERS)]
    for thread in consumers:
        thread.start()
    for value in range(ITEM_COUNT):
        queue.push(value)
    queue.close()
    for thread in consumers:
        thread.join(timeout=JOIN_TIMEOUT)

    assert sorted(seen) == list(range(ITEM_COUNT))
    assert set(seen.values()) == {1}
    assert queue.pushed == queue.popped == ITEM_COUNT
    assert queue.high_water_mark <= CAPACITY
