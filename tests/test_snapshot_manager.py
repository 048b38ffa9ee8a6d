import dataclasses
import threading

import pytest

from awesome_search.core.errors import IndexUnavailable, InvalidGeneration
from awesome_search.core.services.index_builder import IndexBuilder
from awesome_search.core.services.snapshot_manager import SnapshotManager
from awesome_search.core.strategies.tokenizer import Tokenizer
from tests.conftest import make_snapshot, make_widget_snapshot


@pytest.fixture
def builder():
    return IndexBuilder(Tokenizer())


@pytest.fixture
def first(builder):
    return builder.build(make_snapshot())


@pytest.fixture
def second(builder):
    return builder.build(make_widget_snapshot(5))


def test_acquire_before_publish():
    manager = SnapshotManager()
    assert not manager.is_ready
    assert manager.current() is None
    with pytest.raises(IndexUnavailable):
        manager.acquire()


def test_publish_numbers_generations(first, second):
    manager = SnapshotManager()

    one = manager.publish(first)
    two = manager.publish(second)

    assert (one.number, two.number) == (1, 2)
    assert manager.current() is two
    assert manager.is_ready
    # builder output is left untouched
    assert first.number == 0


def test_lease_pins_generation_across_publish(first, second):
    manager = SnapshotManager()
    manager.publish(first)

    lease = manager.acquire()
    manager.publish(second)

    assert lease.generation.snapshot_id == "test-snapshot"
    assert lease.number == 1
    assert manager.live_generations() == [1, 2]

    with manager.acquire() as generation:
        assert generation.snapshot_id == "widgets"
        assert generation.number == 2

    lease.release()
    assert manager.live_generations() == [2]


def test_retire_callback_after_last_lease(first, second):
    retired = []
    manager = SnapshotManager(on_retire=lambda g: retired.append(g.number))
    manager.publish(first)

    a = manager.acquire()
    b = manager.acquire()
    manager.publish(second)
    a.release()
    assert retired == []

    b.release()
    assert retired == [1]

    b.release()  # releasing twice is a no-op
    assert retired == [1]


def test_unleased_generation_retires_on_publish(first, second):
    retired = []
    manager = SnapshotManager()
    manager.add_retire_callback(lambda g: retired.append(g.number))

    manager.publish(first)
    manager.publish(second)

    assert retired == [1]
    assert manager.live_generations() == [2]


def test_failing_retire_callback_does_not_break_publish(first, second):
    def explode(generation):
        raise RuntimeError("boom")

    manager = SnapshotManager(on_retire=explode)
    manager.publish(first)
    manager.publish(second)

    assert manager.current().number == 2


@pytest.mark.parametrize(
    "corrupt",
    [
        lambda g: dataclasses.replace(g, content_hash=""),
        lambda g: dataclasses.replace(g, documents=g.documents[:-1]),
        lambda g: dataclasses.replace(g, _ordinals={}),
    ],
)
def test_invalid_generation_rejected(first, second, corrupt):
    manager = SnapshotManager()
    manager.publish(first)

    with pytest.raises(InvalidGeneration):
        manager.publish(corrupt(second))

    assert manager.current().number == 1
    assert manager.current().snapshot_id == "test-snapshot"
    assert manager.live_generations() == [1]


def test_readers_see_whole_generations(builder):
    generations = [builder.build(make_widget_snapshot(n)) for n in (3, 6, 9)]
    manager = SnapshotManager()
    manager.publish(generations[0])

    errors = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            with manager.acquire() as generation:
                n_docs = len(generation.documents)
                if len(generation.snapshot.repositories) != n_docs or len(generation.columns) != n_docs:
                    errors.append(generation.number)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for _ in range(50):
        for generation in generations:
            manager.publish(generation)
    stop.set()
    for t in threads:
        t.join()

    assert errors == []
    assert manager.live_generations() == [manager.current().number]
