import pytest

from parley.matchmaker import TierQueue
from parley.profiles import Tier


def test_tier_queue_fifo():
    queue = TierQueue(Tier.A1)
    queue.push("a")
    queue.push("b")
    queue.push("c")

    assert len(queue) == 3
    assert queue.peek() == "a"
    assert queue.pop() == "a"
    assert queue.pop() == "b"
    assert list(queue) == ["c"]


def test_tier_queue_push_duplicate():
    queue = TierQueue(Tier.A1)
    queue.push("a")

    with pytest.raises(ValueError):
        queue.push("a")

    assert len(queue) == 1


def test_tier_queue_empty():
    queue = TierQueue(Tier.A1)

    assert queue.peek() is None
    assert queue.pop() is None
    assert queue.remove("a") is False
    assert queue.waiting_time("a") is None


def test_tier_queue_remove_from_middle():
    queue = TierQueue(Tier.B2)
    for identity in ("a", "b", "c"):
        queue.push(identity)

    assert queue.remove("b") is True
    assert list(queue) == ["a", "c"]
    assert "b" not in queue


def test_tier_queue_waiting_longer_than(mocker):
    queue = TierQueue(Tier.B2)
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=100)
    queue.push("a")
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=150)
    queue.push("b")
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=200)

    assert queue.waiting_time("a") == 100
    assert queue.waiting_longer_than(60) == ["a"]
    assert queue.waiting_longer_than(10) == ["a", "b"]


def test_queue_per_tier(queue_service):
    assert set(queue_service.queues) == set(Tier)
    assert all(len(queue) == 0 for queue in queue_service.queues.values())


def test_enqueue_dequeue(queue_service):
    queue_service.enqueue(Tier.A1, "a")
    queue_service.enqueue(Tier.A1, "b")
    queue_service.enqueue(Tier.C1, "c")

    assert queue_service.find("a") is Tier.A1
    assert queue_service.find("c") is Tier.C1
    assert "b" in queue_service
    assert queue_service.dequeue_next(Tier.A1) == "a"
    assert queue_service.dequeue_next(Tier.A1) == "b"
    assert queue_service.dequeue_next(Tier.A1) is None
    assert queue_service.dequeue_next(Tier.C1) == "c"


def test_enqueue_twice_in_any_tier(queue_service):
    queue_service.enqueue(Tier.A1, "a")

    with pytest.raises(ValueError):
        queue_service.enqueue(Tier.A1, "a")
    with pytest.raises(ValueError):
        queue_service.enqueue(Tier.B1, "a")

    assert queue_service.to_dict()["A1"] == 1
    assert queue_service.to_dict()["B1"] == 0


def test_remove_if_present(queue_service):
    queue_service.enqueue(Tier.B1, "a")
    queue_service.enqueue(Tier.B1, "b")

    assert queue_service.remove_if_present("a") is True
    assert queue_service.remove_if_present("a") is False
    assert queue_service.remove_if_present("nobody") is False
    assert list(queue_service[Tier.B1]) == ["b"]


def test_waiting_longer_than(queue_service, mocker):
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=0)
    queue_service.enqueue(Tier.A1, "a")
    queue_service.enqueue(Tier.C2, "c")
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=50)
    queue_service.enqueue(Tier.B1, "b")
    mocker.patch("parley.matchmaker.tier_queue.monotonic", return_value=100)

    assert sorted(queue_service.waiting_longer_than(60)) == ["a", "c"]


def test_to_dict(queue_service):
    queue_service.enqueue(Tier.A1, "a")
    queue_service.enqueue(Tier.A1, "b")

    assert queue_service.to_dict() == {
        "A1": 2, "A2": 0, "B1": 0, "B2": 0, "C1": 0, "C2": 0
    }
