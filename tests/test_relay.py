import threading

import pytest

from signal_relay.errors import ValidationError
from signal_relay.messages import MessageKind, SignalingMessage
from signal_relay.relay import RouteOutcome


def msg(kind, sender, recipient, payload):
    return SignalingMessage.create(kind, sender, recipient, payload)


def test_online_offer_is_delivered_once(relay, make_channel):
    bob = make_channel("bob")
    relay.lifecycle.open("bob", bob)

    outcome = relay.engine.route(msg("offer", "alice", "bob", "v=0 offer"))

    assert outcome is RouteOutcome.DELIVERED
    assert bob.frames == [{"type": "offer", "from": "alice", "offer": "v=0 offer"}]
    assert "bob" not in relay.pending


def test_offline_offer_and_answer_are_queued(relay):
    offer = msg("offer", "alice", "bob", "o")
    answer = msg("answer", "carol", "bob", "a")

    assert relay.engine.route(offer) is RouteOutcome.QUEUED
    assert relay.engine.route(answer) is RouteOutcome.QUEUED
    assert relay.pending.pending_for("bob") == [offer, answer]


def test_offline_ice_is_never_queued(relay):
    outcome = relay.engine.route(msg(MessageKind.ICE, "alice", "bob", {"candidate": "c1"}))

    assert outcome is RouteOutcome.DROPPED
    assert "bob" not in relay.pending


def test_online_ice_uses_candidate_field(relay, make_channel):
    bob = make_channel("bob")
    relay.lifecycle.open("bob", bob)

    relay.engine.route(msg("ice", "alice", "bob", "candidate:1"))

    assert bob.frames == [{"type": "ice", "from": "alice", "candidate": "candidate:1"}]


def test_failed_send_drops_instead_of_queueing(relay, make_channel):
    bob = make_channel("bob", writable=False)
    relay.lifecycle.open("bob", bob)

    assert relay.engine.route(msg("offer", "alice", "bob", "o")) is RouteOutcome.DROPPED
    assert "bob" not in relay.pending


def test_bind_flushes_queue_in_order_then_live(relay, make_channel):
    relay.engine.route(msg("offer", "alice", "bob", "o1"))
    relay.engine.route(msg("answer", "carol", "bob", "a1"))
    bob = make_channel("bob")

    assert relay.lifecycle.open("bob", bob) == 2
    relay.engine.route(msg("offer", "dave", "bob", "o2"))

    assert [f["from"] for f in bob.frames] == ["alice", "carol", "dave"]
    assert bob.frames[1] == {"type": "answer", "from": "carol", "answer": "a1"}
    assert relay.pending.pending_for("bob") == []


def test_drained_messages_are_not_redelivered(relay, make_channel):
    relay.engine.route(msg("offer", "alice", "bob", "o1"))
    first = make_channel("bob")
    relay.lifecycle.open("bob", first)
    relay.lifecycle.close("bob", first)

    second = make_channel("bob")
    assert relay.lifecycle.open("bob", second) == 0
    assert len(first.frames) == 1
    assert second.frames == []


@pytest.mark.parametrize(
    "sender,recipient,payload",
    [("", "bob", "o"), ("alice", "", "o"), ("alice", "bob", ""), (None, "bob", "o"), ("alice", "bob", None)],
)
def test_missing_fields_raise_validation_error(sender, recipient, payload):
    with pytest.raises(ValidationError):
        SignalingMessage.create("offer", sender, recipient, payload)


def test_concurrent_routes_and_bind_never_strand_messages(relay, make_channel):
    total = 500
    bob = make_channel("bob")
    started = threading.Event()

    def sender():
        for i in range(total):
            if i == total // 4:
                started.set()
            relay.engine.route(msg("offer", "alice", "bob", str(i)))

    worker = threading.Thread(target=sender)
    worker.start()
    started.wait()
    relay.lifecycle.open("bob", bob)
    worker.join()

    assert relay.pending.pending_for("bob") == []
    assert [f["offer"] for f in bob.frames] == [str(i) for i in range(total)]
