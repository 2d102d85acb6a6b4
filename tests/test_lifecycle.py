def _register(directory, user_id):
    return directory.register(user_id, f"{user_id}@example.com", user_id.title(), {"identityKey": "k"})


def test_close_unbinds_and_records_last_seen(relay, make_channel, clock):
    _register(relay.directory, "alice")
    channel = make_channel("alice")
    relay.lifecycle.open("alice", channel)
    assert relay.sessions.is_online("alice")

    clock.now = 5_000
    assert relay.lifecycle.close("alice", channel) == 5_000

    assert not relay.sessions.is_online("alice")
    assert relay.directory.get("alice").last_seen == 5_000
    assert channel.alive is False


def test_error_unbinds_without_touching_last_seen(relay, make_channel, clock):
    _register(relay.directory, "alice")
    channel = make_channel("alice")
    relay.lifecycle.open("alice", channel)

    clock.now = 9_000
    relay.lifecycle.error("alice", channel)

    assert not relay.sessions.is_online("alice")
    assert relay.directory.get("alice").last_seen == 1_000


def test_close_for_unregistered_identity_only_unbinds(relay, make_channel):
    channel = make_channel("ghost")
    relay.lifecycle.open("ghost", channel)

    assert relay.lifecycle.close("ghost", channel) is None
    assert not relay.sessions.is_online("ghost")


def test_stale_connection_close_keeps_new_session(relay, make_channel, clock):
    _register(relay.directory, "alice")
    old, new = make_channel("alice"), make_channel("alice")
    relay.lifecycle.open("alice", old)
    relay.lifecycle.open("alice", new)

    clock.now = 7_000
    assert relay.lifecycle.close("alice", old) is None

    assert relay.sessions.lookup("alice") is new
    assert relay.directory.get("alice").last_seen == 1_000
