"""Tests for ClientRegistry and identity helpers."""

import pytest

from blackboard_bot.client import BlackboardClient
from blackboard_bot.models import SessionSnapshot
from blackboard_bot.registry import ClientRegistry, make_identity, split_identity

from tests.conftest import VALID_COOKIE, FakeBackend, FakeStore, block_forever

OTHER_COOKIE = "s_session_id=rotated"


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
async def registry(settings, store, clock):
    backends = []

    def factory():
        backend = FakeBackend(settings, valid=(VALID_COOKIE, OTHER_COOKIE))
        backends.append(backend)
        return BlackboardClient(settings, backend=backend, clock=clock, alert_sleep=block_forever)

    registry = ClientRegistry(settings, store=store, client_factory=factory)
    registry.backends = backends
    yield registry
    await registry.shutdown()


def test_identity_round_trip():
    identity = make_identity(42, 1001)

    assert identity == "42:1001"
    assert split_identity(identity) == ("42", "1001")


@pytest.mark.parametrize("identity", ["", "42", ":1001", "42:"])
def test_split_identity_rejects_malformed(identity):
    with pytest.raises(ValueError):
        split_identity(identity)


async def test_register_valid_credential(registry, store):
    client = await registry.register("g:1", VALID_COOKIE)

    assert client is registry.get("g:1")
    assert "g:1" in registry and len(registry) == 1
    assert store.snapshots["g:1"].credential == VALID_COOKIE
    assert store.snapshots["g:1"].name == "Jane Doe"


async def test_register_invalid_credential(registry, store):
    assert await registry.register("g:1", "s_session_id=forged") is None

    assert "g:1" not in registry
    assert store.snapshots == {}
    assert registry.backends[0].closed


async def test_reregister_keeps_preferences_and_closes_old_client(registry, store):
    old = await registry.register("g:1", VALID_COOKIE)
    old.ignore("course", "c1")
    await old.persist.drain()
    assert store.snapshots["g:1"].ignore == {"course": ["c1"]}

    new = await registry.register("g:1", OTHER_COOKIE)

    assert new is not old
    assert new.ignored("course", "c1")
    assert new.export().credential == OTHER_COOKIE
    assert registry.backends[0].closed
    assert not old.is_authenticated


async def test_failed_reregister_keeps_existing_client(registry):
    old = await registry.register("g:1", VALID_COOKIE)

    assert await registry.register("g:1", "bad") is None

    assert registry.get("g:1") is old
    assert old.is_authenticated


async def test_persist_saves_snapshot(registry, store):
    client = await registry.register("g:1", VALID_COOKIE)
    store.saves.clear()

    client.deploy_alert({
        "summary": "PAST_DUE_ASSIGNMENTS",
        "channel": "chan",
        "guild": "g",
        "interval": "DAILY",
        "hour_of_day": 8,
    })
    await client.persist.drain()

    assert store.saves == ["g:1"]
    assert list(store.snapshots["g:1"].alerts) == ["chan:PAST_DUE_ASSIGNMENTS"]


async def test_store_failures_are_logged(registry, store, caplog):
    client = await registry.register("g:1", VALID_COOKIE)
    store.fail = True

    client.ignore("course", "c1")
    await client.persist.drain()

    assert "Failed to save session for g:1" in caplog.text


async def test_signals_are_forwarded_with_identity(registry, store):
    expired, dispatched = [], []
    registry.expired.connect(expired.append)
    registry.dispatch.connect(lambda *args: dispatched.append(args))
    client = await registry.register("g:1", VALID_COOKIE)

    client.dispatch.emit("guild", "chan", "text", None)
    client.expired.emit()
    await client.expired.drain()

    assert dispatched == [("g:1", "guild", "chan", "text", None)]
    assert expired == ["g:1"]


async def test_recover(registry, store):
    store.snapshots = {
        "g:1": SessionSnapshot(name="Jane Doe", credential=VALID_COOKIE),
        "g:2": SessionSnapshot(credential="s_session_id=stale", ignore={"course": ["c7"]}),
    }
    expired = []
    registry.expired.connect(expired.append)

    assert await registry.recover() == 1

    assert len(registry) == 2
    assert registry.get("g:1").is_authenticated
    assert not registry.get("g:2").is_authenticated
    assert registry.get("g:2").ignored("course", "c7")
    assert expired == ["g:2"]
    assert store.snapshots["g:2"].credential is None
    assert store.snapshots["g:2"].ignore == {"course": ["c7"]}


async def test_remove(registry, store):
    await registry.register("g:1", VALID_COOKIE)

    assert await registry.remove("g:1") is True

    assert "g:1" not in registry
    assert "g:1" not in store.snapshots
    assert registry.backends[0].closed


async def test_shutdown_closes_every_client(registry):
    await registry.register("g:1", VALID_COOKIE)
    await registry.register("g:2", VALID_COOKIE)

    await registry.shutdown()

    assert len(registry) == 0
    assert all(backend.closed for backend in registry.backends)
