"""Tests for the JSON and Supabase session stores."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

from blackboard_bot.db import JsonSessionStore, create_store
from blackboard_bot.db.session_store import TABLE_NAME, SupabaseSessionStore
from blackboard_bot.models import CacheEntry, SessionSnapshot


def make_snapshot(credential="s_session_id=valid"):
    return SessionSnapshot(
        name="Jane Doe",
        credential=credential,
        ignore={"course": ["c1"]},
        alerts={
            "chan:UPCOMING_ASSIGNMENTS": {
                "summary": "UPCOMING_ASSIGNMENTS",
                "channel": "chan",
                "guild": "g",
                "interval": "WEEKLY",
                "hour_of_day": 20,
            }
        },
        cache={"courses": CacheEntry(value=[], updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))},
    )


class TestJsonSessionStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert JsonSessionStore(tmp_path / "clients.json").load_all() == {}

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "clients.json"
        store = JsonSessionStore(path)

        store.save("g:1", make_snapshot())
        store.save("g:2", make_snapshot("other"))

        loaded = JsonSessionStore(path).load_all()
        assert set(loaded) == {"g:1", "g:2"}
        assert loaded["g:1"] == make_snapshot()
        assert loaded["g:2"].credential == "other"
        assert list(path.parent.iterdir()) == [path]

    def test_save_replaces_entry(self, tmp_path):
        store = JsonSessionStore(tmp_path / "clients.json")
        store.save("g:1", make_snapshot())
        store.save("g:1", make_snapshot("rotated"))

        assert store.load_all()["g:1"].credential == "rotated"

    def test_delete(self, tmp_path):
        store = JsonSessionStore(tmp_path / "clients.json")
        store.save("g:1", make_snapshot())

        store.delete("g:1")
        store.delete("g:unknown")

        assert store.load_all() == {}

    def test_unreadable_entries_are_skipped(self, tmp_path):
        path = tmp_path / "clients.json"
        path.write_text(json.dumps({
            "g:1": make_snapshot().model_dump(mode="json"),
            "g:2": {"alerts": "not a mapping"},
        }))

        assert list(JsonSessionStore(path).load_all()) == ["g:1"]


class TestSupabaseSessionStore:
    def make_store(self, rows=None):
        client = MagicMock()
        table = client.table.return_value
        table.select.return_value.execute.return_value.data = rows or []
        return SupabaseSessionStore(client=client), client, table

    def test_load_all(self):
        rows = [
            {"identity": "g:1", "snapshot": make_snapshot().model_dump(mode="json")},
            {"identity": "g:2", "snapshot": {"ignore": ["bad"]}},
        ]
        store, client, table = self.make_store(rows)

        loaded = store.load_all()

        client.table.assert_called_with(TABLE_NAME)
        table.select.assert_called_once_with("identity, snapshot")
        assert list(loaded) == ["g:1"]
        assert loaded["g:1"].alerts["chan:UPCOMING_ASSIGNMENTS"].hour_of_day == 20

    def test_save_upserts_on_identity(self):
        store, _, table = self.make_store()

        store.save("g:1", make_snapshot())

        row = table.upsert.call_args.args[0]
        assert row["identity"] == "g:1"
        assert row["snapshot"]["credential"] == "s_session_id=valid"
        assert table.upsert.call_args.kwargs == {"on_conflict": "identity"}
        table.upsert.return_value.execute.assert_called_once()

    def test_delete(self):
        store, _, table = self.make_store()

        store.delete("g:1")

        table.delete.return_value.eq.assert_called_once_with("identity", "g:1")


def test_create_store_defaults_to_json(settings):
    store = create_store(settings)

    assert isinstance(store, JsonSessionStore)
    assert str(store.path) == settings.clients_json
