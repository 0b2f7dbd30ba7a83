"""Tests for the local key/value collection store."""
import asyncio

import pytest

from database import Database, DatabaseError


class TestCollections:
    async def test_absent_key_is_empty(self, db: Database):
        assert await db.load_collection("nothing") == []

    async def test_save_and_load(self, db: Database):
        await db.save_collection("k", [{"id": "1", "nome": "Santa Inês"}])
        assert await db.load_collection("k") == [{"id": "1", "nome": "Santa Inês"}]
        assert await db.collection_keys() == ["k"]

    async def test_clear_collection(self, db: Database):
        await db.save_collection("k", [{"id": "1"}])
        await db.clear_collection("k")
        assert await db.load_collection("k") == []

    async def test_corrupt_blob_raises(self, db: Database):
        async with db._get_connection() as conn:
            await conn.execute(
                "INSERT INTO local_storage (key, value, updated_at) VALUES (?,?,?)",
                ("k", "{not json", None),
            )
            await conn.commit()
        with pytest.raises(DatabaseError):
            await db.load_collection("k")

    async def test_non_list_blob_raises(self, db: Database):
        await db.save_collection("k", [])
        async with db._get_connection() as conn:
            await conn.execute("UPDATE local_storage SET value=? WHERE key=?", ('{"a": 1}', "k"))
            await conn.commit()
        with pytest.raises(DatabaseError):
            await db.load_collection("k")

    async def test_lock_serializes_read_modify_write(self, db: Database):
        async def append(n: int) -> None:
            async with db.collection_lock("k"):
                items = await db.load_collection("k")
                await asyncio.sleep(0)
                items.append({"n": n})
                await db.save_collection("k", items)

        await asyncio.gather(*(append(n) for n in range(10)))
        assert sorted(i["n"] for i in await db.load_collection("k")) == list(range(10))


class TestSettings:
    async def test_default_when_missing(self, db: Database):
        assert await db.get_setting("language", "pt") == "pt"

    async def test_roundtrip_json_values(self, db: Database):
        await db.set_setting("session", {"access_token": "abc", "expires_at": 10})
        assert await db.get_setting("session") == {"access_token": "abc", "expires_at": 10}

    async def test_delete(self, db: Database):
        await db.set_setting("x", 1)
        await db.delete_setting("x")
        assert await db.get_setting("x") is None

    async def test_clear_all_wipes_everything(self, db: Database):
        await db.save_collection("k", [{"id": "1"}])
        await db.set_setting("x", 1)
        await db.clear_all()
        assert await db.collection_keys() == []
        assert await db.get_setting("x") is None


async def test_close_and_reopen(tmp_path):
    path = tmp_path / "farm.db"
    first = Database(path)
    await first.save_collection("k", [{"id": "1"}])
    await first.close()

    second = Database(path)
    assert await second.load_collection("k") == [{"id": "1"}]
    await second.close()
