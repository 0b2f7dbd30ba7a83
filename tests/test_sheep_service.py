"""Tests for SheepService and the weighing history."""
from datetime import date, datetime

import pytest

from config import AnimalStatus, HealthStatus, Sex, SHEEP_STORAGE_KEY
from models.entities import Sheep
from services.sheep_service import SheepService, WEIGHT_TABLE


@pytest.fixture
def local_sheep(db, local_backend) -> SheepService:
    return SheepService(db, local_backend)


@pytest.fixture
def remote_sheep(db, remote_backend, remote) -> SheepService:
    return SheepService(db, remote_backend, remote)


class TestLocalSheep:
    async def test_create_records_first_weighing(self, local_sheep: SheepService):
        ewe = await local_sheep.create(Sheep("BR-001", "Mimosa", weight=42.5))
        assert ewe.id and ewe.created_at
        [stored] = await local_sheep.get_all()
        assert stored.tag == "BR-001"
        assert [w.weight for w in stored.weight_history] == [42.5]

    async def test_no_weighing_without_weight(self, local_sheep: SheepService):
        ewe = await local_sheep.create(Sheep("BR-002"))
        assert await local_sheep.weight_history(ewe.id) == []

    async def test_update_records_only_changed_weight(self, local_sheep: SheepService):
        ewe = await local_sheep.create(Sheep("BR-003", weight=40))
        await local_sheep.update(ewe.id, {"weight": 40})
        await local_sheep.update(ewe.id, {"weight": 44}, weighed_at=datetime(2020, 3, 1, 9))
        history = await local_sheep.weight_history(ewe.id)
        assert [w.weight for w in history] == [44, 40]
        [stored] = await local_sheep.get_all()
        assert stored.weight == 44

    async def test_newest_first(self, db, local_sheep: SheepService):
        await db.save_collection(SHEEP_STORAGE_KEY, [
            Sheep("old", id="s1", created_at=datetime(2025, 1, 1)).to_dict(),
            Sheep("new", id="s2", created_at=datetime(2026, 1, 1)).to_dict(),
        ])
        assert [s.tag for s in await local_sheep.get_all()] == ["new", "old"]

    async def test_unknown_field_rejected(self, local_sheep: SheepService):
        ewe = await local_sheep.create(Sheep("BR-004"))
        with pytest.raises(KeyError):
            await local_sheep.update(ewe.id, {"colour": "white"})

    def test_in_group_keeps_active_members(self):
        herd = [
            Sheep("a", group_id="g1", id="1"),
            Sheep("b", group_id="g1", status=AnimalStatus.DEAD, id="2"),
            Sheep("c", group_id="g2", id="3"),
        ]
        assert [s.id for s in SheepService.in_group(herd, "g1")] == ["1"]


class TestRemoteSheep:
    async def test_row_columns(self, remote_sheep: SheepService, remote):
        await remote_sheep.create(Sheep(
            " BR-010 ", "Estrela", sex=Sex.MALE, birth_date=date(2024, 8, 15),
            breed_id="", health=HealthStatus.SICK_BAY, pregnant=True,
        ))
        row = remote.tables["ovelhas"][0]
        assert row["brinco"] == "BR-010"
        assert row["sexo"] == "macho"
        assert row["nascimento"] == "2024-08-15"
        assert row["raca_id"] is None
        assert row["sanidade"] == "enfermaria"
        assert row["prenha"] is True

    async def test_weight_history_embedded(self, remote_sheep: SheepService, remote):
        ewe = await remote_sheep.create(Sheep("BR-011", weight=38))
        await remote_sheep.update(ewe.id, {"weight": 41})
        assert [r["peso"] for r in remote.tables[WEIGHT_TABLE]] == [38, 41]
        [loaded] = await remote_sheep.get_all()
        assert sorted(w.weight for w in loaded.weight_history) == [38, 41]
        assert loaded.weight == 41

    async def test_failed_weighing_keeps_animal(self, remote_sheep: SheepService, remote):
        remote.fail_on("insert", WEIGHT_TABLE)
        ewe = await remote_sheep.create(Sheep("BR-012", weight=35))
        assert ewe.id
        assert len(remote.tables["ovelhas"]) == 1
