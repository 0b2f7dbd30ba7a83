"""Tests for NoticeService and read confirmations."""
import pytest

from config import NoticePriority
from events import AppEvent
from models.entities import Notice
from services.notice_service import NoticeService
from services.remote_client import RemoteUnavailableError

from fakes import EventCollector


class TestLocalConfirm:
    async def test_confirm_appends_once(self, local_notices: NoticeService):
        notice = await local_notices.create(Notice("Vacinação", "Sexta às 7h"))
        assert await local_notices.confirm_read(notice.id, "Ana") is True
        assert await local_notices.confirm_read(notice.id, "Ana") is False

        [stored] = await local_notices.get_all()
        assert [c.user for c in stored.confirmations] == ["Ana"]
        assert stored.is_confirmed_by("Ana")
        assert not stored.is_confirmed_by("Bruno")

    async def test_each_user_confirms_separately(self, local_notices: NoticeService):
        notice = await local_notices.create(Notice("Vacinação", "Sexta às 7h"))
        await local_notices.confirm_read(notice.id, "Ana")
        await local_notices.confirm_read(notice.id, "Bruno")
        [stored] = await local_notices.get_all()
        assert [c.user for c in stored.confirmations] == ["Ana", "Bruno"]

    async def test_missing_notice(self, local_notices: NoticeService):
        assert await local_notices.confirm_read("nope", "Ana") is False

    async def test_emits_only_on_new_confirmation(self, local_notices: NoticeService):
        notice = await local_notices.create(Notice("Vacinação", "Sexta às 7h"))
        collector = EventCollector(AppEvent.NOTICE_CONFIRMED)
        await local_notices.confirm_read(notice.id, "Ana")
        await local_notices.confirm_read(notice.id, "Ana")
        assert collector.payloads(AppEvent.NOTICE_CONFIRMED) == [
            {"notice_id": notice.id, "user": "Ana"}
        ]
        collector.cleanup()


class TestRemoteConfirm:
    async def test_confirm_is_idempotent(self, remote_notices: NoticeService, remote):
        notice = await remote_notices.create(
            Notice("Cerca elétrica", "Desligada no piquete 3", priority=NoticePriority.URGENT)
        )
        assert await remote_notices.confirm_read(notice.id, "Ana") is True
        assert await remote_notices.confirm_read(notice.id, "Ana") is False
        confirmations = remote.tables["avisos"][0]["confirmacoes"]
        assert [c["user"] for c in confirmations] == ["Ana"]

    async def test_row_columns(self, remote_notices: NoticeService, remote):
        await remote_notices.create(Notice("Aviso", "Texto", priority=NoticePriority.HIGH, author="Gerente"))
        row = remote.tables["avisos"][0]
        assert row["titulo"] == "Aviso"
        assert row["conteudo"] == "Texto"
        assert row["prioridade"] == "alta"
        assert row["autor"] == "Gerente"

    async def test_write_failure_propagates(self, remote_notices: NoticeService, remote):
        notice = await remote_notices.create(Notice("Aviso", "Texto"))
        remote.fail_on("update", "avisos")
        with pytest.raises(RemoteUnavailableError):
            await remote_notices.confirm_read(notice.id, "Ana")

    async def test_unknown_priority_reads_as_normal(self, remote_notices: NoticeService, remote):
        remote.tables["avisos"].append({"id": "a1", "titulo": "x", "prioridade": "???"})
        [notice] = await remote_notices.get_all()
        assert notice.priority == NoticePriority.NORMAL
        assert notice.confirmations == []


def test_unconfirmed_urgent():
    notices = [
        Notice("urgente", "", priority=NoticePriority.URGENT),
        Notice("normal", "", priority=NoticePriority.NORMAL),
    ]
    assert [n.title for n in NoticeService.unconfirmed_urgent(notices, "Ana")] == ["urgente"]
