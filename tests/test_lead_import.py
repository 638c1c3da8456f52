import pytest
from uuid import uuid4
from sqlalchemy import func, select

from app.models import Campaign, ImportBatch, Lead, LeadHistory
from app.models.constants import LeadStatus, Role
from app.services.errors import InvalidArgumentError, NotFoundError
from app.services.lead_distribution import LeadDistributionEngine
from app.services.lead_import import delete_campaign, delete_import_batch, import_leads, normalize_row

from tests.factories import make_campaign, make_leads, make_office, make_user


def _row(document, **extra):
    row = {"EMPRESA": f"Empresa {document}", "DOCUMENTO": document, "TELEFONE": "11999990000", "UF": "sp"}
    row.update(extra)
    return row


async def _count(db, model, *criteria):
    return (await db.execute(select(func.count()).select_from(model).where(*criteria))).scalar_one()


def test_normalize_row_trims_and_uppercases_keys():
    assert normalize_row({" documento ": " 123 ", "Cidade": None, "uf": 35}) == {
        "DOCUMENTO": "123", "CIDADE": "", "UF": "35",
    }


class TestImportLeads:
    @pytest.mark.asyncio
    async def test_rows_become_stock_leads(self, db):
        campaign = await make_campaign(db)
        admin = await make_user(db, role=Role.MASTER)

        result = await import_leads(
            db, campaign.campaign_id,
            [_row("111"), _row("222", EMPRESA="", RAZAO_SOCIAL="Razao 222", TELEFONE="", TELEFONE2="1133334444")],
            admin.user_id, file_name="lote.xlsx",
        )

        assert (result.imported, result.skipped, result.total_rows) == (2, 0, 2)
        assert result.counters.total == result.counters.remaining == 2
        leads = (await db.execute(select(Lead).order_by(Lead.document))).scalars().all()
        assert all(l.status == LeadStatus.NOVO and l.consultant_id is None for l in leads)
        assert all(l.import_batch_id == result.batch_id for l in leads)
        assert leads[0].state == "SP"
        assert leads[1].company_name == "Razao 222"
        assert leads[1].phone == "1133334444"
        batch = await db.get(ImportBatch, result.batch_id)
        assert (batch.file_name, batch.total_rows, batch.imported_rows) == ("lote.xlsx", 2, 2)

    @pytest.mark.asyncio
    async def test_skips_missing_and_duplicate_documents(self, db):
        campaign = await make_campaign(db)
        admin = await make_user(db, role=Role.MASTER)
        await import_leads(db, campaign.campaign_id, [_row("111")], admin.user_id)

        result = await import_leads(
            db, campaign.campaign_id,
            [_row("111"), _row(""), _row("333"), _row("333")],
            admin.user_id,
        )

        assert (result.imported, result.skipped) == (1, 3)
        assert result.counters.total == 2

    @pytest.mark.asyncio
    async def test_unknown_campaign_and_empty_rows(self, db):
        with pytest.raises(InvalidArgumentError):
            await import_leads(db, uuid4(), [], uuid4())
        with pytest.raises(NotFoundError):
            await import_leads(db, uuid4(), [_row("111")], uuid4())


class TestDeletes:
    @pytest.mark.asyncio
    async def test_batch_delete_removes_leads_history_and_recounts(self, db):
        office = await make_office(db)
        campaign = await make_campaign(db)
        admin = await make_user(db, role=Role.MASTER)
        consultant = await make_user(db, office=office)
        first = await import_leads(db, campaign.campaign_id, [_row("1"), _row("2")], admin.user_id)
        await import_leads(db, campaign.campaign_id, [_row("3")], admin.user_id)
        await LeadDistributionEngine(db).distribute(campaign.campaign_id, [consultant.user_id], 1, admin.user_id)

        counters = await delete_import_batch(db, campaign.campaign_id, first.batch_id)

        assert counters.total == 1
        assert counters.remaining + counters.assigned == 1
        assert await _count(db, Lead, Lead.import_batch_id == first.batch_id) == 0
        assert await _count(db, ImportBatch, ImportBatch.batch_id == first.batch_id) == 0
        remaining_ids = select(Lead.lead_id)
        assert await _count(db, LeadHistory, LeadHistory.lead_id.not_in(remaining_ids)) == 0

    @pytest.mark.asyncio
    async def test_batch_must_belong_to_campaign(self, db):
        campaign, other = await make_campaign(db), await make_campaign(db, "Outra")
        admin = await make_user(db, role=Role.MASTER)
        result = await import_leads(db, campaign.campaign_id, [_row("1")], admin.user_id)

        with pytest.raises(NotFoundError):
            await delete_import_batch(db, other.campaign_id, result.batch_id)
        assert await _count(db, Lead) == 1

    @pytest.mark.asyncio
    async def test_campaign_delete_cascades(self, db):
        office = await make_office(db)
        campaign, other = await make_campaign(db), await make_campaign(db, "Outra")
        admin = await make_user(db, role=Role.MASTER)
        consultant = await make_user(db, office=office)
        await import_leads(db, campaign.campaign_id, [_row("1"), _row("2"), _row("3")], admin.user_id)
        await make_leads(db, other, 2)
        await LeadDistributionEngine(db).distribute(campaign.campaign_id, [consultant.user_id], 2, admin.user_id)

        result = await delete_campaign(db, campaign.campaign_id)

        assert (result.deleted_leads, result.deleted_history, result.deleted_batches) == (3, 2, 1)
        assert await _count(db, Campaign, Campaign.campaign_id == campaign.campaign_id) == 0
        assert await _count(db, Lead) == 2

    @pytest.mark.asyncio
    async def test_delete_unknown_campaign(self, db):
        with pytest.raises(NotFoundError):
            await delete_campaign(db, uuid4())
