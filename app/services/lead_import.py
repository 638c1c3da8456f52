from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ImportBatch, Lead
from app.models.constants import LeadStatus
from app.crud import lead as crud_lead
from app.crud import campaign as crud_campaign
from app.services.campaign_counters import CampaignCounters, recompute_campaign_counters
from app.services.errors import InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

# Spreadsheet column -> Lead attribute
COLUMN_MAP = {
    "EMPRESA": "company_name",
    "DOCUMENTO": "document",
    "TELEFONE": "phone",
    "CIDADE": "city",
    "UF": "state",
}
COMPANY_FALLBACK_COLUMNS = ("EMPRESA", "EMPRESA_RAZAO", "RAZAO_SOCIAL")


@dataclass
class ImportResult:
    batch_id: UUID
    total_rows: int
    imported: int
    skipped: int
    counters: CampaignCounters


@dataclass
class CampaignDeleteResult:
    campaign_id: UUID
    deleted_leads: int
    deleted_history: int
    deleted_batches: int


def normalize_row(row: Dict[str, Any]) -> Dict[str, str]:
    """Upper-case, trimmed keys; values as trimmed strings ('' for missing)."""
    normalized = {}
    for key, value in row.items():
        normalized[str(key).strip().upper()] = "" if value is None else str(value).strip()
    return normalized


def _lead_fields(row: Dict[str, str]) -> Dict[str, Optional[str]]:
    fields = {attr: row.get(column) or None for column, attr in COLUMN_MAP.items()}
    fields["company_name"] = next(
        (row[c] for c in COMPANY_FALLBACK_COLUMNS if row.get(c)), "Sem nome"
    )
    if not fields["phone"]:
        fields["phone"] = row.get("TELEFONE1") or row.get("TELEFONE2") or row.get("TELEFONE3") or None
    if fields["state"]:
        fields["state"] = fields["state"][:2].upper()
    return fields


async def import_leads(
    db: AsyncSession,
    campaign_id: UUID,
    rows: Sequence[Dict[str, Any]],
    actor_id: UUID,
    file_name: Optional[str] = None,
) -> ImportResult:
    """
    Create an import batch and one stock lead per usable row.

    Rows come already parsed from the uploaded sheet. Rows without a
    DOCUMENTO, and documents already present in the campaign (or repeated
    within the file), are skipped.
    """
    if not rows:
        raise InvalidArgumentError("No rows to import")

    try:
        if not await crud_campaign.get_campaign(db, campaign_id):
            raise NotFoundError(f"Campaign {campaign_id} not found")

        normalized = [normalize_row(r) for r in rows]
        documents = [r["DOCUMENTO"] for r in normalized if r.get("DOCUMENTO")]
        taken = await crud_lead.get_existing_documents(db, campaign_id, documents)

        batch = ImportBatch(
            batch_id=uuid4(),
            campaign_id=campaign_id,
            file_name=file_name,
            total_rows=len(rows),
            created_by=actor_id,
        )
        db.add(batch)

        now = datetime.utcnow()
        new_leads: List[Lead] = []
        for row in normalized:
            document = row.get("DOCUMENTO")
            if not document or document in taken:
                continue
            taken.add(document)
            new_leads.append(Lead(
                lead_id=uuid4(),
                campaign_id=campaign_id,
                import_batch_id=batch.batch_id,
                status=LeadStatus.NOVO,
                is_worked=False,
                previous_consultants=[],
                created_at=now,
                updated_at=now,
                **_lead_fields(row),
            ))
        db.add_all(new_leads)
        batch.imported_rows = len(new_leads)
        await db.flush()

        counters = await recompute_campaign_counters(db, campaign_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Imported %s of %s rows into campaign %s", len(new_leads), len(rows), campaign_id)
    return ImportResult(
        batch_id=batch.batch_id,
        total_rows=len(rows),
        imported=len(new_leads),
        skipped=len(rows) - len(new_leads),
        counters=counters,
    )


async def delete_import_batch(db: AsyncSession, campaign_id: UUID, batch_id: UUID) -> CampaignCounters:
    """Remove a batch with its leads and their history, then recount, in one transaction."""
    try:
        if not await crud_campaign.get_import_batch(db, campaign_id, batch_id):
            raise NotFoundError(f"Import batch {batch_id} not found in campaign {campaign_id}")

        deleted_leads, _ = await crud_campaign.delete_leads_where(
            db, Lead.import_batch_id == batch_id, Lead.campaign_id == campaign_id
        )
        await crud_campaign.delete_import_batch_row(db, batch_id)
        counters = await recompute_campaign_counters(db, campaign_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deleted batch %s (%s leads) from campaign %s", batch_id, deleted_leads, campaign_id)
    return counters


async def delete_campaign(db: AsyncSession, campaign_id: UUID) -> CampaignDeleteResult:
    """Remove a campaign and everything under it in one transaction."""
    try:
        if not await crud_campaign.get_campaign(db, campaign_id):
            raise NotFoundError(f"Campaign {campaign_id} not found")

        deleted_leads, deleted_history = await crud_campaign.delete_leads_where(db, Lead.campaign_id == campaign_id)
        deleted_batches, _ = await crud_campaign.delete_campaign_rows(db, campaign_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deleted campaign %s with %s leads", campaign_id, deleted_leads)
    return CampaignDeleteResult(
        campaign_id=campaign_id,
        deleted_leads=deleted_leads,
        deleted_history=deleted_history,
        deleted_batches=deleted_batches,
    )
