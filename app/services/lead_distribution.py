from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from uuid import UUID
from datetime import datetime
import logging
import re

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.constants import CampaignStatus, DistributionMode, HistoryAction, LeadStatus, Role
from app.crud import lead as crud_lead
from app.crud import campaign as crud_campaign
from app.crud import user as crud_user
from app.services.campaign_counters import CampaignCounters, recompute_campaign_counters
from app.services.errors import EmptyStockError, InvalidArgumentError, NotFoundError
from app.services.lead_history import LeadHistoryLogger

logger = logging.getLogger(__name__)

VALID_PHONE = re.compile(r"^\d{8,15}$")


@dataclass
class DistributionResult:
    distributed: Dict[UUID, int]
    remaining_stock: int
    assigned_lead_ids: Dict[UUID, List[UUID]] = field(default_factory=dict)
    counters: Optional[CampaignCounters] = None

    @property
    def total_distributed(self) -> int:
        return sum(self.distributed.values())


@dataclass(frozen=True)
class StockFilters:
    only_with_phone: bool = False
    ignore_invalid_phones: bool = False


def has_valid_phone(phone: Optional[str]) -> bool:
    """8 to 15 digits once punctuation, spaces and a leading + are stripped."""
    return bool(VALID_PHONE.match(re.sub(r"\D", "", phone or "")))


def validate_distribution_args(
    consultant_ids: Sequence[UUID],
    quantity_per_consultant,
    mode: str = DistributionMode.MANUAL,
) -> None:
    if mode not in DistributionMode.ALL:
        raise InvalidArgumentError(f"Unknown distribution mode: {mode}")
    if not consultant_ids:
        raise InvalidArgumentError("Select at least one consultant")
    if len(set(consultant_ids)) != len(consultant_ids):
        raise InvalidArgumentError("Consultant ids must be distinct")
    if mode == DistributionMode.AUTO:
        return
    if (
        isinstance(quantity_per_consultant, bool)
        or not isinstance(quantity_per_consultant, int)
        or quantity_per_consultant <= 0
    ):
        raise InvalidArgumentError("Quantity per consultant must be a positive integer")


def slice_stock(stock: Sequence[UUID], consultant_ids: Sequence[UUID], quantity: int) -> Dict[UUID, List[UUID]]:
    """Contiguous slices of `quantity` leads, one per consultant in the given order."""
    slices = {}
    for position, consultant_id in enumerate(consultant_ids):
        start = position * quantity
        slices[consultant_id] = list(stock[start:start + quantity])
    return slices


def split_evenly(stock: Sequence[UUID], consultant_ids: Sequence[UUID]) -> Dict[UUID, List[UUID]]:
    """Contiguous slices of the whole stock; the first `len(stock) % n` consultants get one extra."""
    base, rest = divmod(len(stock), len(consultant_ids))
    slices, cursor = {}, 0
    for position, consultant_id in enumerate(consultant_ids):
        size = base + (1 if position < rest else 0)
        slices[consultant_id] = list(stock[cursor:cursor + size])
        cursor += size
    return slices


class LeadDistributionEngine:
    """
        Bulk assignment of a campaign's stock to a list of consultants.

        Stock is every lead of the campaign with no consultant and status NOVO,
        taken oldest first (created_at, then lead_id). Only ATIVA campaigns
        can be distributed.

        Modes:
        - manual: each consultant gets a contiguous slice of
          `quantity_per_consultant` leads in the order the consultants were
          listed; once stock runs out the remaining consultants get nothing,
          which is reported rather than treated as an error.
        - auto: the whole stock is split evenly, the first consultants taking
          one extra lead each when it does not divide.

        Stock filters:
        - only_with_phone: skip leads without a phone.
        - ignore_invalid_phones: also skip leads whose phone does not hold
          8 to 15 digits.

        Concurrency:
        - Each slice is claimed by one UPDATE that re-checks the stock
          predicate (compare-and-swap on consultant_id IS NULL), so a lead
          read by two concurrent distributions is only taken by the first
          writer.
        - A consultant whose claim came back short is topped up from fresh
          stock, with the same filters, until its share is full or the stock
          is empty.
        - Claims, history entries and the counter recount share one
          transaction; any database error rolls everything back.

        Callers are expected to have consulted the PermissionOracle already.
    """

    def __init__(self, db: AsyncSession, history: Optional[LeadHistoryLogger] = None):
        self.db = db
        self.history = history or LeadHistoryLogger(db)

    async def distribute(
        self,
        campaign_id: UUID,
        consultant_ids: Sequence[UUID],
        quantity_per_consultant: Optional[int],
        actor_id: UUID,
        note: Optional[str] = None,
        mode: str = DistributionMode.MANUAL,
        only_with_phone: bool = False,
        ignore_invalid_phones: bool = False,
    ) -> DistributionResult:
        validate_distribution_args(consultant_ids, quantity_per_consultant, mode)
        filters = StockFilters(only_with_phone, ignore_invalid_phones)

        try:
            result = await self._distribute(
                campaign_id, list(consultant_ids), quantity_per_consultant, actor_id, note, mode, filters
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Distributed %s leads of campaign %s to %s consultants in %s mode (%s left in stock)",
            result.total_distributed, campaign_id, len(consultant_ids), mode, result.remaining_stock,
        )
        return result

    async def _read_stock(
        self, campaign_id: UUID, limit: Optional[int], filters: StockFilters, exclude=()
    ) -> List[UUID]:
        if not filters.ignore_invalid_phones:
            return await crud_lead.find_stock(
                self.db, campaign_id, limit=limit, exclude=exclude, with_phone=filters.only_with_phone
            )
        rows = await crud_lead.find_stock_phones(self.db, campaign_id, exclude=exclude)
        valid = [lead_id for lead_id, phone in rows if has_valid_phone(phone)]
        return valid if limit is None else valid[:limit]

    async def _distribute(self, campaign_id, consultant_ids, quantity, actor_id, note, mode, filters) -> DistributionResult:
        # 1. --- Campaign must be active; consultants must exist ---
        campaign = await crud_campaign.get_campaign(self.db, campaign_id)
        if not campaign:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        if campaign.status != CampaignStatus.ATIVA:
            raise InvalidArgumentError(f"Campaign {campaign_id} is not active ({campaign.status})")

        consultants = {u.user_id: u for u in await crud_user.get_users(self.db, consultant_ids)}
        missing = [
            str(cid) for cid in consultant_ids
            if cid not in consultants
            or consultants[cid].role != Role.CONSULTOR
            or not consultants[cid].is_active
        ]
        if missing:
            raise NotFoundError(f"Consultants not found or inactive: {', '.join(missing)}")

        # 2. --- Read stock oldest first ---
        auto = mode == DistributionMode.AUTO
        stock = await self._read_stock(campaign_id, None if auto else quantity * len(consultant_ids), filters)
        if not stock:
            raise EmptyStockError(f"No leads left in stock for campaign {campaign_id} with the given filters")

        # 3. --- Slice and claim, consultant by consultant ---
        slices = split_evenly(stock, consultant_ids) if auto else slice_stock(stock, consultant_ids, quantity)
        seen = set(stock)
        position = {lead_id: i for i, lead_id in enumerate(stock)}
        now = datetime.utcnow()
        assigned: Dict[UUID, List[UUID]] = {}

        for consultant_id in consultant_ids:
            consultant = consultants[consultant_id]
            wanted = slices[consultant_id]
            share = len(wanted) if auto else quantity
            claimed: List[UUID] = []

            while wanted:
                got = await crud_lead.claim_leads(self.db, wanted, consultant_id, consultant.office_id, now)
                claimed.extend(got)
                if len(got) < len(wanted):
                    logger.warning(
                        "Claim for consultant %s lost %s leads to a concurrent distribution",
                        consultant_id, len(wanted) - len(got),
                    )
                missing_count = share - len(claimed)
                if missing_count <= 0:
                    break
                # Top up from whatever stock is left
                wanted = await self._read_stock(campaign_id, missing_count, filters, exclude=seen)
                seen.update(wanted)

            # Keep oldest-first order for the report
            claimed.sort(key=lambda lead_id: position.get(lead_id, len(position)))
            assigned[consultant_id] = claimed

            for lead_id in claimed:
                self.history.record(
                    lead_id,
                    HistoryAction.ASSIGN,
                    by_user_id=actor_id,
                    to_user_id=consultant_id,
                    previous_status=LeadStatus.NOVO,
                    new_status=LeadStatus.NOVO,
                    notes=note or ("Automatic distribution" if auto else "Distribution"),
                    at=now,
                )

        # 4. --- Recount; never subtract ---
        counters = await recompute_campaign_counters(self.db, campaign_id)
        remaining = await crud_lead.count_stock(self.db, campaign_id)

        return DistributionResult(
            distributed={cid: len(ids) for cid, ids in assigned.items()},
            remaining_stock=remaining,
            assigned_lead_ids=assigned,
            counters=counters,
        )
