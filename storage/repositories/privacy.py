"""
Privacy and Monetization Repositories.

============================================================
PURPOSE
============================================================
- PrivacyAuditRepository: append-only privacy-mode change log
- DataAccessGrantRepository: paid access grants
- OwnerEarningRepository: append-only earnings ledger

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storage.models.privacy import DataAccessGrant, OwnerEarning, PrivacyAuditLog
from storage.repositories.base import BaseRepository


class PrivacyAuditRepository(BaseRepository[PrivacyAuditLog]):
    """Append-only audit of privacy-mode changes."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, PrivacyAuditLog, "PrivacyAuditRepository")

    def record_change(
        self,
        wallet_id: UUID,
        privacy_mode: str,
        previous_mode: Optional[str],
        changed_by: UUID,
        changed_at: datetime,
    ) -> PrivacyAuditLog:
        return self._add(PrivacyAuditLog(
            wallet_id=wallet_id,
            privacy_mode=privacy_mode,
            previous_mode=previous_mode,
            changed_by=changed_by,
            changed_at=changed_at,
        ))

    def list_for_wallet(self, wallet_id: UUID, limit: int = 50) -> List[PrivacyAuditLog]:
        stmt = (
            select(PrivacyAuditLog)
            .where(PrivacyAuditLog.wallet_id == wallet_id)
            .order_by(PrivacyAuditLog.changed_at.desc(), PrivacyAuditLog.id)
            .limit(limit)
        )
        return self._execute_query(stmt)


class DataAccessGrantRepository(BaseRepository[DataAccessGrant]):
    """One grant row per (buyer, wallet); re-purchases extend it."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, DataAccessGrant, "DataAccessGrantRepository")

    def get(self, buyer_id: UUID, wallet_id: UUID) -> Optional[DataAccessGrant]:
        stmt = select(DataAccessGrant).where(
            DataAccessGrant.buyer_id == buyer_id,
            DataAccessGrant.wallet_id == wallet_id,
        )
        return self._execute_scalar(stmt)

    def create_grant(
        self,
        buyer_id: UUID,
        wallet_id: UUID,
        amount_paid_zec: Decimal,
        expires_at: datetime,
    ) -> DataAccessGrant:
        return self._add(DataAccessGrant(
            buyer_id=buyer_id,
            wallet_id=wallet_id,
            amount_paid_zec=amount_paid_zec,
            purchase_count=1,
            expires_at=expires_at,
        ))

    def extend_grant(
        self,
        grant: DataAccessGrant,
        amount_paid_zec: Decimal,
        expires_at: datetime,
    ) -> DataAccessGrant:
        grant.amount_paid_zec = grant.amount_paid_zec + amount_paid_zec
        grant.purchase_count = grant.purchase_count + 1
        grant.expires_at = expires_at
        self._flush("extend_grant")
        return grant

    def has_active(self, buyer_id: UUID, wallet_id: UUID, now: datetime) -> bool:
        stmt = select(func.count(DataAccessGrant.id)).where(
            DataAccessGrant.buyer_id == buyer_id,
            DataAccessGrant.wallet_id == wallet_id,
            DataAccessGrant.expires_at > now,
        )
        return (self._execute_scalar(stmt) or 0) > 0

    def purchase_counts(self, wallet_ids: Sequence[UUID]) -> Dict[UUID, int]:
        if not wallet_ids:
            return {}
        stmt = (
            select(DataAccessGrant.wallet_id, func.sum(DataAccessGrant.purchase_count))
            .where(DataAccessGrant.wallet_id.in_(list(wallet_ids)))
            .group_by(DataAccessGrant.wallet_id)
        )
        return {wallet_id: int(total or 0) for wallet_id, total in self._execute_rows(stmt)}


class OwnerEarningRepository(BaseRepository[OwnerEarning]):
    """Append-only ledger of owner earnings."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, OwnerEarning, "OwnerEarningRepository")

    def record_earning(
        self,
        owner_id: UUID,
        wallet_id: UUID,
        buyer_id: Optional[UUID],
        amount_zec: Decimal,
        owner_share_zec: Decimal,
        platform_fee_zec: Decimal,
        created_at: datetime,
    ) -> OwnerEarning:
        return self._add(OwnerEarning(
            owner_id=owner_id,
            wallet_id=wallet_id,
            buyer_id=buyer_id,
            amount_zec=amount_zec,
            owner_share_zec=owner_share_zec,
            platform_fee_zec=platform_fee_zec,
            status="pending",
            created_at=created_at,
        ))

    def list_for_owner(self, owner_id: UUID) -> List[OwnerEarning]:
        stmt = (
            select(OwnerEarning)
            .where(OwnerEarning.owner_id == owner_id)
            .order_by(OwnerEarning.created_at.desc())
        )
        return self._execute_query(stmt)
