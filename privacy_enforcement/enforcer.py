"""
Privacy Enforcement - Enforcer.

============================================================
PURPOSE
============================================================
Single decision point for who may see a wallet's data, and
the only writer of wallet privacy modes.

============================================================
ACCESS RULES
============================================================
    owner (wallet -> project -> user)  allowed, full
    private                            denied
    public                             allowed, anonymized
    monetizable + active grant         allowed, anonymized
    monetizable, no grant              denied, payment required

============================================================
DESIGN PRINCIPLES
============================================================
- The mode is read from the wallet row on every decision;
  decisions are never cached
- Mode changes apply immediately, are audited in the same
  transaction, and invalidate dependent caches
- Cross-wallet aggregates run over aggregate_eligible_wallet_ids
  so private wallets never enter the computation

============================================================
USAGE
============================================================
    enforcer = PrivacyEnforcer(session)
    enforcer.register_invalidator(dashboard.invalidate)

    enforcer.update_privacy_mode(wallet_id, "public", owner_id)
    session.commit()

    data = enforcer.get_wallet_data(wallet_id, requester_id)

============================================================
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import (
    NotFoundError,
    PaymentRequiredError,
    UnauthorizedError,
    ValidationError,
)
from storage.models.wallets import AGGREGATE_PRIVACY_MODES, PRIVACY_MODES, Wallet
from storage.repositories.privacy import DataAccessGrantRepository, PrivacyAuditRepository
from storage.repositories.scoring import BehaviorFlowRepository, ProductivityScoreRepository
from storage.repositories.transactions import ActivityRollupRepository
from storage.repositories.wallets import WalletRepository

from .anonymizer import WalletDataAnonymizer
from .types import AccessDecision, DataLevel, PrivacyMode, PrivacyStats, TransitionCheck


logger = logging.getLogger(__name__)


# Called with the project id of every wallet whose mode changed
CacheInvalidator = Callable[[UUID], Any]


def parse_privacy_mode(mode: str) -> PrivacyMode:
    """
    Raises:
        ValidationError: Not one of private, public, monetizable
    """
    try:
        return PrivacyMode(mode)
    except ValueError:
        raise ValidationError(
            f"Invalid privacy mode. Must be one of: {', '.join(PRIVACY_MODES)}",
            field="privacy_mode",
            value=mode,
        ) from None


class PrivacyEnforcer:
    """
    Access decisions and privacy mode management.

    One instance is bound to one session; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[ClockProtocol] = None,
        invalidators: Optional[Iterable[CacheInvalidator]] = None,
    ):
        self._clock = clock or get_clock()
        self._wallets = WalletRepository(session)
        self._audit = PrivacyAuditRepository(session)
        self._grants = DataAccessGrantRepository(session)
        self._rollups = ActivityRollupRepository(session)
        self._scores = ProductivityScoreRepository(session)
        self._flows = BehaviorFlowRepository(session)
        self._anonymizer = WalletDataAnonymizer()
        self._invalidators: List[CacheInvalidator] = list(invalidators or [])

    def register_invalidator(self, invalidator: CacheInvalidator) -> None:
        self._invalidators.append(invalidator)

    # =========================================================
    # ACCESS DECISIONS
    # =========================================================

    def _get_wallet_or_raise(self, wallet_id: UUID) -> Wallet:
        wallet = self._wallets.get_by_id(wallet_id)
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)
        return wallet

    def check_privacy_mode(self, wallet_id: UUID) -> PrivacyMode:
        return PrivacyMode(self._get_wallet_or_raise(wallet_id).privacy_mode)

    def check_access(
        self,
        wallet_id: UUID,
        requester_id: UUID,
        paid: Optional[bool] = None,
    ) -> AccessDecision:
        """
        Decide whether `requester_id` may read the wallet, and at which level.

        Args:
            wallet_id: Wallet to read
            requester_id: User asking
            paid: Payment state for monetizable wallets; None looks
                up an unexpired grant

        Raises:
            NotFoundError: Unknown wallet
        """
        wallet = self._get_wallet_or_raise(wallet_id)

        if self._wallets.get_owner_id(wallet_id) == requester_id:
            return AccessDecision(allowed=True, reason="Owner access", data_level=DataLevel.FULL)

        mode = PrivacyMode(wallet.privacy_mode)

        if mode == PrivacyMode.PRIVATE:
            return AccessDecision(allowed=False, reason="Wallet is private")

        if mode == PrivacyMode.PUBLIC:
            return AccessDecision(
                allowed=True,
                reason="Wallet is public",
                data_level=DataLevel.ANONYMIZED,
            )

        if paid is None:
            paid = self._grants.has_active(requester_id, wallet_id, self._clock.now())

        if paid:
            return AccessDecision(
                allowed=True,
                reason="Paid access granted",
                data_level=DataLevel.ANONYMIZED,
            )
        return AccessDecision(
            allowed=False,
            reason="Payment required for monetizable data",
            requires_payment=True,
        )

    # =========================================================
    # GUARDED READS
    # =========================================================

    def build_wallet_profile(self, wallet: Wallet) -> Dict[str, Any]:
        """Full projection of a wallet: identity plus aggregates."""
        rollups = self._rollups.list_for_wallet(wallet.id)
        score = self._scores.get_by_wallet(wallet.id)
        latest_flows = self._flows.list_for_wallet(wallet.id, limit=1)
        flow = latest_flows[0] if latest_flows else None

        return {
            "id": wallet.id,
            "wallet_id": wallet.id,
            "address": wallet.address,
            "project_id": wallet.project_id,
            "owner_id": self._wallets.get_owner_id(wallet.id),
            "wallet_type": wallet.wallet_type,
            "network": wallet.network,
            "privacy_mode": wallet.privacy_mode,
            "is_active": wallet.is_active,
            "created_at": wallet.created_at.isoformat(),
            "active_days": sum(1 for rollup in rollups if rollup.is_active),
            "transaction_count": sum(rollup.transaction_count for rollup in rollups),
            "total_volume": sum(rollup.total_volume_zatoshi for rollup in rollups),
            "productivity_score": score.total_score if score else 0,
            "retention_score": score.retention_score if score else 0,
            "adoption_score": score.adoption_score if score else 0,
            "behavior_pattern": flow.pattern if flow else None,
            "loyalty_score": flow.loyalty_score if flow else None,
            "total_flows": flow.total_flows if flow else None,
            "privacy_efficiency_score": flow.privacy_efficiency_score if flow else None,
        }

    def get_wallet_data(
        self,
        wallet_id: UUID,
        requester_id: UUID,
        paid: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Wallet data at the level the requester is allowed.

        Raises:
            NotFoundError: Unknown wallet
            UnauthorizedError: Private wallet, requester is not the owner
            PaymentRequiredError: Monetizable wallet without payment
        """
        decision = self.check_access(wallet_id, requester_id, paid)

        if not decision.allowed:
            logger.info(f"Access to wallet {wallet_id} denied for {requester_id}: {decision.reason}")
            error_class = PaymentRequiredError if decision.requires_payment else UnauthorizedError
            raise error_class(decision.reason, wallet_id=wallet_id, requester_id=requester_id)

        profile = self.build_wallet_profile(self._get_wallet_or_raise(wallet_id))
        if decision.data_level == DataLevel.FULL:
            return profile
        return self._anonymizer.anonymize(profile)

    def anonymize_wallet_data(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        return self._anonymizer.anonymize(profile)

    def anonymize_wallet_data_batch(self, profiles: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._anonymizer.anonymize_batch(profiles)

    # =========================================================
    # PRIVACY MODE UPDATES
    # =========================================================

    def _notify_invalidators(self, project_ids: Iterable[UUID]) -> None:
        for project_id in set(project_ids):
            for invalidator in self._invalidators:
                try:
                    invalidator(project_id)
                except Exception as e:
                    logger.warning(f"Cache invalidation failed for project {project_id}: {e}")

    def _apply_mode(self, wallet: Wallet, mode: PrivacyMode, user_id: UUID) -> None:
        previous = wallet.privacy_mode
        self._wallets.set_privacy_mode(wallet, mode.value)
        self._audit.record_change(
            wallet_id=wallet.id,
            privacy_mode=mode.value,
            previous_mode=previous,
            changed_by=user_id,
            changed_at=self._clock.now(),
        )
        logger.info(f"Wallet {wallet.id} privacy mode {previous} -> {mode.value} by {user_id}")

    def update_privacy_mode(self, wallet_id: UUID, new_mode: str, user_id: UUID) -> Dict[str, Any]:
        """
        Change a wallet's privacy mode; effective on the next read.

        Raises:
            ValidationError: Invalid mode
            NotFoundError: Unknown wallet
            UnauthorizedError: user_id does not own the wallet
        """
        mode = parse_privacy_mode(new_mode)
        wallet = self._get_wallet_or_raise(wallet_id)

        if self._wallets.get_owner_id(wallet_id) != user_id:
            raise UnauthorizedError(
                "Only the wallet owner can change its privacy mode",
                wallet_id=wallet_id,
                requester_id=user_id,
            )

        self._apply_mode(wallet, mode, user_id)
        self._notify_invalidators([wallet.project_id])

        return {
            "id": str(wallet.id),
            "address": wallet.address,
            "wallet_type": wallet.wallet_type,
            "privacy_mode": wallet.privacy_mode,
            "project_id": str(wallet.project_id),
            "updated_at": wallet.updated_at.isoformat() if wallet.updated_at else None,
        }

    def batch_update_privacy_mode(
        self,
        wallet_ids: Sequence[UUID],
        new_mode: str,
        user_id: UUID,
    ) -> List[Dict[str, Any]]:
        """
        Change the mode of several wallets, all or nothing.

        Raises:
            ValidationError: Invalid mode
            UnauthorizedError: Any wallet is missing or not owned by user_id
        """
        mode = parse_privacy_mode(new_mode)
        unique_ids = list(dict.fromkeys(wallet_ids))

        owners = self._wallets.get_owner_ids(unique_ids)
        if len(owners) != len(unique_ids) or any(owner != user_id for owner in owners.values()):
            raise UnauthorizedError(
                "Some wallets not found or access denied",
                requester_id=user_id,
                context={"wallet_count": len(unique_ids)},
            )

        wallets = self._wallets.get_by_ids(unique_ids)
        for wallet in wallets:
            self._apply_mode(wallet, mode, user_id)
        self._notify_invalidators(wallet.project_id for wallet in wallets)

        return [
            {"id": str(wallet.id), "privacy_mode": wallet.privacy_mode, "project_id": str(wallet.project_id)}
            for wallet in wallets
        ]

    @staticmethod
    def validate_privacy_transition(current_mode: str, new_mode: str) -> TransitionCheck:
        """All transitions are allowed; monetizable needs pricing setup."""
        if new_mode not in PRIVACY_MODES:
            return TransitionCheck(valid=False, message=f"Invalid privacy mode: {new_mode}")

        if new_mode == PrivacyMode.MONETIZABLE.value:
            return TransitionCheck(
                valid=True,
                requires_setup=True,
                message="Monetizable mode requires pricing configuration",
            )
        return TransitionCheck(valid=True)

    # =========================================================
    # SUPPORTING OPERATIONS
    # =========================================================

    def get_privacy_audit_log(self, wallet_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        """Mode changes of a wallet, newest first."""
        return [
            {
                "id": str(entry.id),
                "wallet_id": str(entry.wallet_id),
                "privacy_mode": entry.privacy_mode,
                "previous_mode": entry.previous_mode,
                "changed_by": str(entry.changed_by) if entry.changed_by else None,
                "changed_at": entry.changed_at.isoformat(),
            }
            for entry in self._audit.list_for_wallet(wallet_id, limit)
        ]

    def get_privacy_stats(self, project_id: UUID) -> PrivacyStats:
        counts = self._wallets.count_by_privacy_mode(project_id)
        return PrivacyStats(
            private=counts.get(PrivacyMode.PRIVATE.value, 0),
            public=counts.get(PrivacyMode.PUBLIC.value, 0),
            monetizable=counts.get(PrivacyMode.MONETIZABLE.value, 0),
        )

    def filter_wallets_by_privacy(
        self,
        wallet_ids: Sequence[UUID],
        allowed_modes: Sequence[str] = AGGREGATE_PRIVACY_MODES,
    ) -> List[UUID]:
        """Keep the wallets whose current mode is allowed, in input order."""
        modes = [parse_privacy_mode(mode).value for mode in allowed_modes]
        return self._wallets.filter_ids_by_modes(wallet_ids, modes)

    def get_wallets_by_privacy_mode(self, project_id: UUID, mode: str) -> List[Dict[str, Any]]:
        privacy_mode = parse_privacy_mode(mode)
        return [
            {
                "id": str(wallet.id),
                "address": wallet.address,
                "wallet_type": wallet.wallet_type,
                "privacy_mode": wallet.privacy_mode,
                "created_at": wallet.created_at.isoformat(),
            }
            for wallet in self._wallets.list_by_project(project_id, [privacy_mode.value])
        ]

    def aggregate_eligible_wallet_ids(self, project_id: UUID) -> List[UUID]:
        """Non-private wallets of a project: the input set of every aggregate."""
        return self._wallets.list_ids_by_project(project_id, AGGREGATE_PRIVACY_MODES)
