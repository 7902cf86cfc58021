"""
Identity Repositories.

============================================================
PURPOSE
============================================================
Data access for users, projects and wallets, including the
ownership chain (wallet -> project -> user) used by privacy
decisions and the privacy-mode filters used by aggregates.

============================================================
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storage.models.wallets import Project, User, Wallet
from storage.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user accounts."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, User, "UserRepository")

    def create_user(self, email: str, name: Optional[str] = None) -> User:
        return self._add(User(email=email, name=name))

    def get_by_id(self, user_id: UUID) -> Optional[User]:
        return self._get_by_id(user_id)


class ProjectRepository(BaseRepository[Project]):
    """Repository for projects."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Project, "ProjectRepository")

    def create_project(
        self,
        user_id: UUID,
        name: str,
        description: Optional[str] = None,
    ) -> Project:
        return self._add(Project(user_id=user_id, name=name, description=description))

    def get_by_id(self, project_id: UUID) -> Optional[Project]:
        return self._get_by_id(project_id)


class WalletRepository(BaseRepository[Wallet]):
    """
    Repository for wallets.

    Privacy mode is always read from the row itself; nothing in
    this repository caches it.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Wallet, "WalletRepository")

    # =========================================================
    # WRITE OPERATIONS
    # =========================================================

    def create_wallet(
        self,
        project_id: UUID,
        address: str,
        wallet_type: str = "t",
        privacy_mode: str = "private",
        created_at: Optional[datetime] = None,
        is_active: bool = True,
    ) -> Wallet:
        wallet = Wallet(
            project_id=project_id,
            address=address,
            wallet_type=wallet_type,
            privacy_mode=privacy_mode,
            is_active=is_active,
        )
        if created_at is not None:
            wallet.created_at = created_at
        return self._add(wallet)

    def set_privacy_mode(self, wallet: Wallet, privacy_mode: str) -> Wallet:
        wallet.privacy_mode = privacy_mode
        self._flush("set_privacy_mode")
        return wallet

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def get_by_id(self, wallet_id: UUID) -> Optional[Wallet]:
        return self._get_by_id(wallet_id)

    def get_by_ids(self, wallet_ids: Sequence[UUID]) -> List[Wallet]:
        if not wallet_ids:
            return []
        stmt = select(Wallet).where(Wallet.id.in_(list(wallet_ids)))
        return self._execute_query(stmt)

    def get_owner_id(self, wallet_id: UUID) -> Optional[UUID]:
        """Resolve wallet -> project -> user."""
        stmt = (
            select(Project.user_id)
            .join(Wallet, Wallet.project_id == Project.id)
            .where(Wallet.id == wallet_id)
        )
        return self._execute_scalar(stmt)

    def get_owner_ids(self, wallet_ids: Sequence[UUID]) -> Dict[UUID, UUID]:
        if not wallet_ids:
            return {}
        stmt = (
            select(Wallet.id, Project.user_id)
            .join(Project, Wallet.project_id == Project.id)
            .where(Wallet.id.in_(list(wallet_ids)))
        )
        return {wallet_id: user_id for wallet_id, user_id in self._execute_rows(stmt)}

    def list_by_project(
        self,
        project_id: UUID,
        privacy_modes: Optional[Iterable[str]] = None,
    ) -> List[Wallet]:
        stmt = select(Wallet).where(Wallet.project_id == project_id)
        if privacy_modes is not None:
            stmt = stmt.where(Wallet.privacy_mode.in_(list(privacy_modes)))
        return self._execute_query(stmt.order_by(Wallet.created_at, Wallet.id))

    def list_ids_by_project(
        self,
        project_id: UUID,
        privacy_modes: Optional[Iterable[str]] = None,
    ) -> List[UUID]:
        stmt = select(Wallet.id).where(Wallet.project_id == project_id)
        if privacy_modes is not None:
            stmt = stmt.where(Wallet.privacy_mode.in_(list(privacy_modes)))
        return [row[0] for row in self._execute_rows(stmt.order_by(Wallet.created_at, Wallet.id))]

    def filter_ids_by_modes(
        self,
        wallet_ids: Sequence[UUID],
        privacy_modes: Iterable[str],
    ) -> List[UUID]:
        """Keep the given wallets whose current mode is in privacy_modes."""
        if not wallet_ids:
            return []
        stmt = select(Wallet.id).where(
            Wallet.id.in_(list(wallet_ids)),
            Wallet.privacy_mode.in_(list(privacy_modes)),
        )
        allowed = {row[0] for row in self._execute_rows(stmt)}
        return [wallet_id for wallet_id in wallet_ids if wallet_id in allowed]

    def count_by_privacy_mode(self, project_id: UUID) -> Dict[str, int]:
        stmt = (
            select(Wallet.privacy_mode, func.count(Wallet.id))
            .where(Wallet.project_id == project_id)
            .group_by(Wallet.privacy_mode)
        )
        return {mode: count for mode, count in self._execute_rows(stmt)}

    def list_monetizable(
        self,
        wallet_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Wallet]:
        stmt = select(Wallet).where(
            Wallet.privacy_mode == "monetizable",
            Wallet.is_active.is_(True),
        )
        if wallet_type:
            stmt = stmt.where(Wallet.wallet_type == wallet_type)
        stmt = stmt.order_by(Wallet.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._execute_query(stmt)
