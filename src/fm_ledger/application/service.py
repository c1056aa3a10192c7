"""LedgerApplicationService — read side of freelancer balances.

Mutations never go through here: the settlement services call the guarded
primitives of LedgerRepository directly inside their own transactions.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import FreelancerNotFoundError
from src.fm_ledger.application.schemas import BalanceResponse
from src.fm_ledger.domain.repository import LedgerRepositoryProtocol
from src.fm_ledger.infrastructure.persistence import LedgerRepository


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        if balance is None:
            raise FreelancerNotFoundError(user_id)
        return BalanceResponse.from_cents(
            user_id=user_id,
            pending=balance.pending_balance,
            available=balance.available_balance,
        )
