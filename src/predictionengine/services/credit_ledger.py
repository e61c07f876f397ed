"""In-memory credit ledger for single-process deployments and tests."""

import logging

logger = logging.getLogger(__name__)


class InMemoryCreditLedger:
    """Integer credit balances keyed by user id."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})

    async def balance(self, user_id: str) -> int:
        return self._balances.get(user_id, 0)

    async def debit_if_available(self, user_id: str, amount: int) -> bool:
        # No await between the check and the write, so this is atomic on one event loop
        if self._balances.get(user_id, 0) < amount:
            return False
        self._balances[user_id] -= amount
        logger.debug(f"💳 [CreditLedger] Debited {amount} from {user_id}")
        return True

    async def refund(self, user_id: str, amount: int) -> None:
        self._balances[user_id] = self._balances.get(user_id, 0) + amount
        logger.info(f"💳 [CreditLedger] Refunded {amount} to {user_id}")
