import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_BONUS_USER_ID = "user_123"
DEFAULT_BONUS_BALANCE = 10.00


class BonusLedger:
    """Referral bonus balances per user, decremented on redemption"""

    def __init__(self, balances: Optional[Dict[str, float]] = None):
        self._lock = threading.Lock()
        self._balances: Dict[str, float] = dict(balances or {})

    @classmethod
    def with_demo_balance(cls) -> "BonusLedger":
        return cls({DEFAULT_BONUS_USER_ID: DEFAULT_BONUS_BALANCE})

    def get_balance(self, user_id: str = DEFAULT_BONUS_USER_ID) -> float:
        with self._lock:
            return self._balances.get(user_id, 0.0)

    def redeem(self, amount: float, user_id: str = DEFAULT_BONUS_USER_ID) -> bool:
        """Spend ``amount`` of the user's bonus; False if the balance is short."""
        if amount < 0:
            raise ValueError("amount must not be negative")
        with self._lock:
            balance = self._balances.get(user_id, 0.0)
            if balance < amount:
                logger.info(f"Bonus redeem of {amount:.2f} refused for {user_id}: balance {balance:.2f}")
                return False
            self._balances[user_id] = round(balance - amount, 2)
        logger.info(f"Bonus of {amount:.2f} redeemed by {user_id}")
        return True
