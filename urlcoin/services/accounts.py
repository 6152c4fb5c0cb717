"""Per-user session upkeep: day/hour rollover, daily rewards and grants."""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from urlcoin.core.config import get_settings
from urlcoin.core.database import kst_now, to_kst
from urlcoin.schemas.market import MarketState
from urlcoin.schemas.user import UserAccount
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import DocumentNotFoundError, DocumentSnapshot, DocumentStore
from urlcoin.services.ledger import USERS_COLLECTION
from urlcoin.services.ranking import mark_to_market
from urlcoin.utils.helpers import format_currency, parse_login_date

settings = get_settings()
logger = logging.getLogger(__name__)
trading_logger = logging.getLogger("trading")

NEWS_DOC_ID = "news"


class RewardKind(str, Enum):
    """Daily rewards a user can claim."""
    ATTENDANCE = "attendance"
    SUPPORT = "support"


class RewardRejected(ValueError):
    """Raised when a reward claim is refused; nothing is written."""

    def __init__(self, reward: RewardKind, message: str):
        super().__init__(message)
        self.reward = reward


class GrantRejected(ValueError):
    """Raised when a grant would leave a user with negative cash."""


def reconcile(account: UserAccount, now: datetime, prices: Dict[str, int]) -> Dict[str, Any]:
    """Compute the rollover updates for a resuming session.

    The date check and the hour check are independent; either, both or
    neither may fire.

    Args:
        account: Stored account
        now: Resume time, compared in KST
        prices: Current coin prices for the hourly asset snapshot

    Returns:
        Fields to merge into the user document (empty if nothing rolled over)
    """
    local = to_kst(now)
    today = local.date()
    updates: Dict[str, Any] = {}

    last_login = parse_login_date(account.last_login_date)
    if last_login != today:
        elapsed = (today - last_login).days if last_login is not None else None
        if elapsed is not None and elapsed < 0:
            logger.warning(f"Last login of {account.uid} is in the future ({last_login}); leaving profits")
        else:
            updates["yesterdayProfit"] = account.today_profit if elapsed == 1 else 0
            updates["todayProfit"] = 0
        updates["lastLoginDate"] = today.isoformat()

    if account.last_hour_checked != local.hour:
        total = mark_to_market(account, prices)
        updates["hourlyAsset"] = total
        updates["totalAsset"] = total
        updates["lastHourChecked"] = local.hour

    return updates


class AccountService:
    """Session resume, daily rewards and operator grants on user documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self, uid: str) -> DocumentSnapshot:
        snapshot = self.store.get(USERS_COLLECTION, uid)
        if snapshot is None:
            raise DocumentNotFoundError(f"User {uid} not found")
        return snapshot

    def _prices(self) -> Dict[str, int]:
        data = self.store.read(MARKET_COLLECTION, MARKET_DOC_ID)
        return MarketState.model_validate(data).prices() if data else {}

    def resume(self, uid: str, now: Optional[datetime] = None) -> UserAccount:
        """Run the rollover for a user and return the account as stored afterwards."""
        snapshot = self._load(uid)
        account = UserAccount.from_document(snapshot.doc_id, snapshot.data)
        updates = reconcile(account, now or kst_now(), self._prices())
        if not updates:
            return account

        self.store.update(USERS_COLLECTION, uid, updates, expected_version=snapshot.version)
        logger.info(f"Rollover for {account.nickname}: {sorted(updates)}")
        return UserAccount.from_document(uid, {**snapshot.data, **updates})

    def claim_attendance(self, uid: str, now: Optional[datetime] = None) -> UserAccount:
        """Pay the daily attendance reward once per calendar day.

        Raises:
            RewardRejected: If it was already claimed today
        """
        snapshot = self._load(uid)
        account = UserAccount.from_document(snapshot.doc_id, snapshot.data)
        today = to_kst(now or kst_now()).date().isoformat()

        if account.last_attendance_date == today:
            raise RewardRejected(RewardKind.ATTENDANCE, "Attendance already checked today")

        cash = account.cash + settings.attendance_reward
        self.store.update(USERS_COLLECTION, uid, {
            "cash": cash,
            "lastAttendanceDate": today,
        }, expected_version=snapshot.version)

        trading_logger.info(f"🎁 {account.nickname} attendance +{format_currency(settings.attendance_reward)}")
        return account.model_copy(update={"cash": cash, "last_attendance_date": today})

    def claim_support(self, uid: str, now: Optional[datetime] = None) -> UserAccount:
        """Pay the daily bankruptcy support to a nearly broke account.

        Eligibility is judged on the live mark-to-market total, not the
        snapshot.

        Raises:
            RewardRejected: If already claimed today or the account holds too much
        """
        snapshot = self._load(uid)
        account = UserAccount.from_document(snapshot.doc_id, snapshot.data)
        today = to_kst(now or kst_now()).date().isoformat()

        if account.last_support_date == today:
            raise RewardRejected(RewardKind.SUPPORT, "Support already received today")
        total = mark_to_market(account, self._prices())
        if total > settings.support_threshold:
            raise RewardRejected(
                RewardKind.SUPPORT,
                f"Support requires total assets of at most {format_currency(settings.support_threshold)}"
            )

        cash = account.cash + settings.support_reward
        self.store.update(USERS_COLLECTION, uid, {
            "cash": cash,
            "lastSupportDate": today,
        }, expected_version=snapshot.version)

        trading_logger.info(f"🆘 {account.nickname} support +{format_currency(settings.support_reward)}")
        return account.model_copy(update={"cash": cash, "last_support_date": today})

    def grant_cash(self, nickname: str, amount: int) -> UserAccount:
        """Add cash to the user with the given nickname.

        A negative amount deducts cash, but never below zero.

        Raises:
            DocumentNotFoundError: If no user has that nickname
            GrantRejected: If the deduction exceeds the user's cash
        """
        matches = self.store.query_equals(USERS_COLLECTION, "nickname", nickname)
        if not matches:
            raise DocumentNotFoundError(f"No user named {nickname}")

        snapshot = matches[0]
        account = UserAccount.from_document(snapshot.doc_id, snapshot.data)
        cash = account.cash + amount
        if cash < 0:
            raise GrantRejected(f"{nickname} has only {format_currency(account.cash)}")
        self.store.update(USERS_COLLECTION, snapshot.doc_id, {"cash": cash})

        trading_logger.info(f"💰 Granted {format_currency(amount)} to {nickname}")
        return account.model_copy(update={"cash": cash})

    def publish_news(self, text: str) -> None:
        """Replace the news ticker text."""
        self.store.set(MARKET_COLLECTION, NEWS_DOC_ID, {"text": text})
        logger.info(f"News published: {text}")
