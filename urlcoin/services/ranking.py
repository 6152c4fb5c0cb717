"""Leaderboards, portfolio valuation and the daily asset snapshot."""
import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from urlcoin.core.config import get_settings
from urlcoin.core.database import kst_now, to_kst
from urlcoin.schemas.market import MarketState
from urlcoin.schemas.trading import (
    PortfolioResponse,
    PositionValue,
    RankingBoard,
    RankingCriterion,
    RankingEntry,
    ViewerRank,
)
from urlcoin.schemas.user import UserAccount
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import DocumentStore
from urlcoin.services.ledger import USERS_COLLECTION
from urlcoin.utils.helpers import calculate_profit_rate

logger = logging.getLogger(__name__)
market_logger = logging.getLogger("market")
settings = get_settings()

RANKING_DOC_ID = "ranking"


class SnapshotOutcome(str, Enum):
    """Result of a daily snapshot attempt."""
    RAN = "ran"
    SKIPPED = "skipped"
    FAILED = "failed"


def mark_to_market(account: UserAccount, prices: Dict[str, int]) -> int:
    """Cash plus the current value of every holding with a known price."""
    total = account.cash
    for coin_id, holding in account.holdings.items():
        price = prices.get(coin_id)
        if price is not None:
            total += holding.quantity * price
    return total


def value_portfolio(account: UserAccount, market: MarketState) -> PortfolioResponse:
    """Mark every held coin to the current market.

    Holdings with no units left, or whose coin is no longer listed, are
    skipped. Weights are shares of the total asset (cash plus coin value).

    Args:
        account: Account to value
        market: Current market state

    Returns:
        PortfolioResponse with one position per held coin, listing order
    """
    rows = []
    for coin in market.items:
        holding = account.holdings.get(coin.id)
        if holding is None or holding.quantity <= 0:
            continue
        current_value = holding.quantity * coin.price
        cost_basis = holding.quantity * holding.average_cost
        profit = current_value - cost_basis
        rows.append((coin, holding, current_value, cost_basis, profit))

    coin_value = sum(row[2] for row in rows)
    total = account.cash + coin_value

    def weight(amount: float) -> float:
        return round(amount / total * 100, 2) if total > 0 else 0.0

    positions = [
        PositionValue(
            coin_id=coin.id,
            name=coin.name,
            quantity=holding.quantity,
            average_cost=holding.average_cost,
            price=coin.price,
            current_value=current_value,
            cost_basis=cost_basis,
            unrealized_profit=profit,
            profit_rate=calculate_profit_rate(profit, cost_basis),
            weight=weight(current_value),
        )
        for coin, holding, current_value, cost_basis, profit in rows
    ]

    return PortfolioResponse(
        cash=account.cash,
        cash_weight=weight(account.cash),
        coin_value=coin_value,
        total_asset=total,
        unrealized_profit=sum(position.unrealized_profit for position in positions),
        positions=positions,
    )


def current_date_id(now: datetime) -> str:
    """Name the KST calendar day, e.g. ``"2025-12-12"`` (month and day unpadded)."""
    local = to_kst(now)
    return f"{local.year}-{local.month}-{local.day}"


def is_excluded(account: UserAccount) -> bool:
    """Administrative accounts never appear on leaderboards."""
    return account.is_admin or account.nickname == settings.admin_nickname


def snapshot_asset(account: UserAccount) -> float:
    """Last recorded asset total; starting cash if none was ever recorded."""
    if account.hourly_asset is not None:
        return account.hourly_asset
    if account.total_asset is not None:
        return account.total_asset
    return settings.starting_cash


def ranking_value(account: UserAccount, criterion: RankingCriterion) -> float:
    """Value an account is ranked by."""
    if criterion == RankingCriterion.YESTERDAY_PROFIT:
        return account.yesterday_profit if account.yesterday_profit is not None else 0
    return snapshot_asset(account)


def build_ranking(
    accounts: Iterable[UserAccount],
    criterion: RankingCriterion,
    viewer: Optional[UserAccount] = None,
    limit: Optional[int] = None
) -> RankingBoard:
    """Sort accounts into a leaderboard.

    Args:
        accounts: Every account
        criterion: Field to rank by
        viewer: Account asking, located by uid in the sorted list
        limit: Rows to present (defaults to the configured ranking size)

    Returns:
        RankingBoard with the top rows and the viewer's standing
    """
    limit = limit or settings.ranking_size
    ranked = sorted(
        (account for account in accounts if not is_excluded(account)),
        key=lambda account: ranking_value(account, criterion),
        reverse=True
    )
    total_count = len(ranked)

    entries = [
        RankingEntry(
            rank=index + 1,
            uid=account.uid,
            nickname=account.nickname,
            value=ranking_value(account, criterion),
        )
        for index, account in enumerate(ranked[:limit])
    ]

    viewer_rank = None
    if viewer is not None:
        position = next((i for i, account in enumerate(ranked) if account.uid == viewer.uid), None)
        if position is None:
            viewer_rank = ViewerRank(
                ranked=False,
                nickname=viewer.nickname,
                value=viewer.total_asset if viewer.total_asset is not None else viewer.cash,
                reason="admin" if is_excluded(viewer) else "unranked",
            )
        else:
            rank = position + 1
            percentile = max(rank / total_count * 100, 0.01)
            viewer_rank = ViewerRank(
                ranked=True,
                rank=rank,
                percentile=round(percentile, 2),
                nickname=viewer.nickname,
                value=ranking_value(ranked[position], criterion),
            )

    return RankingBoard(criterion=criterion, total_count=total_count, entries=entries, viewer=viewer_rank)


class RankingService:
    """Reads leaderboards and maintains the denormalized asset snapshot."""

    def __init__(self, store: DocumentStore):
        """Initialize the ranking service.

        Args:
            store: Document store holding the users and system documents
        """
        self.store = store
        self._last_snapshot_date: Optional[str] = None

    def _accounts(self):
        return [
            UserAccount.from_document(snapshot.doc_id, snapshot.data)
            for snapshot in self.store.list_all(USERS_COLLECTION)
        ]

    def _prices(self) -> Dict[str, int]:
        data = self.store.read(MARKET_COLLECTION, MARKET_DOC_ID)
        return MarketState.model_validate(data).prices() if data else {}

    def portfolio(self, account: UserAccount) -> PortfolioResponse:
        """Value an account's holdings at current market prices."""
        data = self.store.read(MARKET_COLLECTION, MARKET_DOC_ID)
        market = MarketState.model_validate(data) if data else MarketState()
        return value_portfolio(account, market)

    def leaderboard(self, criterion: RankingCriterion, viewer: Optional[UserAccount] = None) -> RankingBoard:
        """Load all users and rank them."""
        return build_ranking(self._accounts(), criterion, viewer)

    def recompute_all(self) -> int:
        """Rewrite every user's asset snapshot at current prices.

        Returns:
            Number of users updated
        """
        prices = self._prices()
        count = 0
        for snapshot in self.store.list_all(USERS_COLLECTION):
            account = UserAccount.from_document(snapshot.doc_id, snapshot.data)
            total = mark_to_market(account, prices)
            self.store.update(USERS_COLLECTION, snapshot.doc_id, {
                "hourlyAsset": total,
                "totalAsset": total,
            })
            count += 1
        return count

    def try_daily_snapshot(self, now: Optional[datetime] = None) -> SnapshotOutcome:
        """Run the day's asset snapshot once.

        The ranking document records the last day that completed. It is
        written only after every user has been updated, so an interrupted
        pass is redone in full by a later call.
        """
        date_id = current_date_id(now or kst_now())
        if self._last_snapshot_date == date_id:
            return SnapshotOutcome.SKIPPED

        try:
            ranking_doc = self.store.read(MARKET_COLLECTION, RANKING_DOC_ID) or {}
            if ranking_doc.get("lastUpdatedDate") == date_id:
                self._last_snapshot_date = date_id
                return SnapshotOutcome.SKIPPED

            market_logger.info(f"🏆 [{date_id}] 일일 자산 랭킹 스냅샷 생성 중...")
            count = self.recompute_all()
            self.store.set(MARKET_COLLECTION, RANKING_DOC_ID, {"lastUpdatedDate": date_id})
        except SQLAlchemyError as e:
            logger.error(f"Daily ranking snapshot for {date_id} failed: {e}")
            return SnapshotOutcome.FAILED

        self._last_snapshot_date = date_id
        market_logger.info(f"✅ Daily ranking snapshot complete ({count} users)")
        return SnapshotOutcome.RAN

    def backfill_yesterday_profit(self) -> int:
        """Set yesterday's profit to 0 where it was never recorded.

        Returns:
            Number of users corrected
        """
        count = 0
        for snapshot in self.store.list_all(USERS_COLLECTION):
            if snapshot.data.get("yesterdayProfit") is None:
                self.store.update(USERS_COLLECTION, snapshot.doc_id, {"yesterdayProfit": 0})
                count += 1
        return count
