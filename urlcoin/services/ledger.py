"""Ledger: trade settlement against a user's cash, holdings and history."""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from urlcoin.core.config import get_settings
from urlcoin.core.database import kst_now
from urlcoin.schemas.market import Coin, MarketState
from urlcoin.schemas.trading import RejectionReason, TradeSide
from urlcoin.schemas.user import Holding, TradeRecord, UserAccount
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import DocumentNotFoundError, DocumentStore
from urlcoin.utils.helpers import calculate_profit_rate, format_currency, format_timestamp

settings = get_settings()
logger = logging.getLogger(__name__)
trading_logger = logging.getLogger("trading")

USERS_COLLECTION = "users"


class TradeRejected(ValueError):
    """Raised when a trade fails its preconditions; nothing is written."""

    def __init__(self, reason: RejectionReason, message: str):
        super().__init__(message)
        self.reason = reason


class LedgerUpdate(BaseModel):
    """Post-trade ledger fields plus the record that was appended."""
    cash: int
    holdings: Dict[str, Holding]
    history: List[TradeRecord]
    today_profit: float
    realized_profit: float
    record: TradeRecord

    def to_fields(self) -> dict:
        """Fields to merge into the user document."""
        return {
            "cash": self.cash,
            "holdings": {
                coin_id: holding.model_dump(mode="json", by_alias=True)
                for coin_id, holding in self.holdings.items()
            },
            "history": [record.model_dump(mode="json", by_alias=True) for record in self.history],
            "todayProfit": self.today_profit,
        }


def settle_trade(
    account: UserAccount,
    coin: Coin,
    side: TradeSide,
    quantity: int,
    now: Optional[datetime] = None
) -> LedgerUpdate:
    """Apply a buy or sell to an account at the coin's current price.

    Args:
        account: Account before the trade
        coin: Coin being traded (its price is the execution price)
        side: Buy or sell
        quantity: Units to trade
        now: Execution time for the trade record

    Returns:
        LedgerUpdate with the new cash, holdings, history and today's profit

    Raises:
        TradeRejected: If quantity is not positive, cash is short for a buy,
            or holdings are short for a sell
    """
    if quantity <= 0:
        raise TradeRejected(RejectionReason.INVALID_QUANTITY, "Quantity must be greater than zero")

    price = coin.price
    total_price = quantity * price
    cash = account.cash
    holdings = {coin_id: holding.model_copy() for coin_id, holding in account.holdings.items()}
    realized_profit = 0.0
    profit_rate = 0.0

    if side == TradeSide.BUY:
        if cash < total_price:
            raise TradeRejected(
                RejectionReason.INSUFFICIENT_CASH,
                f"Insufficient cash: need {format_currency(total_price)}, have {format_currency(cash)}"
            )
        held = holdings.get(coin.id) or Holding()
        new_quantity = held.quantity + quantity
        new_average = (held.quantity * held.average_cost + quantity * price) / new_quantity
        holdings[coin.id] = Holding(quantity=new_quantity, average_cost=new_average)
        cash -= total_price
    else:
        held = holdings.get(coin.id)
        held_quantity = held.quantity if held else 0
        if held_quantity < quantity:
            raise TradeRejected(
                RejectionReason.INSUFFICIENT_HOLDINGS,
                f"Insufficient holdings: need {quantity}, have {held_quantity}"
            )
        realized_profit = (price - held.average_cost) * quantity
        profit_rate = calculate_profit_rate(realized_profit, quantity * held.average_cost)

        remaining = held.quantity - quantity
        holdings[coin.id] = Holding(
            quantity=remaining,
            average_cost=held.average_cost if remaining > 0 else 0.0
        )
        cash += total_price

    record = TradeRecord(
        side=side,
        coin_name=coin.name,
        price=price,
        quantity=quantity,
        total_price=total_price,
        date=format_timestamp(now or kst_now()),
        profit_rate=profit_rate,
    )
    history = ([record] + list(account.history))[:settings.trade_history_limit]

    return LedgerUpdate(
        cash=cash,
        holdings=holdings,
        history=history,
        today_profit=account.today_profit + realized_profit,
        realized_profit=realized_profit,
        record=record,
    )


class LedgerService:
    """Settles trades on the server against the authoritative price."""

    def __init__(self, store: DocumentStore):
        """Initialize the ledger service.

        Args:
            store: Document store holding the market and user documents
        """
        self.store = store

    def execute(
        self,
        uid: str,
        coin_id: str,
        side: TradeSide,
        quantity: int,
        expected_price: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> LedgerUpdate:
        """Execute a trade for a user.

        The price comes from the market document at settlement time. The
        account write is conditional on the version read, so a concurrent
        trade from another session surfaces as a conflict instead of being
        overwritten.

        Raises:
            TradeRejected: On failed preconditions or a stale expected_price
            DocumentNotFoundError: If the user or the market does not exist
            WriteConflictError: If the account changed while settling
        """
        market_data = self.store.read(MARKET_COLLECTION, MARKET_DOC_ID)
        if market_data is None:
            raise DocumentNotFoundError("Market document missing")
        coin = MarketState.model_validate(market_data).find(coin_id)
        if coin is None:
            raise TradeRejected(RejectionReason.UNKNOWN_COIN, f"Unknown coin: {coin_id}")
        if expected_price is not None and expected_price != coin.price:
            raise TradeRejected(
                RejectionReason.STALE_PRICE,
                f"Price moved from {format_currency(expected_price)} to {format_currency(coin.price)}"
            )

        snapshot = self.store.get(USERS_COLLECTION, uid)
        if snapshot is None:
            raise DocumentNotFoundError(f"User {uid} not found")
        account = UserAccount.from_document(snapshot.doc_id, snapshot.data)

        try:
            update = settle_trade(account, coin, side, quantity, now)
        except TradeRejected as e:
            logger.info(f"Trade rejected for {account.nickname}: {e}")
            raise

        self.store.update(USERS_COLLECTION, uid, update.to_fields(), expected_version=snapshot.version)

        trading_logger.info(
            f"{account.nickname} {side.value} {quantity} {coin.name} @ {format_currency(coin.price)} "
            f"(total {format_currency(update.record.total_price)}, realized {update.realized_profit:+,.0f})"
        )
        return update
