"""Market clock: scheduled price updates on 15-minute slots.

Each slot of the trading day (in KST) is priced exactly once. A price step
applies the coin's one-shot forced change if an operator set one, otherwise
a uniform random walk scaled by the coin's volatility.
"""
import logging
import math
import random
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from urlcoin.core.config import get_settings
from urlcoin.core.database import kst_now, to_kst
from urlcoin.schemas.market import Coin, Direction, MarketState
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import (
    DocumentSnapshot,
    DocumentStore,
    WriteConflictError,
)

logger = logging.getLogger(__name__)
market_logger = logging.getLogger("market")
settings = get_settings()


def current_slot_id(now: datetime) -> str:
    """Name the pricing slot that contains ``now``.

    The time is shifted to KST and formatted as year, month, day, a dash,
    hour and the slot's starting minute (two digits). Only the minute is
    zero-padded, e.g. ``"20251212-930"`` for 09:37.
    """
    local = to_kst(now)
    slot_minutes = (local.minute // settings.slot_minutes) * settings.slot_minutes
    return f"{local.year}{local.month}{local.day}-{local.hour}{slot_minutes:02d}"


def apply_price_step(coin: Coin, rng: random.Random) -> Coin:
    """Move one coin's price by a single step.

    Args:
        coin: Coin before the step
        rng: Random source for the walk

    Returns:
        New Coin with updated price, change, direction and history, and the
        forced change cleared
    """
    old_price = coin.price
    if coin.forced_change is not None:
        factor = 1 + Decimal(str(coin.forced_change)) / 100
        new_price = math.floor(Decimal(old_price) * factor)
    else:
        new_price = math.floor(old_price * (1 + rng.uniform(-1, 1) * coin.volatility))
    new_price = max(new_price, settings.price_floor)

    change = round((new_price - old_price) / old_price * 100, 2)
    if change > 0:
        direction = Direction.UP
    elif change < 0:
        direction = Direction.DOWN
    else:
        direction = Direction.EVEN

    history = (list(coin.history) + [new_price])[-settings.history_length:]

    return coin.model_copy(update={
        "price": new_price,
        "change": change,
        "direction": direction,
        "history": history,
        "forced_change": None,
    })


def advance_coins(coins: List[Coin], rng: random.Random) -> List[Coin]:
    """Apply one price step to every coin."""
    return [apply_price_step(coin, rng) for coin in coins]


def try_advance(state: MarketState, now: datetime, rng: random.Random) -> Optional[MarketState]:
    """Price the slot containing ``now`` unless it was already priced.

    Returns:
        The next MarketState, or None if the slot was already priced
    """
    slot_id = current_slot_id(now)
    if state.last_slot_id == slot_id:
        return None
    return MarketState(items=advance_coins(state.items, rng), last_slot_id=slot_id)


class MarketClock:
    """Advances the shared market document."""

    def __init__(self, store: DocumentStore, rng: Optional[random.Random] = None):
        """Initialize the clock.

        Args:
            store: Document store holding ``system/market``
            rng: Random source (a fresh one if not provided)
        """
        self.store = store
        self.rng = rng or random.Random()

    def load(self) -> Optional[DocumentSnapshot]:
        """Read the market document with its version."""
        return self.store.get(MARKET_COLLECTION, MARKET_DOC_ID)

    def state(self) -> Optional[MarketState]:
        """Current market state, or None if the market was never seeded."""
        snapshot = self.load()
        return MarketState.model_validate(snapshot.data) if snapshot else None

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Price the current slot if nobody has yet.

        The stored ``lastSlotId`` is the only gate, so a market reset (which
        clears it) is re-priced by the next tick. Failures are logged and
        swallowed; the slot id stays behind, so the next tick tries again.

        Returns:
            True if this call advanced the market
        """
        now = now or kst_now()
        slot_id = current_slot_id(now)

        try:
            snapshot = self.load()
            if snapshot is None:
                logger.warning("Market document missing; skipping price update")
                return False

            state = MarketState.model_validate(snapshot.data)
            next_state = try_advance(state, now, self.rng)
            if next_state is None:
                return False

            self.store.update(
                MARKET_COLLECTION,
                MARKET_DOC_ID,
                {
                    "items": next_state.to_document()["items"],
                    "lastSlotId": next_state.last_slot_id,
                },
                expected_version=snapshot.version
            )
        except WriteConflictError as e:
            logger.info(f"Price update for slot {slot_id} lost to a concurrent writer: {e}")
            return False
        except SQLAlchemyError as e:
            logger.error(f"Price update for slot {slot_id} failed: {e}")
            return False

        market_logger.info(f"🕒 시세 갱신 완료 ({slot_id})")
        return True

    def force_update(self) -> MarketState:
        """Apply one price step now, without the slot gate.

        Leaves ``lastSlotId`` untouched so the schedule is unaffected.

        Raises:
            LookupError: If the market was never seeded
        """
        snapshot = self.load()
        if snapshot is None:
            raise LookupError("Market document missing")

        state = MarketState.model_validate(snapshot.data)
        next_state = MarketState(items=advance_coins(state.items, self.rng), last_slot_id=state.last_slot_id)
        self.store.update(
            MARKET_COLLECTION,
            MARKET_DOC_ID,
            {"items": next_state.to_document()["items"]},
            expected_version=snapshot.version
        )
        market_logger.info("⚡ Forced price update applied")
        return next_state

    def set_forced_change(self, coin_id: str, percent: float) -> Coin:
        """Schedule a one-shot percentage move for a coin's next price step.

        Raises:
            LookupError: If the market or the coin does not exist
        """
        snapshot = self.load()
        if snapshot is None:
            raise LookupError("Market document missing")

        state = MarketState.model_validate(snapshot.data)
        coin = state.find(coin_id)
        if coin is None:
            raise LookupError(f"Unknown coin: {coin_id}")

        coin.forced_change = percent
        self.store.update(
            MARKET_COLLECTION,
            MARKET_DOC_ID,
            {"items": state.to_document()["items"]},
            expected_version=snapshot.version
        )
        market_logger.info(f"Forced change of {percent:+.2f}% set for {coin.name} ({coin_id})")
        return coin
