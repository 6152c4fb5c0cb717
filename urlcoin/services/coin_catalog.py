"""Coin catalog and market document seeding."""
import logging
from typing import Dict, List

from urlcoin.core.config import get_settings
from urlcoin.schemas.market import Coin, Direction, MarketState
from urlcoin.services.document_store import DocumentStore

logger = logging.getLogger(__name__)
market_logger = logging.getLogger("market")
settings = get_settings()

MARKET_COLLECTION = "system"
MARKET_DOC_ID = "market"

# Listing prices and random-walk amplitude of every coin in the game
INITIAL_COINS: List[Dict] = [
    {"id": "c1", "name": "키위", "price": 21000, "color": "lime", "icon": "fa-kiwi-bird", "desc": "#상큼 #비타민", "volatility": 0.03},
    {"id": "c2", "name": "골드 키위", "price": 12500, "color": "yellow", "icon": "fa-kiwi-bird", "desc": "#달콤 #프리미엄", "volatility": 0.015},
    {"id": "c3", "name": "검은 고양이", "price": 8400, "color": "gray", "icon": "fa-cat", "desc": "#시크 #도도", "volatility": 0.04},
    {"id": "c4", "name": "초록 고양이", "price": 45000, "color": "emerald", "icon": "fa-cat", "desc": "#이세계 #신비", "volatility": 0.01},
    {"id": "c5", "name": "악마", "price": 5200, "color": "red", "icon": "fa-fire", "desc": "#매운맛 #폭주", "volatility": 0.02},
    {"id": "c6", "name": "따봉", "price": 3200, "color": "blue", "icon": "fa-thumbs-up", "desc": "#최고 #좋아요", "volatility": 0.025},
    {"id": "c7", "name": "도토리", "price": 15600, "color": "orange", "icon": "fa-leaf", "desc": "#가을 #다람쥐", "volatility": 0.02},
    {"id": "c8", "name": "황금 도토리", "price": 980, "color": "amber", "icon": "fa-star", "desc": "#레어 #전설", "volatility": 0.08},
    {"id": "c9", "name": "북극 여우", "price": 7500, "color": "cyan", "icon": "fa-snowflake", "desc": "#추위 #하양", "volatility": 0.015},
    {"id": "c10", "name": "여우", "price": 2200, "color": "orange", "icon": "fa-paw", "desc": "#영리함 #날쌘돌이", "volatility": 0.03},
]


def listing_market() -> MarketState:
    """Build the market at listing prices with flat history.

    Returns:
        MarketState with every catalog coin, change 0, direction even and a
        full history window filled with the listing price
    """
    coins = [
        Coin(
            **listing,
            change=0.0,
            direction=Direction.EVEN,
            history=[listing["price"]] * settings.history_length,
        )
        for listing in INITIAL_COINS
    ]
    return MarketState(items=coins, last_slot_id="")


def seed_market(store: DocumentStore) -> bool:
    """Create the market document if it does not exist yet.

    Args:
        store: Document store

    Returns:
        True if the market was created, False if it already existed
    """
    if store.get(MARKET_COLLECTION, MARKET_DOC_ID) is not None:
        logger.debug("Market document already present")
        return False

    store.set(MARKET_COLLECTION, MARKET_DOC_ID, listing_market().to_document())
    market_logger.info(f"Market seeded with {len(INITIAL_COINS)} coins")
    return True


def reset_market(store: DocumentStore) -> MarketState:
    """Overwrite the market with listing prices and clear the slot id."""
    market = listing_market()
    store.set(MARKET_COLLECTION, MARKET_DOC_ID, market.to_document())
    market_logger.warning("Market reset to listing prices")
    return market
