"""Pydantic schemas for API request/response validation."""
from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum


class TradeSide(str, Enum):
    """Trade side enumeration."""
    BUY = "buy"
    SELL = "sell"


class RejectionReason(str, Enum):
    """Reason a trade was rejected."""
    INVALID_QUANTITY = "invalid_quantity"
    INSUFFICIENT_CASH = "insufficient_cash"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    UNKNOWN_COIN = "unknown_coin"
    STALE_PRICE = "stale_price"


class OrderCreate(BaseModel):
    """Schema for submitting a trade."""
    coin_id: str = Field(..., description="Coin id (e.g., c1)")
    side: TradeSide
    quantity: int = Field(..., description="Number of units to buy/sell")
    expected_price: Optional[int] = Field(
        None, description="Price the client saw; rejected if the market moved"
    )


class TradeResponse(BaseModel):
    """Schema for a settled trade."""
    coin_id: str
    side: TradeSide
    price: int
    quantity: int
    total_price: int
    profit_rate: float
    realized_profit: float
    cash: int
    holding_quantity: int
    average_cost: float
    today_profit: float


class PositionValue(BaseModel):
    """Valuation of one held coin at the current price."""
    coin_id: str
    name: str
    quantity: int
    average_cost: float
    price: int
    current_value: float
    cost_basis: float
    unrealized_profit: float
    profit_rate: float
    weight: float = Field(..., description="Share of the total asset in percent")


class PortfolioResponse(BaseModel):
    """Schema for a marked-to-market portfolio."""
    cash: int
    cash_weight: float
    coin_value: float
    total_asset: float
    unrealized_profit: float
    positions: List[PositionValue]


class RankingCriterion(str, Enum):
    """Field a leaderboard is sorted by."""
    TOTAL_ASSET = "total"
    YESTERDAY_PROFIT = "profit"


class RankingEntry(BaseModel):
    """One leaderboard row."""
    rank: int
    uid: str
    nickname: str
    value: float


class ViewerRank(BaseModel):
    """Where the requesting user stands."""
    ranked: bool
    rank: Optional[int] = None
    percentile: Optional[float] = None
    nickname: Optional[str] = None
    value: Optional[float] = None
    reason: Optional[str] = None  # "admin" or "unranked" when not ranked


class RankingBoard(BaseModel):
    """Schema for a leaderboard response."""
    criterion: RankingCriterion
    total_count: int
    entries: List[RankingEntry]
    viewer: Optional[ViewerRank] = None


class RewardResponse(BaseModel):
    """Schema for a claimed reward."""
    reward: str
    amount: int
    cash: int


class CashGrant(BaseModel):
    """Schema for granting cash to a user by nickname."""
    nickname: str = Field(..., min_length=1)
    amount: int = Field(..., description="Cash to add; negative deducts, but never below zero")


class BatchResult(BaseModel):
    """Schema for operator batch actions."""
    status: str
    count: int = 0
