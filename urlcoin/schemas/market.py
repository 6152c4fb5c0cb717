"""Market document schemas."""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Direction(str, Enum):
    """Direction tag of the latest price move."""
    UP = "up"
    DOWN = "down"
    EVEN = "even"


class Coin(BaseModel):
    """A listed coin as stored in the market document."""
    id: str
    name: str
    price: int
    change: float = 0.0
    direction: Direction = Field(Direction.EVEN, alias="type")
    color: str = ""
    icon: str = ""
    desc: str = ""
    volatility: float = 0.0
    history: List[int] = Field(default_factory=list)
    forced_change: Optional[float] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MarketState(BaseModel):
    """Contents of the ``system/market`` document."""
    items: List[Coin] = Field(default_factory=list)
    last_slot_id: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Serialize to stored field names, dropping cleared overrides."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def prices(self) -> dict:
        """Map coin id to current price."""
        return {coin.id: coin.price for coin in self.items}

    def find(self, coin_id: str) -> Optional[Coin]:
        """Look up a coin by id."""
        return next((coin for coin in self.items if coin.id == coin_id), None)


class NewsResponse(BaseModel):
    """Schema for the news ticker."""
    text: str = ""


class MarketEvent(BaseModel):
    """Schema for an operator market event (news and/or forced change)."""
    news_text: Optional[str] = None
    coin_id: Optional[str] = None
    percent: Optional[float] = None
