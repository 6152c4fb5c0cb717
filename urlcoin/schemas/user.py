"""User account schemas."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from urlcoin.schemas.trading import TradeSide


class CamelModel(BaseModel):
    """Base model stored with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Holding(CamelModel):
    """Quantity and volume-weighted average cost of one coin."""
    quantity: int = Field(0, alias="qty")
    average_cost: float = Field(0.0, alias="avgPrice")


class TradeRecord(CamelModel):
    """One executed trade as kept in the account history."""
    side: TradeSide = Field(..., alias="type")
    coin_name: str = Field(..., alias="name")
    price: int
    quantity: int = Field(..., alias="qty")
    total_price: int
    date: str
    profit_rate: float = 0.0


class UserAccount(CamelModel):
    """Contents of a ``users/{uid}`` document."""
    uid: str
    nickname: str
    email: str = ""
    cash: int = 0
    holdings: Dict[str, Holding] = Field(default_factory=dict)
    history: List[TradeRecord] = Field(default_factory=list)
    total_asset: Optional[float] = None
    hourly_asset: Optional[float] = None
    last_hour_checked: Optional[int] = None
    today_profit: float = 0
    yesterday_profit: Optional[float] = None
    last_login_date: Optional[str] = None
    created_at: Optional[str] = None
    is_admin: bool = False
    last_attendance_date: Optional[str] = None
    last_support_date: Optional[str] = None

    def to_document(self) -> dict:
        """Serialize to stored field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "UserAccount":
        """Load a stored account, tolerating documents without uid/nickname."""
        return cls.model_validate({"uid": doc_id, "nickname": "익명", **data})


class UserCreate(BaseModel):
    """Schema for user registration."""
    handle: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_.\-]+$")
    password: str = Field(..., min_length=6, max_length=128)
    nickname: str = Field(..., min_length=1, max_length=30)


class UserLogin(BaseModel):
    """Schema for user login."""
    handle: str
    password: str


class UserResponse(CamelModel):
    """Schema for user response."""
    uid: str
    nickname: str
    email: str
    cash: int
    holdings: Dict[str, Holding]
    total_asset: Optional[float]
    hourly_asset: Optional[float]
    today_profit: float
    yesterday_profit: Optional[float]
    last_login_date: Optional[str]
    is_admin: bool


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Schema for token payload data."""
    uid: Optional[str] = None
