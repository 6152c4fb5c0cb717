"""Account API endpoints: session resume, trade history, portfolio and daily rewards."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from urlcoin.core.config import get_settings
from urlcoin.core.security import get_current_user
from urlcoin.schemas.trading import PortfolioResponse, RewardResponse
from urlcoin.schemas.user import TradeRecord, UserAccount, UserResponse
from urlcoin.services.accounts import AccountService, RewardRejected
from urlcoin.services.document_store import DocumentNotFoundError, DocumentStore, get_document_store
from urlcoin.services.ranking import RankingService

router = APIRouter(prefix="/account", tags=["account"])
settings = get_settings()


@router.post("/resume", response_model=UserResponse)
async def resume_session(
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Reconcile the day and hour rollover for the caller.

    Called once when a client resumes an authenticated session.
    """
    try:
        return AccountService(store).resume(current_user.uid)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("/history", response_model=List[TradeRecord])
async def get_trade_history(current_user: UserAccount = Depends(get_current_user)):
    """Get the caller's trades, newest first."""
    return current_user.history


@router.get("/portfolio", response_model=PortfolioResponse)
async def get_portfolio(
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Get the caller's holdings valued at current prices, with cash/coin weights."""
    return RankingService(store).portfolio(current_user)


@router.post("/attendance", response_model=RewardResponse)
async def claim_attendance(
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Claim the daily attendance reward."""
    try:
        account = AccountService(store).claim_attendance(current_user.uid)
    except RewardRejected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return RewardResponse(reward="attendance", amount=settings.attendance_reward, cash=account.cash)


@router.post("/support", response_model=RewardResponse)
async def claim_support(
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Claim the daily bankruptcy support."""
    try:
        account = AccountService(store).claim_support(current_user.uid)
    except RewardRejected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return RewardResponse(reward="support", amount=settings.support_reward, cash=account.cash)
