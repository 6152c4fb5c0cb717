"""Operator API endpoints."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from urlcoin.core.security import require_admin
from urlcoin.schemas.market import MarketEvent, MarketState
from urlcoin.schemas.trading import BatchResult, CashGrant
from urlcoin.schemas.user import UserAccount
from urlcoin.services.accounts import AccountService, GrantRejected
from urlcoin.services.coin_catalog import reset_market
from urlcoin.services.document_store import DocumentNotFoundError, DocumentStore, get_document_store
from urlcoin.services.market_clock import MarketClock
from urlcoin.services.ranking import RankingService

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.post("/event", response_model=BatchResult)
async def trigger_event(
    event: MarketEvent,
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Publish news and/or schedule a forced price move.

    Args:
        event: News text, and a coin id with the percentage for its next step
        admin: Current operator
        store: Document store

    Raises:
        HTTPException: 400 if the event is empty or only half a forced move, 404 for an unknown coin
    """
    wants_move = event.coin_id is not None or event.percent is not None
    if wants_move and (event.coin_id is None or event.percent is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A forced move needs both coin_id and percent"
        )
    if not wants_move and not event.news_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to publish")

    count = 0
    if event.news_text:
        AccountService(store).publish_news(event.news_text)
        count += 1
    if wants_move:
        try:
            MarketClock(store).set_forced_change(event.coin_id, event.percent)
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        count += 1

    logger.info(f"Event triggered by {admin.nickname}")
    return BatchResult(status="ok", count=count)


@router.post("/grant", response_model=BatchResult)
async def grant_cash(
    grant: CashGrant,
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Give cash to a user found by nickname; a negative amount deducts."""
    try:
        AccountService(store).grant_cash(grant.nickname, grant.amount)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except GrantRejected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BatchResult(status="ok", count=1)


@router.post("/market/reset", response_model=MarketState)
async def reset(
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Put every coin back at its listing price."""
    logger.warning(f"Market reset requested by {admin.nickname}")
    return reset_market(store)


@router.post("/market/force-update", response_model=MarketState)
async def force_update(
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Apply one price step immediately, outside the slot schedule."""
    try:
        return MarketClock(store).force_update()
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/ranking/recompute", response_model=BatchResult)
async def recompute_ranking(
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Recompute every user's asset snapshot now."""
    count = RankingService(store).recompute_all()
    return BatchResult(status="ok", count=count)


@router.post("/ranking/backfill-profit", response_model=BatchResult)
async def backfill_profit(
    admin: UserAccount = Depends(require_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Set a missing yesterday's profit to 0 on every account."""
    count = RankingService(store).backfill_yesterday_profit()
    return BatchResult(status="ok", count=count)
