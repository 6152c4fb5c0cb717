"""Ranking API endpoints."""
from fastapi import APIRouter, Depends, Query
from urlcoin.core.security import get_current_user
from urlcoin.schemas.trading import RankingBoard, RankingCriterion
from urlcoin.schemas.user import UserAccount
from urlcoin.services.document_store import DocumentStore, get_document_store
from urlcoin.services.ranking import RankingService

router = APIRouter(prefix="/ranking", tags=["ranking"])


@router.get("", response_model=RankingBoard)
async def get_ranking(
    criterion: RankingCriterion = Query(RankingCriterion.TOTAL_ASSET, description="total or profit"),
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Get the top 100 and the caller's own standing.

    Args:
        criterion: Rank by snapshot total asset or yesterday's profit
        current_user: Current authenticated user
        store: Document store

    Returns:
        Leaderboard with the caller's rank and percentile
    """
    return RankingService(store).leaderboard(criterion, viewer=current_user)
