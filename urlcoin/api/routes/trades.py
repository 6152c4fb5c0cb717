"""Trading API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from urlcoin.core.security import get_current_user
from urlcoin.schemas.trading import OrderCreate, TradeResponse
from urlcoin.schemas.user import UserAccount
from urlcoin.services.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    WriteConflictError,
    get_document_store,
)
from urlcoin.services.ledger import LedgerService, TradeRejected

router = APIRouter(prefix="/trades", tags=["trading"])


@router.post("", response_model=TradeResponse)
async def create_trade(
    order: OrderCreate,
    current_user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store)
):
    """Buy or sell a coin at the current market price.

    Args:
        order: Coin, side, quantity and optionally the price the client saw
        current_user: Current authenticated user
        store: Document store

    Returns:
        The settled trade and the caller's new cash and position

    Raises:
        HTTPException: 400 on a rejected trade, 404 if the market is missing,
            409 if another session changed the account meanwhile
    """
    try:
        update = LedgerService(store).execute(
            current_user.uid,
            order.coin_id,
            order.side,
            order.quantity,
            expected_price=order.expected_price
        )
    except TradeRejected as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"reason": e.reason.value, "message": str(e)}
        )
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WriteConflictError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Account changed by another session; retry the trade"
        )

    holding = update.holdings.get(order.coin_id)
    return TradeResponse(
        coin_id=order.coin_id,
        side=order.side,
        price=update.record.price,
        quantity=update.record.quantity,
        total_price=update.record.total_price,
        profit_rate=update.record.profit_rate,
        realized_profit=update.realized_profit,
        cash=update.cash,
        holding_quantity=holding.quantity if holding else 0,
        average_cost=holding.average_cost if holding else 0.0,
        today_profit=update.today_profit
    )
