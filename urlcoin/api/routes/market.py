"""Market API endpoints and the live document stream."""
import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from urlcoin.schemas.market import Coin, MarketState, NewsResponse
from urlcoin.services.accounts import NEWS_DOC_ID
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import DocumentStore, get_document_store

router = APIRouter(prefix="/market", tags=["market"])
logger = logging.getLogger(__name__)

# System documents clients may observe
STREAMABLE_DOCUMENTS = {MARKET_DOC_ID, NEWS_DOC_ID}


def _load_market(store: DocumentStore) -> MarketState:
    data = store.read(MARKET_COLLECTION, MARKET_DOC_ID)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Market not initialized")
    return MarketState.model_validate(data)


@router.get("", response_model=MarketState)
async def get_market(store: DocumentStore = Depends(get_document_store)):
    """Get every listed coin and the last priced slot."""
    return _load_market(store)


@router.get("/coins/{coin_id}", response_model=Coin)
async def get_coin(coin_id: str, store: DocumentStore = Depends(get_document_store)):
    """Get a single coin with its price history."""
    coin = _load_market(store).find(coin_id)
    if coin is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown coin: {coin_id}")
    return coin


@router.get("/news", response_model=NewsResponse)
async def get_news(store: DocumentStore = Depends(get_document_store)):
    """Get the news ticker text."""
    data = store.read(MARKET_COLLECTION, NEWS_DOC_ID) or {}
    return NewsResponse(text=data.get("text", ""))


@router.websocket("/stream/{doc_id}")
async def stream_document(
    websocket: WebSocket,
    doc_id: str,
    store: DocumentStore = Depends(get_document_store)
):
    """Push a system document's full field set now and after every write."""
    if doc_id not in STREAMABLE_DOCUMENTS:
        await websocket.close(code=1008)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Subscribe before accepting so no write after the handshake is missed;
    # writes may commit on any thread, so hand the data over to this loop
    unsubscribe = store.subscribe(
        MARKET_COLLECTION,
        doc_id,
        lambda data: loop.call_soon_threadsafe(queue.put_nowait, data)
    )

    async def pump():
        while True:
            data = await queue.get()
            await websocket.send_json(data)

    sender = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Stream client for {doc_id} disconnected")
    finally:
        unsubscribe()
        if sender is not None:
            sender.cancel()
