"""Tests for trade settlement."""
import pytest

from urlcoin.schemas.market import Coin
from urlcoin.schemas.trading import RejectionReason, TradeSide
from urlcoin.schemas.user import Holding, UserAccount
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.document_store import WriteConflictError
from urlcoin.services.ledger import USERS_COLLECTION, LedgerService, TradeRejected, settle_trade


def make_account(cash=500000, holdings=None, history=None, today_profit=0):
    return UserAccount(
        uid="u1",
        nickname="앨리스",
        cash=cash,
        holdings=holdings or {},
        history=history or [],
        today_profit=today_profit,
    )


def make_coin(price):
    return Coin(id="c8", name="황금 도토리", price=price)


def set_price(store, coin_id, price):
    data = store.read(MARKET_COLLECTION, MARKET_DOC_ID)
    for item in data["items"]:
        if item["id"] == coin_id:
            item["price"] = price
    store.set(MARKET_COLLECTION, MARKET_DOC_ID, data)


class TestSettleTrade:
    """Test the pure settlement rules."""

    def test_buy_then_partial_sell(self):
        """Buy 10 @ 1000 then sell 5 @ 1200."""
        bought = settle_trade(make_account(), make_coin(1000), TradeSide.BUY, 10)
        assert bought.cash == 490000
        assert bought.holdings["c8"].quantity == 10
        assert bought.holdings["c8"].average_cost == 1000

        account = make_account(cash=bought.cash, holdings=bought.holdings, history=bought.history)
        sold = settle_trade(account, make_coin(1200), TradeSide.SELL, 5)
        assert sold.cash == 496000
        assert sold.holdings["c8"].quantity == 5
        assert sold.holdings["c8"].average_cost == 1000
        assert sold.today_profit == 1000
        assert sold.record.profit_rate == 20.0

    def test_average_cost_is_volume_weighted(self):
        account = make_account(holdings={"c8": Holding(quantity=10, average_cost=1000)})
        result = settle_trade(account, make_coin(1600), TradeSide.BUY, 5)
        assert result.holdings["c8"].quantity == 15
        assert result.holdings["c8"].average_cost == pytest.approx(1200)

    def test_selling_everything_resets_average(self):
        account = make_account(holdings={"c8": Holding(quantity=3, average_cost=900)})
        result = settle_trade(account, make_coin(800), TradeSide.SELL, 3)
        assert result.holdings["c8"].quantity == 0
        assert result.holdings["c8"].average_cost == 0
        assert result.realized_profit == -300
        assert result.record.profit_rate == -11.11

    def test_buy_can_spend_exact_cash(self):
        result = settle_trade(make_account(cash=5000), make_coin(1000), TradeSide.BUY, 5)
        assert result.cash == 0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(TradeRejected) as exc_info:
            settle_trade(make_account(), make_coin(1000), TradeSide.BUY, quantity)
        assert exc_info.value.reason == RejectionReason.INVALID_QUANTITY

    def test_insufficient_cash_rejected(self):
        with pytest.raises(TradeRejected) as exc_info:
            settle_trade(make_account(cash=999), make_coin(1000), TradeSide.BUY, 1)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_CASH

    def test_insufficient_holdings_rejected(self):
        account = make_account(holdings={"c8": Holding(quantity=2, average_cost=100)})
        with pytest.raises(TradeRejected) as exc_info:
            settle_trade(account, make_coin(100), TradeSide.SELL, 3)
        assert exc_info.value.reason == RejectionReason.INSUFFICIENT_HOLDINGS

    def test_history_is_newest_first_and_capped(self):
        account = make_account()
        for price in range(1, 106):
            result = settle_trade(account, make_coin(price), TradeSide.BUY, 1)
            account = make_account(cash=result.cash, holdings=result.holdings, history=result.history)

        assert len(account.history) == 100
        assert account.history[0].price == 105
        assert account.history[-1].price == 6


class TestLedgerService:
    """Test server-side settlement against the store."""

    def test_trade_persists_camel_case_fields(self, store, make_user):
        account, _ = make_user()
        set_price(store, "c8", 1000)

        LedgerService(store).execute(account.uid, "c8", TradeSide.BUY, 10)

        data = store.read(USERS_COLLECTION, account.uid)
        assert data["cash"] == 490000
        assert data["holdings"]["c8"] == {"qty": 10, "avgPrice": 1000.0}
        record = data["history"][0]
        assert record["type"] == "buy"
        assert record["name"] == "황금 도토리"
        assert record["qty"] == 10
        assert record["totalPrice"] == 10000

    def test_price_comes_from_market(self, store, make_user):
        account, _ = make_user()
        set_price(store, "c8", 777)
        update = LedgerService(store).execute(account.uid, "c8", TradeSide.BUY, 1)
        assert update.record.price == 777

    def test_stale_expected_price_rejected(self, store, make_user):
        account, _ = make_user()
        set_price(store, "c8", 1000)
        with pytest.raises(TradeRejected) as exc_info:
            LedgerService(store).execute(account.uid, "c8", TradeSide.BUY, 1, expected_price=990)
        assert exc_info.value.reason == RejectionReason.STALE_PRICE
        assert store.read(USERS_COLLECTION, account.uid)["cash"] == 500000

    def test_unknown_coin_rejected(self, store, make_user):
        account, _ = make_user()
        with pytest.raises(TradeRejected) as exc_info:
            LedgerService(store).execute(account.uid, "c404", TradeSide.BUY, 1)
        assert exc_info.value.reason == RejectionReason.UNKNOWN_COIN

    def test_concurrent_session_write_conflicts(self, store, make_user, monkeypatch):
        """A write that lands between read and settle is not clobbered."""
        account, _ = make_user()
        set_price(store, "c8", 1000)
        service = LedgerService(store)
        original_get = store.get

        def get_then_interleave(collection, doc_id):
            snapshot = original_get(collection, doc_id)
            if collection == USERS_COLLECTION:
                store.update(USERS_COLLECTION, doc_id, {"cash": 1})
            return snapshot

        monkeypatch.setattr(store, "get", get_then_interleave)
        with pytest.raises(WriteConflictError):
            service.execute(account.uid, "c8", TradeSide.BUY, 10)
        monkeypatch.undo()

        assert store.read(USERS_COLLECTION, account.uid)["cash"] == 1
