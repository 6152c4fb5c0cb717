"""Tests for the HTTP and WebSocket surface."""
import pytest
from starlette.websockets import WebSocketDisconnect

from urlcoin.services.accounts import NEWS_DOC_ID
from urlcoin.services.coin_catalog import MARKET_COLLECTION, MARKET_DOC_ID
from urlcoin.services.ledger import USERS_COLLECTION


class TestAuthEndpoints:
    """Test registration and login."""

    def test_register_login_me(self, client):
        response = client.post("/auth/register", json={
            "handle": "kiwi", "password": "secret1", "nickname": "키위왕",
        })
        assert response.status_code == 201
        assert response.json()["cash"] == 500000
        assert response.json()["totalAsset"] == 500000

        response = client.post("/auth/login", json={"handle": "kiwi", "password": "secret1"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["nickname"] == "키위왕"

    def test_short_password_rejected(self, client):
        response = client.post("/auth/register", json={
            "handle": "kiwi", "password": "12345", "nickname": "키위왕",
        })
        assert response.status_code == 422

    def test_duplicate_nickname_conflict(self, client, make_user):
        make_user(nickname="키위왕")
        response = client.post("/auth/register", json={
            "handle": "kiwi2", "password": "secret1", "nickname": "키위왕",
        })
        assert response.status_code == 409

    def test_bad_login(self, client, make_user):
        make_user()
        response = client.post("/auth/login", json={"handle": "alice", "password": "nope!!"})
        assert response.status_code == 401

    def test_me_requires_token(self, client):
        assert client.get("/auth/me").status_code in (401, 403)

    def test_logout(self, client, make_user):
        _, headers = make_user()
        assert client.post("/auth/logout", headers=headers).status_code == 204


class TestMarketEndpoints:
    """Test market reads."""

    def test_market_uses_stored_field_names(self, client):
        body = client.get("/market").json()
        assert body["lastSlotId"] == ""
        assert len(body["items"]) == 10
        assert body["items"][0]["type"] == "even"
        assert len(body["items"][0]["history"]) == 30

    def test_single_coin(self, client):
        assert client.get("/market/coins/c1").json()["name"] == "키위"
        assert client.get("/market/coins/c404").status_code == 404

    def test_news_defaults_to_empty(self, client):
        assert client.get("/market/news").json() == {"text": ""}

    def test_stream_pushes_current_and_changes(self, client, store):
        with client.websocket_connect("/market/stream/market") as websocket:
            initial = websocket.receive_json()
            assert initial["lastSlotId"] == ""

            store.update(MARKET_COLLECTION, MARKET_DOC_ID, {"lastSlotId": "20251212-930"})
            assert websocket.receive_json()["lastSlotId"] == "20251212-930"

    def test_stream_news(self, client, store):
        with client.websocket_connect(f"/market/stream/{NEWS_DOC_ID}") as websocket:
            store.set(MARKET_COLLECTION, NEWS_DOC_ID, {"text": "속보"})
            assert websocket.receive_json() == {"text": "속보"}

    def test_stream_refuses_other_documents(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/market/stream/ranking") as websocket:
                websocket.receive_json()


class TestTradeEndpoints:
    """Test trading over HTTP."""

    def test_buy_and_sell(self, client, make_user):
        _, headers = make_user()

        response = client.post("/trades", headers=headers, json={
            "coin_id": "c6", "side": "buy", "quantity": 10, "expected_price": 3200,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["cash"] == 468000
        assert body["holding_quantity"] == 10
        assert body["average_cost"] == 3200

        response = client.post("/trades", headers=headers, json={
            "coin_id": "c6", "side": "sell", "quantity": 4,
        })
        assert response.json()["holding_quantity"] == 6
        assert response.json()["realized_profit"] == 0

        history = client.get("/account/history", headers=headers).json()
        assert [record["type"] for record in history] == ["sell", "buy"]

    def test_rejections_carry_reason(self, client, make_user):
        _, headers = make_user()
        response = client.post("/trades", headers=headers, json={
            "coin_id": "c6", "side": "sell", "quantity": 1,
        })
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "insufficient_holdings"

        response = client.post("/trades", headers=headers, json={
            "coin_id": "c6", "side": "buy", "quantity": 1, "expected_price": 1,
        })
        assert response.json()["detail"]["reason"] == "stale_price"

    def test_trade_requires_login(self, client):
        response = client.post("/trades", json={"coin_id": "c6", "side": "buy", "quantity": 1})
        assert response.status_code in (401, 403)


class TestAccountEndpoints:
    """Test resume and rewards."""

    def test_resume_returns_account(self, client, make_user, store):
        account, headers = make_user()
        store.update(USERS_COLLECTION, account.uid, {"lastLoginDate": "2000-1-1", "todayProfit": 5})
        body = client.post("/account/resume", headers=headers).json()
        assert body["todayProfit"] == 0
        assert body["yesterdayProfit"] == 0

    def test_portfolio_values_holdings(self, client, make_user):
        _, headers = make_user()
        client.post("/trades", headers=headers, json={"coin_id": "c6", "side": "buy", "quantity": 10})

        body = client.get("/account/portfolio", headers=headers).json()
        assert body["cash"] == 468000
        assert body["total_asset"] == 500000
        assert body["cash_weight"] == 93.6
        [position] = body["positions"]
        assert position["coin_id"] == "c6"
        assert position["current_value"] == 32000
        assert position["unrealized_profit"] == 0
        assert position["weight"] == 6.4

    def test_portfolio_requires_login(self, client):
        assert client.get("/account/portfolio").status_code in (401, 403)

    def test_attendance_once(self, client, make_user):
        _, headers = make_user()
        first = client.post("/account/attendance", headers=headers)
        assert first.status_code == 200
        assert first.json() == {"reward": "attendance", "amount": 100000, "cash": 600000}
        assert client.post("/account/attendance", headers=headers).status_code == 400

    def test_support_refused_for_solvent_user(self, client, make_user):
        _, headers = make_user()
        assert client.post("/account/support", headers=headers).status_code == 400


class TestRankingEndpoint:
    """Test the leaderboard endpoint."""

    def test_ranking_with_viewer(self, client, make_user, store):
        _, headers = make_user("alice", "앨리스")
        bob, _ = make_user("bob", "밥")
        store.update(USERS_COLLECTION, bob.uid, {"yesterdayProfit": 3000})

        body = client.get("/ranking", params={"criterion": "profit"}, headers=headers).json()
        assert body["criterion"] == "profit"
        assert [e["nickname"] for e in body["entries"]] == ["밥", "앨리스"]
        assert body["viewer"]["rank"] == 2

    def test_invalid_criterion(self, client, make_user):
        _, headers = make_user()
        assert client.get("/ranking", params={"criterion": "cash"}, headers=headers).status_code == 422


class TestAdminEndpoints:
    """Test operator actions."""

    def test_non_admin_forbidden(self, client, make_user):
        _, headers = make_user()
        assert client.post("/admin/market/reset", headers=headers).status_code == 403

    def test_event_publishes_news_and_forced_change(self, client, make_user, store):
        _, headers = make_user("root", "운영자", is_admin=True)
        response = client.post("/admin/event", headers=headers, json={
            "news_text": "키위 대박", "coin_id": "c1", "percent": 10,
        })
        assert response.json() == {"status": "ok", "count": 2}
        assert store.read(MARKET_COLLECTION, NEWS_DOC_ID) == {"text": "키위 대박"}

        market = client.post("/admin/market/force-update", headers=headers).json()
        assert market["items"][0]["price"] == 23100
        assert market["lastSlotId"] == ""

    def test_event_needs_both_coin_and_percent(self, client, make_user):
        _, headers = make_user("root", "운영자", is_admin=True)
        response = client.post("/admin/event", headers=headers, json={"coin_id": "c1"})
        assert response.status_code == 400

    def test_grant_and_batch_corrections(self, client, make_user, store):
        _, headers = make_user("root", "관리자")
        player, _ = make_user("kiwi", "키위왕")

        response = client.post("/admin/grant", headers=headers, json={"nickname": "키위왕", "amount": 1000})
        assert response.status_code == 200
        assert store.read(USERS_COLLECTION, player.uid)["cash"] == 501000

        assert client.post("/admin/grant", headers=headers, json={
            "nickname": "없음", "amount": 1,
        }).status_code == 404
        assert client.post("/admin/grant", headers=headers, json={
            "nickname": "키위왕", "amount": -501001,
        }).status_code == 400
        assert store.read(USERS_COLLECTION, player.uid)["cash"] == 501000

        assert client.post("/admin/ranking/recompute", headers=headers).json()["count"] == 2
        assert store.read(USERS_COLLECTION, player.uid)["totalAsset"] == 501000
        assert client.post("/admin/ranking/backfill-profit", headers=headers).json()["count"] == 0

    def test_reset_market(self, client, make_user, store):
        _, headers = make_user("root", "운영자", is_admin=True)
        store.update(MARKET_COLLECTION, MARKET_DOC_ID, {"lastSlotId": "20251212-930"})
        body = client.post("/admin/market/reset", headers=headers).json()
        assert body["lastSlotId"] == ""


class TestServiceEndpoints:
    """Test root and health."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_api_root(self, client):
        assert client.get("/api").json()["message"] == "URL COIN API"
