"""
Tests for storefront session storage, webhook signatures and signed OAuth state.
"""

import base64
import hashlib
import hmac

import pytest
from fastapi.testclient import TestClient

from sneaker_sync.auth import SessionManager
from sneaker_sync.main import app
from sneaker_sync.routes.webhooks import verify_webhook
from sneaker_sync.shopify import FileSessionStorage, StorefrontSession


class TestFileSessionStorage:
    """Tests for FileSessionStorage."""

    @pytest.mark.asyncio
    async def test_store_and_load(self, tmp_path):
        storage = FileSessionStorage(str(tmp_path / "sessions"))
        session = StorefrontSession.offline("demo.myshopify.com", "shpat_123", scope="write_products")

        assert await storage.store_session(session) is True
        loaded = await storage.load_session("offline_demo.myshopify.com")

        assert loaded.access_token == "shpat_123"
        assert loaded.scope == "write_products"
        assert loaded.is_online is False

    @pytest.mark.asyncio
    async def test_missing_and_corrupt_sessions_load_as_none(self, tmp_path):
        storage = FileSessionStorage(str(tmp_path))
        (tmp_path / "broken.json").write_text("{oops")

        assert await storage.load_session("nothing") is None
        assert await storage.load_session("broken") is None

    @pytest.mark.asyncio
    async def test_session_ids_cannot_escape_directory(self, tmp_path):
        storage = FileSessionStorage(str(tmp_path / "sessions"))
        await storage.store_session(StorefrontSession(id="../../evil", shop="a.myshopify.com", access_token="t"))

        assert (tmp_path / "sessions" / "evil.json").exists()
        assert not (tmp_path / "evil.json").exists()

    @pytest.mark.asyncio
    async def test_find_and_delete_by_shop(self, tmp_path):
        storage = FileSessionStorage(str(tmp_path))
        await storage.store_session(StorefrontSession.offline("a.myshopify.com", "t1"))
        await storage.store_session(
            StorefrontSession(id="online_a", shop="a.myshopify.com", access_token="t2", is_online=True)
        )
        await storage.store_session(StorefrontSession.offline("b.myshopify.com", "t3"))
        (tmp_path / "junk.json").write_text("[1, 2]")
        (tmp_path / "notes.txt").write_text("ignored")

        sessions = await storage.find_sessions_by_shop("a.myshopify.com")
        assert sorted(s.id for s in sessions) == ["offline_a.myshopify.com", "online_a"]

        await storage.delete_sessions([s.id for s in sessions])

        assert await storage.find_sessions_by_shop("a.myshopify.com") == []
        assert await storage.load_session("offline_b.myshopify.com") is not None
        assert await storage.delete_session("online_a") is False


class TestWebhookSignature:
    """Tests for verify_webhook."""

    def sign(self, body, secret):
        return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()

    def test_valid_signature(self):
        body = b'{"id": 1}'
        assert verify_webhook(body, self.sign(body, "s3cret"), "s3cret")

    def test_tampered_body(self):
        assert not verify_webhook(b'{"id": 2}', self.sign(b'{"id": 1}', "s3cret"), "s3cret")

    def test_missing_header_or_secret(self):
        body = b"{}"
        assert not verify_webhook(body, None, "s3cret")
        assert not verify_webhook(body, self.sign(body, ""), "")

    def test_unsigned_webhook_is_rejected(self):
        client = TestClient(app)

        response = client.post(
            "/webhooks/app/uninstalled",
            content=b'{"id": 1}',
            headers={"X-Shopify-Shop-Domain": "demo.myshopify.com"},
        )

        assert response.status_code == 401


class TestOAuthState:
    """Tests for signed OAuth state values."""

    def test_round_trip(self):
        manager = SessionManager("secret-key")
        state = manager.issue_state("stockx")

        assert manager.verify_state(state, "stockx")

    def test_purpose_is_bound(self):
        manager = SessionManager("secret-key")
        state = manager.issue_state("stockx")

        assert not manager.verify_state(state, "shopify")

    def test_foreign_or_missing_state(self):
        manager = SessionManager("secret-key")
        other = SessionManager("another-key").issue_state("stockx")

        assert not manager.verify_state(other, "stockx")
        assert not manager.verify_state(None, "stockx")
        assert not manager.verify_state("garbage", "stockx")
