"""Tests for session token encryption and the token holder lifecycle."""
import time

import pytest

from storefront_client.errors import AuthenticationRequired, StorefrontError
from storefront_client.session import TokenCrypto, TokenHolder

from conftest import make_token


class TestTokenCrypto:
    def test_encrypt_decrypt_roundtrip(self, tmp_path):
        crypto = TokenCrypto(key_path=tmp_path / "test.key")
        data = {"token": "abc.def.ghi", "user": {"name": "Jane"}}
        encrypted = crypto.encrypt(data)
        assert b"abc.def.ghi" not in encrypted
        assert crypto.decrypt(encrypted) == data

    def test_key_created_on_first_use(self, tmp_path):
        key_path = tmp_path / "test.key"
        assert not key_path.exists()
        TokenCrypto(key_path=key_path).encrypt({"test": True})
        assert key_path.exists()
        assert (key_path.stat().st_mode & 0o777) == 0o600

    def test_key_reused_across_instances(self, tmp_path):
        key_path = tmp_path / "test.key"
        encrypted = TokenCrypto(key_path=key_path).encrypt({"value": 42})
        assert TokenCrypto(key_path=key_path).decrypt(encrypted) == {"value": 42}

    def test_tampered_data_raises(self, tmp_path):
        crypto = TokenCrypto(key_path=tmp_path / "test.key")
        encrypted = crypto.encrypt({"secret": "data"})
        with pytest.raises(Exception):
            crypto.decrypt(encrypted[:-5] + b"XXXXX")


class TestTokenHolder:
    async def test_login_persists_encrypted_token(self, ctx, backend, settings):
        token = make_token()
        backend.on("POST", "auth/login", (200, {"token": token, "user": {"id": "u1", "role": "customer"}}))

        await ctx.session.login("jane@example.com", "secret")

        assert ctx.session.token == token
        assert ctx.session.is_authenticated
        assert settings.token_path.exists()
        assert token.encode() not in settings.token_path.read_bytes()
        assert backend.calls[-1] == ("POST", "auth/login", {"email": "jane@example.com", "password": "secret"})

    async def test_admin_login_uses_admin_endpoint(self, ctx, backend):
        backend.on("POST", "auth/admin/login", (200, {"token": make_token(role="admin")}))
        await ctx.session.login_admin("admin@example.com", "secret")
        # role falls back to the token's claims when the response has no user
        assert ctx.session.user is None
        assert ctx.session.is_admin

    async def test_register_logs_in(self, ctx, backend):
        backend.on("POST", "auth/register", (200, {"token": make_token(), "user": {"_id": "u2", "name": "New"}}))
        await ctx.session.register("New", "new@example.com", "secret")
        assert ctx.session.user.id == "u2"
        assert ctx.session.is_authenticated

    async def test_missing_token_in_response(self, ctx, backend):
        backend.on("POST", "auth/login", (200, {"msg": "ok"}))
        with pytest.raises(StorefrontError, match="did not include a token"):
            await ctx.session.login("jane@example.com", "secret")

    async def test_bad_credentials_are_auth_errors(self, ctx, backend):
        backend.on("POST", "auth/login", (401, {"msg": "Invalid credentials"}))
        with pytest.raises(AuthenticationRequired, match="Invalid credentials"):
            await ctx.session.login("jane@example.com", "wrong")

    def test_is_valid_checks_exp(self, ctx):
        ctx.session._token = make_token(expires_in=60)
        assert ctx.session.is_valid()
        assert not ctx.session.is_valid(now=time.time() + 120)

    def test_garbage_token_is_invalid(self, ctx):
        ctx.session._token = "not-a-jwt"
        assert ctx.session.claims() == {}
        assert not ctx.session.is_valid()

    async def test_require_token_without_session(self, ctx):
        with pytest.raises(AuthenticationRequired, match="Please log in"):
            await ctx.session.require_token()

    async def test_expired_token_logs_out(self, ctx, settings):
        hook_calls = []
        ctx.session.on_logout(lambda: hook_calls.append("sync"))

        ctx.session._token = make_token(expires_in=-10)
        with pytest.raises(AuthenticationRequired, match="expired"):
            await ctx.session.require_token()

        assert ctx.session.token is None
        assert hook_calls == ["sync"]

    async def test_restore_persisted_session(self, logged_in, settings):
        token = logged_in.session.token
        holder = TokenHolder(logged_in.api, token_path=settings.token_path,
                             crypto=TokenCrypto(key_path=settings.key_path))
        assert holder.restore()
        assert holder.token == token
        assert holder.user.name == "Jane Cruz"

    async def test_restore_discards_expired_session(self, ctx, settings):
        crypto = TokenCrypto(key_path=settings.key_path)
        settings.token_path.write_bytes(crypto.encrypt({"token": make_token(expires_in=-10)}))

        assert not ctx.session.restore()
        assert ctx.session.token is None
        assert not settings.token_path.exists()

    async def test_restore_discards_unreadable_file(self, ctx, settings):
        settings.token_path.write_bytes(b"garbage")
        assert not ctx.session.restore()
        assert not settings.token_path.exists()

    async def test_fetch_user(self, logged_in, backend):
        backend.on("GET", "auth/user", (200, {"_id": "u1", "name": "Jane C.", "email": "jane@example.com"}))
        user = await logged_in.session.fetch_user()
        assert user.name == "Jane C."

    async def test_bearer_header_sent(self, logged_in, backend):
        seen = {}

        def capture(request):
            seen["auth"] = request.headers.get("Authorization")
            return 200, {"_id": "u1"}

        backend.on("GET", "auth/user", capture)
        await logged_in.session.fetch_user()
        assert seen["auth"] == f"Bearer {logged_in.session.token}"

    async def test_logout_purges_everything(self, logged_in, settings):
        await logged_in.session.logout()
        assert logged_in.session.token is None
        assert not settings.token_path.exists()
        assert not logged_in.session.is_authenticated
