"""Token holder — owns the bearer token, its expiry check, and the login/logout lifecycle."""
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from cryptography.fernet import InvalidToken
from jose import JWTError, jwt

from ..api import StorefrontAPI
from ..errors import AuthenticationRequired, StorefrontError
from ..models import User
from .crypto import TokenCrypto

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_PATH = Path.home() / ".config" / "storefront-client" / "token.enc"

LogoutHook = Callable[[], Union[None, Awaitable[None]]]


class TokenHolder:
    """Holds the session token. Nothing that needs auth may proceed without ``require_token``."""

    def __init__(
        self,
        api: StorefrontAPI,
        token_path: Path | None = None,
        crypto: TokenCrypto | None = None,
    ):
        self._api = api
        self._path = token_path or DEFAULT_TOKEN_PATH
        self._crypto = crypto or TokenCrypto()
        self._token: Optional[str] = None
        self._user: Optional[User] = None
        self._logout_hooks: list[LogoutHook] = []
        api.set_token_provider(lambda: self._token)

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def role(self) -> Optional[str]:
        if self._user is not None:
            return self._user.role
        claims = self.claims()
        return (claims.get("user") or {}).get("role")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_authenticated(self) -> bool:
        return self.is_valid()

    def claims(self) -> dict:
        """Decode the token payload without verifying the signature (the secret stays server-side)."""
        if not self._token:
            return {}
        try:
            return jwt.get_unverified_claims(self._token)
        except JWTError as e:
            logger.warning("Could not decode session token: %s", e)
            return {}

    def is_valid(self, now: float | None = None) -> bool:
        """True when a token is held and its ``exp`` claim is still in the future."""
        exp = self.claims().get("exp")
        if not isinstance(exp, (int, float)):
            return False
        return exp > (now if now is not None else time.time())

    def on_logout(self, hook: LogoutHook) -> None:
        """Register state to tear down when the session ends (e.g. the cart)."""
        self._logout_hooks.append(hook)

    async def require_token(self) -> str:
        """Return a fresh token or raise AuthenticationRequired, logging out an expired session."""
        if self._token and self.is_valid():
            return self._token
        if self._token:
            logger.info("Session token expired, forcing re-login")
            await self.logout()
            raise AuthenticationRequired("Your session has expired. Please log in again.")
        raise AuthenticationRequired("Please log in to continue.")

    async def login(self, email: str, password: str) -> str:
        return await self._authenticate("auth/login", {"email": email, "password": password})

    async def login_admin(self, email: str, password: str) -> str:
        return await self._authenticate("auth/admin/login", {"email": email, "password": password})

    async def register(self, name: str, email: str, password: str) -> str:
        return await self._authenticate(
            "auth/register", {"name": name, "email": email, "password": password},
        )

    async def _authenticate(self, path: str, body: dict) -> str:
        data = await self._api.post(path, body)
        token = (data or {}).get("token")
        if not token:
            raise StorefrontError("Login response did not include a token")
        self._token = token
        if data.get("user"):
            self._user = User.model_validate(data["user"])
        else:
            self._user = None
        self._persist()
        logger.info("Logged in (role=%s)", self.role)
        return token

    async def fetch_user(self) -> User:
        """Refresh the user record from the server."""
        await self.require_token()
        data = await self._api.get("auth/user")
        self._user = User.model_validate(data)
        return self._user

    def restore(self) -> bool:
        """Reload a persisted token. Expired or unreadable tokens are discarded."""
        if not self._path.exists():
            return False
        try:
            data = self._crypto.decrypt(self._path.read_bytes())
        except (InvalidToken, ValueError) as e:
            logger.warning("Discarding unreadable session file: %s", e)
            self._purge()
            return False
        self._token = data.get("token")
        user = data.get("user")
        self._user = User.model_validate(user) if user else None
        if not self.is_valid():
            logger.info("Persisted session expired")
            self._token = None
            self._user = None
            self._purge()
            return False
        return True

    async def logout(self) -> None:
        """Purge the token and tear down every dependent piece of state."""
        self._token = None
        self._user = None
        self._purge()
        for hook in self._logout_hooks:
            result = hook()
            if result is not None:
                await result
        logger.info("Logged out")

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"token": self._token}
        if self._user is not None:
            payload["user"] = self._user.model_dump(by_alias=True, mode="json")
        self._path.write_bytes(self._crypto.encrypt(payload))

    def _purge(self) -> None:
        if self._path.exists():
            self._path.unlink()
