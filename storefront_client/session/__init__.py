"""Session token lifecycle: login, local expiry checks, encrypted persistence."""
from .crypto import TokenCrypto
from .manager import TokenHolder

__all__ = ["TokenCrypto", "TokenHolder"]
