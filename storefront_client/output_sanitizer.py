"""Output sanitization — redact session tokens, credentials and account numbers from tool output."""
import re

# Session tokens (JWT: three base64url segments, header starts with eyJ)
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")

_CREDENTIAL_PATTERNS = [
    re.compile(r"(?i)(api[_-]?key|secret|password|token)\s*[=:]\s*\S+"),
    re.compile(r"(?i)bearer\s+\S+"),
]

# Card and e-wallet account numbers (11-19 digits, optionally separated)
_ACCOUNT_NUMBER_PATTERN = re.compile(
    r"\b(?:\d{4}[-\s]?){2,4}\d{1,4}\b"
)

# ANSI escape codes
_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def redact_account_number(number: str) -> str:
    """Mask an account number to show only its last 4 digits."""
    digits = re.sub(r"\D", "", number)
    if len(digits) < 4:
        return "****"
    return f"{'*' * (len(digits) - 4)}{digits[-4:]}"


def redact_email(email: str) -> str:
    """Partially redact an email address."""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    return f"{local[0]}***@{domain}"


def sanitize_output(text: str, max_chars: int = 50000) -> str:
    """
    Sanitize text before returning it from a tool.

    - Strips ANSI escape codes
    - Redacts session tokens and credential patterns
    - Redacts card/account numbers
    - Truncates to max_chars
    """
    text = _ANSI_PATTERN.sub("", text)

    text = _JWT_PATTERN.sub("[TOKEN REDACTED]", text)
    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub("[REDACTED]", text)

    text = _ACCOUNT_NUMBER_PATTERN.sub("[ACCOUNT REDACTED]", text)

    if len(text) > max_chars:
        text = text[:max_chars] + f"\n\n[... truncated at {max_chars} chars]"

    return text
