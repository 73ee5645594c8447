"""Tests for output sanitizer — token, credential and account number redaction."""
from storefront_client.output_sanitizer import redact_account_number, redact_email, sanitize_output

from conftest import make_token


class TestAccountRedaction:
    def test_redact_card_number(self):
        assert redact_account_number("4111111111111234") == "************1234"

    def test_redact_mobile_wallet_number(self):
        assert redact_account_number("0917-123-4567") == "*******4567"

    def test_short_number_returns_stars(self):
        assert redact_account_number("123") == "****"


class TestEmailRedaction:
    def test_redact_email(self):
        assert redact_email("jane.doe@example.com") == "j***@example.com"

    def test_no_at_sign(self):
        assert redact_email("not-an-email") == "not-an-email"


class TestSanitizeOutput:
    def test_redacts_session_token(self):
        token = make_token()
        result = sanitize_output(f"session: {token}")
        assert token not in result
        assert "[TOKEN REDACTED]" in result

    def test_redacts_bearer_header(self):
        result = sanitize_output("Authorization: Bearer abc123")
        assert "abc123" not in result

    def test_redacts_passwords(self):
        result = sanitize_output("password=hunter2")
        assert "hunter2" not in result
        assert "[REDACTED]" in result

    def test_redacts_account_numbers(self):
        result = sanitize_output("Paid from 4111 1111 1111 1234.")
        assert "1111 1111" not in result
        assert "[ACCOUNT REDACTED]" in result

    def test_keeps_dates_and_prices(self):
        text = "Order o1 placed 2024-05-01, total ₱750.00"
        assert sanitize_output(text) == text

    def test_strips_ansi(self):
        result = sanitize_output("\x1b[31mred text\x1b[0m normal")
        assert "\x1b" not in result
        assert "red text normal" in result

    def test_truncates_long_output(self):
        result = sanitize_output("x" * 60000, max_chars=1000)
        assert len(result) < 1100
        assert "truncated" in result
