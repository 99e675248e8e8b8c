"""Unit tests for the password reset ticket lifecycle."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import asyncpg
import pytest

from storageup.database import DatabaseUnavailableError
from storageup.services.email_service import EmailDeliveryError
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.password_reset_service import (
    RESET_REQUESTED_MESSAGE,
    PasswordResetService,
    hash_reset_token,
)


@pytest.fixture
async def alice(memory_store):
    return await memory_store.create_user(
        name="Alice",
        email="alice@example.com",
        phone_number="+15551234567",
        password="secret1",
    )


@pytest.fixture
def reset_service(memory_store, mock_email_service, clock):
    return PasswordResetService(
        user_service=memory_store,
        email_service=mock_email_service,
        clock=clock,
    )


def sent_token(mock_email_service, call_index=-1) -> str:
    """Pull the raw token out of the emailed reset link."""
    reset_url = mock_email_service.send_password_reset_email.call_args_list[call_index].kwargs["reset_url"]
    return parse_qs(urlparse(reset_url).query)["token"][0]


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class TestRequestReset:
    async def test_known_email_sends_link(self, reset_service, mock_email_service, alice):
        message = await reset_service.request_reset("alice@example.com")

        assert message == RESET_REQUESTED_MESSAGE
        kwargs = mock_email_service.send_password_reset_email.call_args.kwargs
        assert kwargs["to"] == "alice@example.com"
        assert kwargs["name"] == "Alice"
        assert kwargs["expires_minutes"] == 30
        assert "/reset-password?token=" in kwargs["reset_url"]

    async def test_only_the_hash_is_stored(self, reset_service, mock_email_service, memory_store, alice, clock):
        await reset_service.request_reset("alice@example.com")

        raw = sent_token(mock_email_service)
        record = memory_store.records[alice.id]
        assert len(raw) == 64
        assert record["reset_hash"] == hash_reset_token(raw)
        assert record["reset_hash"] != raw
        assert record["reset_expires_at"] == clock.now + timedelta(minutes=30)

    async def test_email_casing_is_ignored(self, reset_service, mock_email_service, alice):
        await reset_service.request_reset("  Alice@Example.COM ")

        mock_email_service.send_password_reset_email.assert_awaited_once()

    async def test_unknown_email_is_indistinguishable(
        self, reset_service, mock_email_service, memory_store, alice
    ):
        message = await reset_service.request_reset("nobody@example.com")

        assert message == RESET_REQUESTED_MESSAGE
        mock_email_service.send_password_reset_email.assert_not_called()
        assert memory_store.records[alice.id]["reset_hash"] is None

    async def test_delivery_failure_rolls_back_ticket(
        self, reset_service, mock_email_service, memory_store, alice
    ):
        mock_email_service.send_password_reset_email.side_effect = EmailDeliveryError("smtp down")

        with pytest.raises(AuthError) as exc_info:
            await reset_service.request_reset("alice@example.com")

        assert exc_info.value.kind is AuthErrorKind.EMAIL_DELIVERY_FAILED
        assert exc_info.value.status_code == 500
        record = memory_store.records[alice.id]
        assert record["reset_hash"] is None
        assert record["reset_expires_at"] is None

    async def test_rolled_back_token_cannot_be_used(self, reset_service, mock_email_service, alice):
        mock_email_service.send_password_reset_email.side_effect = EmailDeliveryError("smtp down")
        with pytest.raises(AuthError):
            await reset_service.request_reset("alice@example.com")

        raw = sent_token(mock_email_service)
        with pytest.raises(AuthError) as exc_info:
            await reset_service.verify_reset(raw)

        assert exc_info.value.kind is AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED

    async def test_store_unavailable(self, reset_service, mock_email_service, memory_store):
        with patch.object(
            memory_store,
            "get_by_email",
            new=AsyncMock(side_effect=DatabaseUnavailableError("pool not initialized")),
        ):
            with pytest.raises(AuthError) as exc_info:
                await reset_service.request_reset("alice@example.com")

        assert exc_info.value.kind is AuthErrorKind.SERVICE_UNAVAILABLE
        assert exc_info.value.status_code == 503
        mock_email_service.send_password_reset_email.assert_not_called()

    async def test_ticket_write_failure(self, reset_service, mock_email_service, memory_store, alice):
        with patch.object(
            memory_store,
            "set_password_reset",
            new=AsyncMock(side_effect=asyncpg.exceptions.AdminShutdownError("terminating connection")),
        ):
            with pytest.raises(AuthError) as exc_info:
                await reset_service.request_reset("alice@example.com")

        assert exc_info.value.kind is AuthErrorKind.SERVICE_UNAVAILABLE
        mock_email_service.send_password_reset_email.assert_not_called()


# ---------------------------------------------------------------------------
# Verify and redeem
# ---------------------------------------------------------------------------

class TestRedeemReset:
    async def test_round_trip(self, reset_service, mock_email_service, memory_store, alice):
        await reset_service.request_reset("alice@example.com")
        raw = sent_token(mock_email_service)

        verified = await reset_service.verify_reset(raw)
        assert verified.id == alice.id

        redeemed = await reset_service.redeem_reset(raw, "newsecret")
        assert redeemed.id == alice.id

        _, password_hash = await memory_store.get_by_email("alice@example.com")
        auth = memory_store.auth_service
        assert auth.verify_password("newsecret", password_hash)
        assert not auth.verify_password("secret1", password_hash)

    async def test_verify_does_not_consume(self, reset_service, mock_email_service, alice):
        await reset_service.request_reset("alice@example.com")
        raw = sent_token(mock_email_service)

        await reset_service.verify_reset(raw)
        await reset_service.verify_reset(raw)
        await reset_service.redeem_reset(raw, "newsecret")

    async def test_token_works_once(self, reset_service, mock_email_service, memory_store, alice):
        await reset_service.request_reset("alice@example.com")
        raw = sent_token(mock_email_service)
        await reset_service.redeem_reset(raw, "newsecret")

        with pytest.raises(AuthError) as exc_info:
            await reset_service.redeem_reset(raw, "another1")

        assert exc_info.value.kind is AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED
        _, password_hash = await memory_store.get_by_email("alice@example.com")
        assert memory_store.auth_service.verify_password("newsecret", password_hash)

    async def test_new_request_invalidates_previous_token(
        self, reset_service, mock_email_service, alice
    ):
        await reset_service.request_reset("alice@example.com")
        first = sent_token(mock_email_service, 0)
        await reset_service.request_reset("alice@example.com")
        second = sent_token(mock_email_service, 1)

        assert first != second
        with pytest.raises(AuthError):
            await reset_service.verify_reset(first)
        await reset_service.redeem_reset(second, "newsecret")

    async def test_token_expires(self, reset_service, mock_email_service, alice, clock):
        await reset_service.request_reset("alice@example.com")
        raw = sent_token(mock_email_service)

        clock.advance(minutes=29, seconds=59)
        await reset_service.verify_reset(raw)

        clock.advance(seconds=1)
        with pytest.raises(AuthError) as exc_info:
            await reset_service.redeem_reset(raw, "newsecret")

        assert exc_info.value.kind is AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED

    async def test_unknown_token(self, reset_service):
        with pytest.raises(AuthError) as exc_info:
            await reset_service.verify_reset("0" * 64)

        assert exc_info.value.kind is AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED
        assert exc_info.value.status_code == 400

    async def test_stored_hash_is_not_a_valid_token(
        self, reset_service, mock_email_service, memory_store, alice
    ):
        await reset_service.request_reset("alice@example.com")
        stored_hash = memory_store.records[alice.id]["reset_hash"]

        with pytest.raises(AuthError):
            await reset_service.redeem_reset(stored_hash, "newsecret")
