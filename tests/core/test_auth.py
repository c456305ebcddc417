"""
Tests for the session guard: token verification and user resolution.

Note: Imports from core.auth are done inside test methods to avoid triggering
Settings validation during test collection.
"""
from collections.abc import Callable
from datetime import timedelta
from unittest.mock import MagicMock, patch

import jwt
import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from models.user import User


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "_env_file": None,
        "database_url": "postgresql://localhost/test",
        "DEV_MODE": "false",
        "AUTH_JWT_SECRET": "test-jwt-secret-with-at-least-32-bytes",
    }
    values.update(overrides)
    return Settings(**values)


class TestDecodeJwt:
    """Tests for decode_jwt with the HS256 shared secret."""

    def test__decode_jwt__valid_token(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        payload = decode_jwt(make_token(sub="user|abc", email="a@example.com"), _settings())
        assert payload["sub"] == "user|abc"
        assert payload["email"] == "a@example.com"

    def test__decode_jwt__expired_token(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        token = make_token(expires_in=timedelta(seconds=-30))
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token, _settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    def test__decode_jwt__wrong_audience(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(make_token(audience="someone-else"), _settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid audience"

    def test__decode_jwt__wrong_issuer(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        token = make_token(iss="https://evil.example.com")
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token, _settings(AUTH_JWT_ISSUER="https://auth.example.com"))
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid issuer"

    def test__decode_jwt__bad_signature(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        token = make_token(secret="a-different-secret-that-is-also-long-enough")
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token, _settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token"

    def test__decode_jwt__missing_sub(self, make_token: Callable[..., str]) -> None:
        from core.auth import decode_jwt  # noqa: PLC0415

        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(make_token(sub=None), _settings())
        assert exc_info.value.status_code == 401

    def test__decode_jwt__no_secret_configured(self, make_token: Callable[..., str]) -> None:
        """Without a secret or JWKS URL the server cannot verify anything."""
        from core.auth import decode_jwt  # noqa: PLC0415

        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(make_token(), _settings(AUTH_JWT_SECRET=""))
        assert exc_info.value.status_code == 503

    def test__decode_jwt__jwks_fetch_failure(self, make_token: Callable[..., str]) -> None:
        """A JWKS outage is a server problem, not the caller's."""
        from core.auth import decode_jwt  # noqa: PLC0415

        jwks_client = MagicMock()
        jwks_client.get_signing_key_from_jwt.side_effect = jwt.PyJWKClientError("boom")
        with (
            patch("core.auth.get_jwks_client", return_value=jwks_client),
            pytest.raises(HTTPException) as exc_info,
        ):
            decode_jwt(make_token(), _settings(AUTH_JWKS_URL="https://auth.example.com/jwks"))
        assert exc_info.value.status_code == 503


class TestGetOrCreateUser:
    """Tests for resolving the token subject to a user row."""

    async def test__get_or_create_user__creates_user(self, db_session: AsyncSession) -> None:
        from core.auth import get_or_create_user  # noqa: PLC0415

        user = await get_or_create_user(db_session, external_id="user|new", email="n@example.com")
        await db_session.commit()

        assert user.id is not None
        assert user.external_id == "user|new"
        assert user.email == "n@example.com"

    async def test__get_or_create_user__returns_existing_user(
        self, db_session: AsyncSession,
    ) -> None:
        from core.auth import get_or_create_user  # noqa: PLC0415

        first = await get_or_create_user(db_session, external_id="user|same")
        await db_session.commit()
        second = await get_or_create_user(db_session, external_id="user|same")

        assert second.id == first.id
        result = await db_session.execute(select(User).where(User.external_id == "user|same"))
        assert len(result.scalars().all()) == 1

    async def test__get_or_create_user__updates_changed_email(
        self, db_session: AsyncSession,
    ) -> None:
        from core.auth import get_or_create_user  # noqa: PLC0415

        await get_or_create_user(db_session, external_id="user|email")
        await db_session.commit()
        user = await get_or_create_user(
            db_session, external_id="user|email", email="new@example.com",
        )

        assert user.email == "new@example.com"


class TestGetCurrentUser:
    """Tests for the get_current_user dependency."""

    async def test__get_current_user__dev_mode_returns_dev_user(
        self, db_session: AsyncSession,
    ) -> None:
        from core.auth import DEV_USER_EXTERNAL_ID, get_current_user  # noqa: PLC0415

        settings = _settings(database_url="sqlite+aiosqlite://", DEV_MODE="true")
        user = await get_current_user(credentials=None, db=db_session, settings=settings)
        assert user.external_id == DEV_USER_EXTERNAL_ID

    async def test__get_current_user__missing_credentials(
        self, db_session: AsyncSession,
    ) -> None:
        from core.auth import get_current_user  # noqa: PLC0415

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, db=db_session, settings=_settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Not authenticated"
