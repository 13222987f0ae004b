"""Identity provider: credential storage, token issuance and identity lookup.

Profiles (``users``) are an application concern and live in the profile and
organization services; this module only knows about identities.
"""
import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.config import get_settings
from dutylog.core.email import Mailer, invitation_link
from dutylog.core.errors import AppError, ConflictError, ErrorCode, ValidationFailed
from dutylog.core.policy import normalize_email
from dutylog.core.security import (
    REFRESH_TOKEN_TYPE,
    PasswordValidationError,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    validate_password,
    verify_password,
)
from dutylog.core.structured_logging import log_json
from dutylog.models.identity import Identity

logger = logging.getLogger(__name__)
settings = get_settings()


class IdentityAlreadyRegistered(Exception):
    """Raised when an invite targets an email that already has an identity."""


class AuthService:
    """Service for identity sign-up, login and token refresh."""

    def __init__(self, db: AsyncSession):
        """Initialize auth service.

        Args:
            db: Database session
        """
        self.db = db

    async def get_identity(self, identity_id: UUID) -> Identity | None:
        result = await self.db.execute(select(Identity).where(Identity.id == identity_id))
        return result.scalar_one_or_none()

    async def get_identity_by_email(self, email: str) -> Identity | None:
        result = await self.db.execute(
            select(Identity).where(Identity.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def signup(self, email: str, password: str) -> tuple[Identity, dict]:
        """Register a new identity.

        Args:
            email: Email address (normalized to lower case)
            password: Plain text password, checked against strength rules

        Returns:
            Tuple of (Identity, token payload)

        Raises:
            ValidationFailed: If the password is weak
            ConflictError: If the email is already registered
        """
        try:
            validate_password(password)
        except PasswordValidationError as e:
            raise ValidationFailed(str(e)) from None

        email = normalize_email(email)
        if await self.get_identity_by_email(email) is not None:
            raise ConflictError("Email already registered")

        identity = Identity(email=email, password_hash=hash_password(password))
        self.db.add(identity)
        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictError("Email already registered") from None

        log_json(logger, logging.INFO, "identity_created", identity_id=str(identity.id))
        return identity, self.issue_tokens(identity)

    async def authenticate(self, email: str, password: str) -> tuple[Identity, dict]:
        """Verify credentials and issue tokens.

        Raises:
            AppError: UNAUTHENTICATED for an unknown email or wrong password
        """
        identity = await self.get_identity_by_email(email)
        if identity is None or not verify_password(password, identity.password_hash):
            log_json(logger, logging.WARNING, "login_failed", email=normalize_email(email))
            raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid email or password")

        return identity, self.issue_tokens(identity)

    async def refresh(self, refresh_token: str) -> tuple[Identity, dict]:
        """Exchange a refresh token for a new access token."""
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        if not payload or not payload.get("sub"):
            raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid or expired refresh token")

        try:
            identity_id = UUID(str(payload["sub"]))
        except ValueError:
            raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid token payload") from None

        identity = await self.get_identity(identity_id)
        if identity is None:
            raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid or expired refresh token")

        tokens = self.issue_tokens(identity)
        tokens.pop("refresh_token")
        return identity, tokens

    @staticmethod
    def issue_tokens(identity: Identity) -> dict:
        claims = {"sub": str(identity.id), "email": identity.email}
        expires_in = settings.jwt_access_token_expire_minutes * 60
        return {
            "access_token": create_access_token(claims, timedelta(seconds=expires_in)),
            "refresh_token": create_refresh_token({"sub": str(identity.id)}),
            "token_type": "bearer",
            "expires_in": expires_in,
            "user_id": identity.id,
        }

    async def delete_identity(self, identity_id: UUID) -> int:
        """Delete an identity; the profile row cascades with it.

        Returns:
            Number of identities deleted (0 or 1)
        """
        result = await self.db.execute(delete(Identity).where(Identity.id == identity_id))
        return result.rowcount or 0

    async def invite_user_by_email(
        self, email: str, token: str, organization_name: str, mailer: Mailer
    ) -> None:
        """Deliver an invitation link to an email without an identity.

        Raises:
            IdentityAlreadyRegistered: If the email already has an identity
            EmailDeliveryError: If the email could not be sent
        """
        if await self.get_identity_by_email(email) is not None:
            raise IdentityAlreadyRegistered(email)

        await mailer.send_invitation(email, organization_name, invitation_link(token))
