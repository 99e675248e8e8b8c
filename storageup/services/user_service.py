"""Credential store: identity persistence in PostgreSQL."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from storageup.database import get_pool
from storageup.models.user import User, UserRole, UserUpdate, normalize_email, normalize_roles
from storageup.services.auth_service import AuthService
from storageup.services.errors import AuthError, AuthErrorKind

logger = structlog.get_logger(__name__)

# Columns that make up the public User model; credentials are never listed here.
USER_FIELDS = (
    "id",
    "name",
    "email",
    "phone_number",
    "roles",
    "first_name",
    "last_name",
    "address_line_one",
    "address_line_two",
    "city",
    "state_province",
    "zip_code",
    "secondary_contact_name",
    "secondary_phone_number",
    "secondary_email",
    "language",
    "other",
    "created_at",
    "updated_at",
)
USER_COLUMNS = ", ".join(USER_FIELDS)


def _row_to_user(row: Any) -> User:
    return User(**{field: row[field] for field in USER_FIELDS})


class UserService:
    """Service for identity CRUD and credential state."""

    def __init__(self, auth_service: Optional[AuthService] = None):
        self.auth_service = auth_service or AuthService()

    async def create_user(
        self,
        name: str,
        email: str,
        phone_number: str,
        password: str,
        roles: Optional[list[str]] = None,
    ) -> User:
        """Create a new identity with a hashed password.

        Args:
            name: Display name
            email: Login email (normalized to lowercase)
            phone_number: Contact number
            password: Plain-text password (will be hashed)
            roles: Role list; defaults to ["user"]

        Returns:
            Created User model

        Raises:
            AuthError: DUPLICATE_EMAIL if the email is already registered
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        email = normalize_email(email)
        roles = normalize_roles(roles or [UserRole.USER.value])
        password_hash = self.auth_service.hash_password(password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, name, email, phone_number, password_hash, roles, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    """,
                    user_id,
                    name,
                    email,
                    phone_number,
                    password_hash,
                    roles,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_duplicate_email")
            raise AuthError(AuthErrorKind.DUPLICATE_EMAIL)

        logger.info("user_created", user_id=str(user_id), roles=roles)

        return User(
            id=user_id,
            name=name,
            email=email,
            phone_number=phone_number,
            roles=roles,
            created_at=now,
            updated_at=now,
        )

    async def get_by_email(self, email: str) -> Optional[tuple[User, str]]:
        """Get an identity and its password hash by email (case-insensitive).

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE LOWER(email) = LOWER($1)
                """,
                normalize_email(email),
            )

        if row is None:
            return None

        return _row_to_user(row), row["password_hash"]

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        return _row_to_user(row) if row is not None else None

    async def email_in_use(self, email: str, exclude_id: Optional[UUID] = None) -> bool:
        """Check whether an email belongs to an identity other than ``exclude_id``."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM users
                    WHERE LOWER(email) = LOWER($1)
                      AND ($2::uuid IS NULL OR id <> $2::uuid)
                )
                """,
                normalize_email(email),
                exclude_id,
            )

        return bool(found)

    async def list_users(
        self, page: int = 1, limit: int = 10, name: Optional[str] = None
    ) -> tuple[list[User], int]:
        """Return one page of identities, newest first.

        Args:
            page: 1-based page number
            limit: Page size
            name: Optional case-insensitive partial match on any name field

        Returns:
            Tuple of (users on this page, total matching count)
        """
        pattern = f"%{name.strip()}%" if name and name.strip() else None
        offset = (page - 1) * limit

        pool = await get_pool()

        async with pool.acquire() as conn:
            total = await conn.fetchval(
                """
                SELECT COUNT(*) FROM users
                WHERE $1::text IS NULL
                   OR name ILIKE $1 OR first_name ILIKE $1 OR last_name ILIKE $1
                """,
                pattern,
            )
            rows = await conn.fetch(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE $1::text IS NULL
                   OR name ILIKE $1 OR first_name ILIKE $1 OR last_name ILIKE $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                pattern,
                limit,
                offset,
            )

        return [_row_to_user(row) for row in rows], total

    async def search_users(self, query: str, limit: int = 20) -> list[User]:
        """Case-insensitive partial match on names and email, ordered by name."""
        pattern = f"%{query.strip()}%"

        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE name ILIKE $1 OR first_name ILIKE $1
                   OR last_name ILIKE $1 OR email ILIKE $1
                ORDER BY name ASC
                LIMIT $2
                """,
                pattern,
                limit,
            )

        return [_row_to_user(row) for row in rows]

    async def update_user(self, user_id: UUID, update: UserUpdate) -> Optional[User]:
        """Persist the fields explicitly set on ``update``.

        Columns come only from the ``UserUpdate`` model; a new password is
        re-hashed before it is written.

        Returns:
            Updated User model, or None if the identity does not exist

        Raises:
            AuthError: DUPLICATE_EMAIL if the new email is taken
        """
        changes = update.model_dump(exclude_unset=True)

        set_clauses = []
        params: list[Any] = []

        for field, value in changes.items():
            if field == "password":
                if value is None:
                    continue
                field, value = "password_hash", self.auth_service.hash_password(value)
            elif field == "email":
                if value is None:
                    continue
                value = normalize_email(value)
            elif field == "roles":
                if value is None:
                    continue
                value = normalize_roles(value)
            elif field in ("name", "phone_number") and value is None:
                continue
            params.append(value)
            set_clauses.append(f"{field} = ${len(params)}")

        if not set_clauses:
            # Nothing to update; just return the current user
            return await self.get_by_id(user_id)

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)}
            RETURNING {USER_COLUMNS}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError:
            raise AuthError(AuthErrorKind.DUPLICATE_EMAIL, "Email address is already in use")

        if row is None:
            return None

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=sorted(changes),
        )

        return _row_to_user(row)

    async def delete_user(self, user_id: UUID) -> bool:
        """Hard-delete an identity.

        Outstanding session tokens for it are rejected afterwards with
        ACCOUNT_NOT_FOUND, since tokens are never revoked server-side.

        Returns:
            True if the identity was deleted, False if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)

        deleted = result == "DELETE 1"

        if deleted:
            logger.info("user_deleted", user_id=str(user_id))
        else:
            logger.warning("user_delete_not_found", user_id=str(user_id))

        return deleted

    # ------------------------------------------------------------------
    # Password reset ticket
    # ------------------------------------------------------------------

    async def set_password_reset(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> None:
        """Store a reset ticket, replacing any outstanding one."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET password_reset_token_hash = $1,
                    password_reset_expires_at = $2,
                    updated_at = $3
                WHERE id = $4
                """,
                token_hash,
                expires_at,
                datetime.now(timezone.utc),
                user_id,
            )

    async def clear_password_reset(
        self, user_id: UUID, token_hash: Optional[str] = None
    ) -> None:
        """Remove the reset ticket.

        With ``token_hash`` the ticket is only removed if it is still that
        one, so a newer ticket issued meanwhile survives.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET password_reset_token_hash = NULL,
                    password_reset_expires_at = NULL,
                    updated_at = $1
                WHERE id = $2
                  AND ($3::text IS NULL OR password_reset_token_hash = $3::text)
                """,
                datetime.now(timezone.utc),
                user_id,
                token_hash,
            )

    async def find_by_reset_token(self, token_hash: str, now: datetime) -> Optional[User]:
        """Find the identity holding a live (unexpired) reset ticket."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE password_reset_token_hash = $1
                  AND password_reset_expires_at > $2
                """,
                token_hash,
                now,
            )

        return _row_to_user(row) if row is not None else None

    async def redeem_password_reset(
        self, token_hash: str, now: datetime, new_password: str
    ) -> Optional[User]:
        """Consume a live reset ticket and set a new password.

        Matching, password change and ticket removal happen in one UPDATE,
        so a ticket can be redeemed at most once even under concurrency.

        Returns:
            The updated User, or None if no live ticket matched
        """
        password_hash = self.auth_service.hash_password(new_password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET password_hash = $1,
                    password_reset_token_hash = NULL,
                    password_reset_expires_at = NULL,
                    updated_at = $2
                WHERE password_reset_token_hash = $3
                  AND password_reset_expires_at > $2
                RETURNING {USER_COLUMNS}
                """,
                password_hash,
                now,
                token_hash,
            )

        return _row_to_user(row) if row is not None else None
