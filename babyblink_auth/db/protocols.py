"""Protocols defining the account, session and storage interfaces."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from babyblink_auth.types import AccountT, SessionT


@runtime_checkable
class AccountProtocol(Protocol):
    """
    Protocol defining the required interface for account objects.

    Any account model (SQLAlchemy, Pydantic, etc.) used with adapters
    must provide these attributes.
    """

    id: Any
    username: str
    email: str
    password_hash: str
    full_name: str | None
    phone_number: str | None
    baby_name: str | None
    baby_age: int | None
    baby_gender: str | None
    address: str | None
    is_verified: bool
    otp_code: str | None
    otp_expires_at: datetime | None
    is_blocked: bool
    block_reason: str | None
    blocked_at: datetime | None
    blocked_by: Any
    is_admin: bool
    login_count: int
    profile_completeness: int


@runtime_checkable
class SessionProtocol(Protocol):
    """Protocol defining the required interface for session rows."""

    id: Any
    account_id: Any
    session_token: str
    refresh_token: str
    user_agent: str | None
    ip_address: str | None
    browser: str
    os: str
    device: str
    is_active: bool
    last_activity: datetime
    expires_at: datetime
    created_at: datetime


class AuthDatabase(Protocol[AccountT, SessionT]):
    """
    Storage operations required by the credential store and session registry.

    Every mutation is scoped to a single row by primary key, except the bulk
    session invalidation which may be applied row by row.
    """

    # Accounts

    async def get_account_by_id(self, account_id: Any) -> AccountT | None: ...  # noqa: ANN401

    async def get_account_by_email(self, email: str) -> AccountT | None: ...

    async def get_account_by_username(self, username: str) -> AccountT | None: ...

    async def get_account_by_identifier(self, identifier: str) -> AccountT | None: ...

    async def create_account(self, **fields: Any) -> AccountT: ...  # noqa: ANN401

    async def delete_account(self, account: AccountT) -> None: ...

    async def update_account(self, account: AccountT, **fields: Any) -> None: ...  # noqa: ANN401

    async def set_block_state(
        self, account: AccountT, blocked: bool, **fields: Any  # noqa: ANN401
    ) -> bool: ...

    async def increment_login_count(self, account: AccountT) -> None: ...

    # Sessions

    async def create_session(self, **fields: Any) -> SessionT: ...  # noqa: ANN401

    async def get_session_by_token(self, session_token: str) -> SessionT | None: ...

    async def get_session_by_id(self, session_id: Any) -> SessionT | None: ...  # noqa: ANN401

    async def touch_session(self, session: SessionT, at: datetime) -> None: ...

    async def rotate_session_tokens(
        self,
        refresh_token: str,
        now: datetime,
        new_session_token: str,
        new_refresh_token: str,
        new_expires_at: datetime,
    ) -> SessionT | None: ...

    async def deactivate_session(self, session_id: Any) -> int: ...  # noqa: ANN401

    async def deactivate_account_sessions(self, account_id: Any) -> int: ...  # noqa: ANN401

    async def list_active_sessions(
        self, account_id: Any, now: datetime  # noqa: ANN401
    ) -> Sequence[SessionT]: ...

    async def delete_expired_sessions(self, now: datetime) -> int: ...
