import typing
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from babyblink_auth.errors import DuplicateIdentity
from babyblink_auth.types import AccountT, SessionT


def _coerce_key(model: type, value: typing.Any) -> typing.Any:  # noqa: ANN401
    """Convert ``value`` to the Python type of the model's ``id`` column."""
    python_type = model.__table__.c.id.type.python_type  # type: ignore[attr-defined]
    if isinstance(value, python_type):
        return value
    return python_type(value)


def _fresh_select(model: type) -> typing.Any:  # noqa: ANN401
    """SELECT whose rows overwrite stale identity-map state after bulk UPDATEs."""
    return select(model).execution_options(populate_existing=True)


class SQLAlchemyAdapter(typing.Generic[AccountT, SessionT]):
    """
    SQLAlchemy implementation of the AuthDatabase protocol.

    Wraps an AsyncSession and provides account and session storage
    operations using SQLAlchemy ORM.

    Example:
        ```python
        async def get_auth_db(
            session: AsyncSession = Depends(get_async_session),
        ) -> SQLAlchemyAdapter[Account, LoginSession]:
            return SQLAlchemyAdapter(session, Account, LoginSession)
        ```
    """

    def __init__(
        self,
        session: AsyncSession,
        account_model: type[AccountT],
        session_model: type[SessionT],
    ) -> None:
        """
        Initialize the database adapter.

        Args:
            session: SQLAlchemy async session
            account_model: Account model class inheriting from BaseAccountTable
            session_model: Session model class inheriting from BaseSessionTable
        """
        self.session = session
        self.account_model = account_model
        self.session_model = session_model

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account_by_id(self, account_id: typing.Any) -> AccountT | None:  # noqa: ANN401
        """Retrieve an account by primary key, or None."""
        try:
            key = _coerce_key(self.account_model, account_id)
        except (TypeError, ValueError):
            # Path and token ids are strings; a non-coercible id cannot exist
            return None
        return await self.session.get(self.account_model, key, populate_existing=True)

    async def get_account_by_email(self, email: str) -> AccountT | None:
        statement = _fresh_select(self.account_model).where(
            self.account_model.email == email  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_account_by_username(self, username: str) -> AccountT | None:
        statement = _fresh_select(self.account_model).where(
            self.account_model.username == username  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_account_by_identifier(self, identifier: str) -> AccountT | None:
        """
        Retrieve an account whose username or email equals ``identifier``.

        Args:
            identifier: Username or email address

        Returns:
            Account if found, None otherwise
        """
        statement = _fresh_select(self.account_model).where(
            or_(
                self.account_model.username == identifier,  # type: ignore[arg-type]
                self.account_model.email == identifier,  # type: ignore[arg-type]
            )
        )
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def create_account(self, **fields: typing.Any) -> AccountT:  # noqa: ANN401
        """
        Create and persist a new account.

        Args:
            **fields: Column values for the new account

        Returns:
            Created account object

        Raises:
            DuplicateIdentity: username or email violates a unique constraint
        """
        account = self.account_model(**fields)  # type: ignore[call-arg]
        self.session.add(account)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateIdentity() from e
        await self.session.refresh(account)
        return account

    async def delete_account(self, account: AccountT) -> None:
        """Hard-delete an account. Only used to roll back a failed registration."""
        await self.session.delete(account)
        await self.session.commit()

    async def update_account(self, account: AccountT, **fields: typing.Any) -> None:  # noqa: ANN401
        """
        Apply column updates to an account row and commit.

        Args:
            account: Account object to update
            **fields: Column values to set
        """
        for name, value in fields.items():
            setattr(account, name, value)
        await self.session.commit()
        await self.session.refresh(account)

    async def set_block_state(
        self, account: AccountT, blocked: bool, **fields: typing.Any  # noqa: ANN401
    ) -> bool:
        """
        Flip ``is_blocked`` to ``blocked`` only if the row is in the opposite state.

        Args:
            account: Account to transition
            blocked: Target block state
            **fields: Block details written in the same UPDATE

        Returns:
            True if this call made the transition, False if the row was
            already in the target state
        """
        model = self.account_model
        statement = (
            update(model)
            .where(
                model.id == account.id,  # type: ignore[arg-type]
                model.is_blocked.is_(not blocked),  # type: ignore[attr-defined]
            )
            .values(is_blocked=blocked, **fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        await self.session.refresh(account)
        return result.rowcount == 1

    async def increment_login_count(self, account: AccountT) -> None:
        statement = (
            update(self.account_model)
            .where(self.account_model.id == account.id)  # type: ignore[arg-type]
            .values(login_count=self.account_model.login_count + 1)  # type: ignore[operator]
        )
        await self.session.execute(statement)
        await self.session.commit()
        await self.session.refresh(account)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, **fields: typing.Any) -> SessionT:  # noqa: ANN401
        """Persist a new session row."""
        session_row = self.session_model(**fields)  # type: ignore[call-arg]
        self.session.add(session_row)
        await self.session.commit()
        await self.session.refresh(session_row)
        return session_row

    async def get_session_by_token(self, session_token: str) -> SessionT | None:
        """
        Retrieve a session by its access token regardless of state.

        Args:
            session_token: Access token stored on the session

        Returns:
            Session row if found, None otherwise
        """
        statement = _fresh_select(self.session_model).where(
            self.session_model.session_token == session_token  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_session_by_id(self, session_id: typing.Any) -> SessionT | None:  # noqa: ANN401
        try:
            key = _coerce_key(self.session_model, session_id)
        except (TypeError, ValueError):
            return None
        return await self.session.get(self.session_model, key, populate_existing=True)

    async def touch_session(self, session: SessionT, at: datetime) -> None:
        """Set ``last_activity``; ``expires_at`` is left untouched."""
        statement = (
            update(self.session_model)
            .where(self.session_model.id == session.id)  # type: ignore[arg-type]
            .values(last_activity=at)
        )
        await self.session.execute(statement)
        await self.session.commit()
        session.last_activity = at

    async def rotate_session_tokens(
        self,
        refresh_token: str,
        now: datetime,
        new_session_token: str,
        new_refresh_token: str,
        new_expires_at: datetime,
    ) -> SessionT | None:
        """
        Atomically replace the token pair on the session holding ``refresh_token``.

        The match and the replacement happen in one conditional UPDATE, so of
        several concurrent callers presenting the same refresh token exactly
        one sees a changed row.

        Args:
            refresh_token: Refresh token currently stored on the session
            now: Current time; only unexpired active sessions match
            new_session_token: Replacement access token
            new_refresh_token: Replacement refresh token
            new_expires_at: New session expiry

        Returns:
            The updated session, or None if no active session held the token
        """
        model = self.session_model
        statement = (
            update(model)
            .where(
                model.refresh_token == refresh_token,  # type: ignore[arg-type]
                model.is_active.is_(True),  # type: ignore[attr-defined]
                model.expires_at > now,  # type: ignore[operator]
            )
            .values(
                session_token=new_session_token,
                refresh_token=new_refresh_token,
                expires_at=new_expires_at,
                last_activity=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        if result.rowcount != 1:
            return None

        rotated = await self.get_session_by_token(new_session_token)
        if rotated is not None:
            await self.session.refresh(rotated)
        return rotated

    async def deactivate_session(self, session_id: typing.Any) -> int:  # noqa: ANN401
        """
        Mark one session inactive. Idempotent.

        Returns:
            Number of rows that changed state (0 or 1)
        """
        statement = (
            update(self.session_model)
            .where(
                self.session_model.id == session_id,  # type: ignore[arg-type]
                self.session_model.is_active.is_(True),  # type: ignore[attr-defined]
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        return result.rowcount

    async def deactivate_account_sessions(self, account_id: typing.Any) -> int:  # noqa: ANN401
        """
        Mark every active session of an account inactive.

        Returns:
            Number of sessions that were deactivated
        """
        statement = (
            update(self.session_model)
            .where(
                self.session_model.account_id == account_id,  # type: ignore[arg-type]
                self.session_model.is_active.is_(True),  # type: ignore[attr-defined]
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        return result.rowcount

    async def list_active_sessions(
        self, account_id: typing.Any, now: datetime  # noqa: ANN401
    ) -> Sequence[SessionT]:
        """
        List active, unexpired sessions, most recently used first.

        Args:
            account_id: Owning account
            now: Current time for the expiry filter

        Returns:
            Sessions ordered by last activity descending, then id
        """
        model = self.session_model
        statement = (
            _fresh_select(model)
            .where(
                model.account_id == account_id,  # type: ignore[arg-type]
                model.is_active.is_(True),  # type: ignore[attr-defined]
                model.expires_at > now,  # type: ignore[operator]
            )
            .order_by(model.last_activity.desc(), model.id.desc())  # type: ignore[attr-defined]
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    async def delete_expired_sessions(self, now: datetime) -> int:
        """
        Remove session rows whose expiry has passed.

        Returns:
            Number of rows removed
        """
        statement = delete(self.session_model).where(
            self.session_model.expires_at < now  # type: ignore[operator]
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        return result.rowcount
