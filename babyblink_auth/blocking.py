"""Administrative block/unblock with eager session invalidation."""

from dataclasses import dataclass
from typing import Any

from babyblink_auth.credentials import CredentialStore
from babyblink_auth.db.protocols import AccountProtocol
from babyblink_auth.errors import InvalidRequest
from babyblink_auth.logging import get_logger
from babyblink_auth.sessions import SessionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class BlockOutcome:
    account: AccountProtocol
    sessions_invalidated: int


class BlockService:
    """
    Every write to an account's block flag goes through here.

    Blocking invalidates all of the account's sessions immediately, so
    ``SessionRegistry.list_active`` reflects the block without waiting for a
    request. The access gate repeats the cascade lazily if it ever finds a
    blocked owner on a live session, and login refuses blocked accounts, so a
    blocked account can neither keep nor open a session.

    Unblocking does not bring old sessions back; the account has to log in
    again.
    """

    def __init__(self, credentials: CredentialStore, sessions: SessionRegistry) -> None:
        self.credentials = credentials
        self.sessions = sessions

    async def block(
        self,
        account_id: Any,  # noqa: ANN401
        reason: str | None,
        admin: AccountProtocol,
    ) -> BlockOutcome:
        """
        Block an account and invalidate every session it holds.

        Raises:
            AccountNotFound: no such account
            InvalidRequest: an administrator tried to block themselves
            AlreadyBlocked: account is already blocked
        """
        target = await self.credentials.require_account(account_id)
        if target.id == admin.id:
            raise InvalidRequest("Administrators cannot block their own account")

        account = await self.credentials.set_blocked(target.id, reason, admin.id)
        invalidated = await self.sessions.invalidate_all_for_account(account.id)
        logger.warning(
            "account_blocked",
            account_id=str(account.id),
            blocked_by=str(admin.id),
            reason=reason,
            sessions_invalidated=invalidated,
        )
        return BlockOutcome(account=account, sessions_invalidated=invalidated)

    async def unblock(self, account_id: Any, admin: AccountProtocol) -> AccountProtocol:  # noqa: ANN401
        """
        Clear the block state.

        Raises:
            AccountNotFound: no such account
            NotBlocked: account is not blocked
        """
        account = await self.credentials.set_unblocked(account_id)
        logger.info("account_unblocked", account_id=str(account.id), unblocked_by=str(admin.id))
        return account
