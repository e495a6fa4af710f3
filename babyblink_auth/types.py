"""Type definitions for babyblink-auth."""

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from babyblink_auth.db.protocols import AccountProtocol, SessionProtocol

# Generic type variable for primary keys (int, UUID, str, etc.)
ID = TypeVar("ID")

# Generic type variables for storage models
AccountT = TypeVar("AccountT", bound="AccountProtocol")
SessionT = TypeVar("SessionT", bound="SessionProtocol")
