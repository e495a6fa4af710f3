"""MongoDB adapter for account and session storage."""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

try:
    from bson import ObjectId  # type: ignore[import-untyped]
    from bson.errors import InvalidId  # type: ignore[import-untyped]
    from motor.motor_asyncio import AsyncIOMotorDatabase  # type: ignore[import-untyped]
    from pymongo import ASCENDING, DESCENDING, ReturnDocument  # type: ignore[import-untyped]
    from pymongo.errors import DuplicateKeyError  # type: ignore[import-untyped]
except ImportError as e:
    raise ImportError(
        "MongoDB support requires motor and pymongo. "
        "Install with: pip install babyblink-auth[mongodb]"
    ) from e

from babyblink_auth.db.mongodb.models import AccountDocument, SessionDocument
from babyblink_auth.errors import DuplicateIdentity

AccountT = TypeVar("AccountT", bound=AccountDocument)
SessionT = TypeVar("SessionT", bound=SessionDocument)

_ACCOUNT_DATETIME_FIELDS = ("otp_expires_at", "blocked_at", "created_at", "updated_at")
_SESSION_DATETIME_FIELDS = ("last_activity", "expires_at", "created_at")


def _object_id(value: Any) -> Any:  # noqa: ANN401
    """Convert a string id to ObjectId when it is one; leave anything else as-is."""
    if isinstance(value, str):
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return value
    return value


def _naive_utc(value: datetime) -> datetime:
    """MongoDB stores naive UTC; strip tzinfo after converting."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _prepare(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _naive_utc(value) if isinstance(value, datetime) else value
        for key, value in fields.items()
    }


class MongoDBAdapter(Generic[AccountT, SessionT]):
    """
    MongoDB implementation of the AuthDatabase protocol.

    Wraps a Motor AsyncIOMotorDatabase and stores accounts and sessions in
    two collections. Session rows get a TTL index on ``expires_at`` so the
    server removes them once expired.

    Example:
        ```python
        client = AsyncIOMotorClient("mongodb://localhost:27017")

        async def get_auth_db() -> MongoDBAdapter[AccountDocument, SessionDocument]:
            return MongoDBAdapter(database=client.babyblink)
        ```
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        account_collection_name: str = "accounts",
        session_collection_name: str = "sessions",
        account_model_class: type[AccountT] = AccountDocument,  # type: ignore[assignment]
        session_model_class: type[SessionT] = SessionDocument,  # type: ignore[assignment]
    ) -> None:
        """
        Initialize the MongoDB adapter.

        Args:
            database: Motor AsyncIOMotorDatabase instance
            account_collection_name: Name of the accounts collection
            session_collection_name: Name of the sessions collection
            account_model_class: Pydantic model class for account documents
            session_model_class: Pydantic model class for session documents
        """
        self.database = database
        self.account_collection = database[account_collection_name]
        self.session_collection = database[session_collection_name]
        self.account_model_class = account_model_class
        self.session_model_class = session_model_class

    async def ensure_indexes(self) -> None:
        """
        Create uniqueness, lookup and TTL indexes.

        Call once at application startup.
        """
        await self.account_collection.create_index("username", unique=True)
        await self.account_collection.create_index("email", unique=True)
        await self.session_collection.create_index("session_token", unique=True)
        await self.session_collection.create_index("refresh_token", unique=True)
        await self.session_collection.create_index(
            [("account_id", ASCENDING), ("is_active", ASCENDING)]
        )
        await self.session_collection.create_index("expires_at", expireAfterSeconds=0)

    # ------------------------------------------------------------------
    # (De)serialization
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize(doc: dict[str, Any], datetime_fields: tuple[str, ...]) -> dict[str, Any]:
        if "_id" in doc and isinstance(doc["_id"], ObjectId):
            doc["_id"] = str(doc["_id"])
        for field in datetime_fields:
            value = doc.get(field)
            if isinstance(value, datetime) and value.tzinfo is None:
                doc[field] = value.replace(tzinfo=UTC)
        return doc

    def _deserialize_account(self, doc: dict[str, Any] | None) -> AccountT | None:
        if doc is None:
            return None
        return self.account_model_class.model_validate(
            self._normalize(doc, _ACCOUNT_DATETIME_FIELDS)
        )

    def _deserialize_session(self, doc: dict[str, Any] | None) -> SessionT | None:
        if doc is None:
            return None
        return self.session_model_class.model_validate(
            self._normalize(doc, _SESSION_DATETIME_FIELDS)
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account_by_id(self, account_id: Any) -> AccountT | None:  # noqa: ANN401
        doc = await self.account_collection.find_one({"_id": _object_id(account_id)})
        return self._deserialize_account(doc)

    async def get_account_by_email(self, email: str) -> AccountT | None:
        doc = await self.account_collection.find_one({"email": email})
        return self._deserialize_account(doc)

    async def get_account_by_username(self, username: str) -> AccountT | None:
        doc = await self.account_collection.find_one({"username": username})
        return self._deserialize_account(doc)

    async def get_account_by_identifier(self, identifier: str) -> AccountT | None:
        """
        Retrieve an account by username or email.

        Args:
            identifier: Username or email address

        Returns:
            Account if found, None otherwise
        """
        doc = await self.account_collection.find_one(
            {"$or": [{"username": identifier}, {"email": identifier}]}
        )
        return self._deserialize_account(doc)

    async def create_account(self, **fields: Any) -> AccountT:  # noqa: ANN401
        """
        Insert a new account document.

        Args:
            **fields: Account field values

        Returns:
            Created account model

        Raises:
            DuplicateIdentity: username or email hits a unique index
        """
        now = datetime.now(UTC)
        account = self.account_model_class.model_validate(
            {**fields, "created_at": now, "updated_at": now}
        )
        doc = _prepare(account.model_dump(by_alias=True, exclude={"id"}))
        try:
            result = await self.account_collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateIdentity() from e
        account.id = str(result.inserted_id)
        return account

    async def delete_account(self, account: AccountT) -> None:
        await self.account_collection.delete_one({"_id": _object_id(account.id)})

    async def update_account(self, account: AccountT, **fields: Any) -> None:  # noqa: ANN401
        """
        Set fields on an account document and mirror them on the model.

        Args:
            account: Account model to update
            **fields: Field values to set
        """
        fields["updated_at"] = datetime.now(UTC)
        await self.account_collection.update_one(
            {"_id": _object_id(account.id)}, {"$set": _prepare(fields)}
        )
        for name, value in fields.items():
            setattr(account, name, value)

    async def set_block_state(
        self, account: AccountT, blocked: bool, **fields: Any  # noqa: ANN401
    ) -> bool:
        """Flip ``is_blocked`` only if the document is in the opposite state."""
        changes = {**fields, "is_blocked": blocked, "updated_at": datetime.now(UTC)}
        result = await self.account_collection.update_one(
            {"_id": _object_id(account.id), "is_blocked": not blocked},
            {"$set": _prepare(changes)},
        )
        if result.modified_count != 1:
            return False
        for name, value in changes.items():
            setattr(account, name, value)
        return True

    async def increment_login_count(self, account: AccountT) -> None:
        await self.account_collection.update_one(
            {"_id": _object_id(account.id)}, {"$inc": {"login_count": 1}}
        )
        account.login_count += 1

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, **fields: Any) -> SessionT:  # noqa: ANN401
        """Insert a new session document."""
        fields["account_id"] = str(fields["account_id"])
        session = self.session_model_class.model_validate(fields)
        doc = _prepare(session.model_dump(by_alias=True, exclude={"id"}))
        result = await self.session_collection.insert_one(doc)
        session.id = str(result.inserted_id)
        return session

    async def get_session_by_token(self, session_token: str) -> SessionT | None:
        doc = await self.session_collection.find_one({"session_token": session_token})
        return self._deserialize_session(doc)

    async def get_session_by_id(self, session_id: Any) -> SessionT | None:  # noqa: ANN401
        doc = await self.session_collection.find_one({"_id": _object_id(session_id)})
        return self._deserialize_session(doc)

    async def touch_session(self, session: SessionT, at: datetime) -> None:
        await self.session_collection.update_one(
            {"_id": _object_id(session.id)},
            {"$set": {"last_activity": _naive_utc(at)}},
        )
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

        ``find_one_and_update`` matches and replaces in one server-side step,
        so only one of several concurrent callers can match the old token.

        Returns:
            The updated session, or None if no active session held the token
        """
        doc = await self.session_collection.find_one_and_update(
            {
                "refresh_token": refresh_token,
                "is_active": True,
                "expires_at": {"$gt": _naive_utc(now)},
            },
            {
                "$set": {
                    "session_token": new_session_token,
                    "refresh_token": new_refresh_token,
                    "expires_at": _naive_utc(new_expires_at),
                    "last_activity": _naive_utc(now),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return self._deserialize_session(doc)

    async def deactivate_session(self, session_id: Any) -> int:  # noqa: ANN401
        result = await self.session_collection.update_one(
            {"_id": _object_id(session_id), "is_active": True},
            {"$set": {"is_active": False}},
        )
        return result.modified_count

    async def deactivate_account_sessions(self, account_id: Any) -> int:  # noqa: ANN401
        """
        Mark every active session of an account inactive.

        Returns:
            Number of sessions that were deactivated
        """
        result = await self.session_collection.update_many(
            {"account_id": str(account_id), "is_active": True},
            {"$set": {"is_active": False}},
        )
        return result.modified_count

    async def list_active_sessions(
        self, account_id: Any, now: datetime  # noqa: ANN401
    ) -> Sequence[SessionT]:
        cursor = self.session_collection.find(
            {
                "account_id": str(account_id),
                "is_active": True,
                "expires_at": {"$gt": _naive_utc(now)},
            }
        ).sort([("last_activity", DESCENDING), ("_id", DESCENDING)])
        return [self._deserialize_session(doc) async for doc in cursor]  # type: ignore[misc]

    async def delete_expired_sessions(self, now: datetime) -> int:
        """
        Remove expired sessions.

        The TTL index normally does this; the reaper calls it for stores
        without TTL support and for deterministic cleanup in tests.
        """
        result = await self.session_collection.delete_many(
            {"expires_at": {"$lt": _naive_utc(now)}}
        )
        return result.deleted_count
