"""MongoDB document models for accounts and sessions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AccountDocument(BaseModel):
    """
    Pydantic model for account documents in MongoDB.

    Applications may inherit from this class to add fields.

    Example:
        ```python
        class Parent(AccountDocument):
            preferred_language: str | None = None
        ```
    """

    # MongoDB _id field (ObjectId as string)
    id: str | None = Field(default=None, alias="_id")

    username: str = Field(..., max_length=50)
    email: EmailStr = Field(..., description="Account email address")
    password_hash: str

    # Profile
    full_name: str | None = None
    phone_number: str | None = None
    baby_name: str | None = None
    baby_age: int | None = None
    baby_gender: str | None = None
    address: str | None = None

    # Verification
    is_verified: bool = False
    otp_code: str | None = Field(default=None, max_length=20)
    otp_expires_at: datetime | None = None

    # Block state
    is_blocked: bool = False
    block_reason: str | None = None
    blocked_at: datetime | None = None
    blocked_by: str | None = None

    is_admin: bool = False
    login_count: int = 0
    profile_completeness: int = 0

    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        populate_by_name=True,  # Allow both 'id' and '_id'
        from_attributes=True,
    )


class SessionDocument(BaseModel):
    """
    Pydantic model for login session documents in MongoDB.

    The collection carries a TTL index on ``expires_at`` so MongoDB removes
    expired rows on its own; see ``MongoDBAdapter.ensure_indexes``.
    """

    id: str | None = Field(default=None, alias="_id")
    account_id: str

    session_token: str
    refresh_token: str

    user_agent: str | None = None
    ip_address: str | None = None
    browser: str = "Unknown"
    os: str = "Unknown"
    device: str = "Desktop"

    is_active: bool = True
    last_activity: datetime
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
    )
