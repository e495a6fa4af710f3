"""Example BabyBlink application backed by MongoDB.

This example demonstrates:
- Extending AccountDocument with an application field
- Creating the MongoDB connection and MongoDBAdapter dependency
- Creating the uniqueness, lookup and TTL indexes at startup
- Building the app with create_app

Expired sessions are removed by the TTL index on ``expires_at``, so the
background reaper is not enabled here.
"""
from datetime import timedelta

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from babyblink_auth import BabyBlinkAuthConfig, OTPPurpose, create_app
from babyblink_auth.db import AccountDocument, MongoDBAdapter, SessionDocument

MONGODB_URL = "mongodb://localhost:27017"
DATABASE_NAME = "babyblink"

client: AsyncIOMotorClient = AsyncIOMotorClient(MONGODB_URL, tz_aware=True)
database: AsyncIOMotorDatabase = client[DATABASE_NAME]


class Parent(AccountDocument):
    """Account document with an application field."""

    preferred_language: str | None = None


async def get_auth_db() -> MongoDBAdapter[Parent, SessionDocument]:
    """Dependency to get the auth database adapter."""
    return MongoDBAdapter(database=database, account_model_class=Parent)


class MyAuthConfig(BabyBlinkAuthConfig):
    secret_key = "your-secret-key-min-32-chars-long-generate-with-openssl"
    refresh_secret_key = "another-secret-key-min-32-chars-long-for-refresh"
    support_email = "support@babyblink.example"
    developer_mode = True  # Set to False in production!

    otp_expiry = timedelta(minutes=15)

    async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
        print(f"\nSending {purpose} code to {email}: {code}\n")

    def get_additional_claims(self, account: Parent) -> dict[str, str]:
        """Add custom claims to access tokens."""
        return {"username": account.username}


async def create_indexes() -> None:
    await (await get_auth_db()).ensure_indexes()
    print("\nMongoDB indexes created\n")


app = create_app(
    MyAuthConfig(),
    get_auth_db,
    on_startup=[create_indexes],
    title="BabyBlink Auth (MongoDB)",
)


if __name__ == "__main__":
    import uvicorn

    print("""
    Starting BabyBlink Auth example with MongoDB

    Prerequisites:
       - MongoDB must be running on localhost:27017
       - Run: mongod (or use Docker: docker run -d -p 27017:27017 mongo)

    API Docs: http://localhost:8000/docs
    """)

    uvicorn.run(app, host="0.0.0.0", port=8000)
