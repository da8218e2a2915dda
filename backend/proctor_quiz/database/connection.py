import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus, urlparse, urlunparse

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------
# LOAD .env ONLY IN LOCAL DEVELOPMENT
# ---------------------------------------------------
# Railway sets environment variable: RAILWAY_ENVIRONMENT
def load_environment() -> None:
    if os.getenv("RAILWAY_ENVIRONMENT"):
        logger.info("🚀 Running on Railway — using Railway environment variables")
        return

    env_path = Path(__file__).parent.parent.parent / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        logger.info("🔧 Loaded .env (local development)")
    else:
        logger.info("⚠️ .env not found — using system environment")


class DatabaseNotConnected(RuntimeError):
    """Raised when a store operation runs before connect_to_mongo()."""


class MongoDB:
    client: Optional[AsyncIOMotorClient] = None
    database = None


# Global DB instance
db = MongoDB()


# ---------------------------------------------------
# ESCAPE CREDENTIALS IN THE MONGODB URL
# ---------------------------------------------------
def escape_mongodb_url(url: str) -> str:
    if not url or "://" not in url:
        return url

    parsed = urlparse(url)

    if not parsed.username and not parsed.password:
        return url

    username = quote_plus(parsed.username) if parsed.username else ""
    password = quote_plus(parsed.password) if parsed.password else ""

    if username and password:
        netloc = f"{username}:{password}@{parsed.hostname}"
    else:
        netloc = f"{username}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"

    return urlunparse((
        parsed.scheme,
        netloc,
        parsed.path,
        parsed.params,
        parsed.query,
        parsed.fragment
    ))


# ---------------------------------------------------
# CONNECT TO MONGODB
# ---------------------------------------------------
async def connect_to_mongo():
    mongodb_url = os.getenv("MONGODB_URL")
    database_name = os.getenv("DATABASE_NAME")

    if not mongodb_url:
        raise RuntimeError("❌ MONGODB_URL is not set in environment variables.")

    if not database_name:
        raise RuntimeError("❌ DATABASE_NAME is not set in environment variables.")

    mongodb_url = escape_mongodb_url(mongodb_url)

    logger.info("🔗 Connecting to MongoDB...")

    if mongodb_url.startswith("mongodb+srv://"):
        import certifi
        db.client = AsyncIOMotorClient(mongodb_url, tlsCAFile=certifi.where())
    else:
        db.client = AsyncIOMotorClient(mongodb_url)

    db.database = db.client[database_name]

    try:
        await db.client.admin.command("ping")
        logger.info(f"✅ Connected to MongoDB: {database_name}")
    except Exception as e:
        logger.error(f"❌ Failed to connect to MongoDB: {e}")
        raise


# ---------------------------------------------------
# DISCONNECT
# ---------------------------------------------------
async def close_mongo_connection():
    if db.client:
        db.client.close()
        db.client = None
        db.database = None
        logger.info("🔌 MongoDB connection closed")


# ---------------------------------------------------
# ACCESS HELPERS
# ---------------------------------------------------
def get_database():
    return db.database


def require_database():
    """Return the connected database or raise DatabaseNotConnected."""
    database = get_database()
    if database is None:
        raise DatabaseNotConnected("Database not connected")
    return database
