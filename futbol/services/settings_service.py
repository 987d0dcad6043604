"""
Settings service for runtime configuration with database overrides.

Supports checking database settings first, then falling back to environment variables.
Uses Redis for caching; an unreachable Redis simply disables the cache.
"""

import os
import logging
from typing import Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from dotenv import load_dotenv
from futbol.database.models import Setting
from futbol.utils.constants import CURRENT_MONTH_KEY, CURRENT_YEAR_KEY
from futbol.utils.datetime_utils import league_today

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


# Redis configuration
REDIS_ENABLED = get_bool_env("REDIS_ENABLED", default=True)
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
CACHE_TTL_SECONDS = 60  # Cache settings for 60 seconds
REDIS_KEY_PREFIX = "futbol:settings:"

# Global Redis client (initialized on first use)
_redis_client: Optional[Redis] = None


async def get_redis_client() -> Optional[Redis]:
    """
    Get or create Redis client connection.

    Returns:
        Redis client or None if caching is disabled or the connection fails
    """
    global _redis_client

    if not REDIS_ENABLED:
        return None

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except Exception as e:
            logger.warning(f"Redis connection test failed, recreating client: {e}")
            await close_redis_connection()

    try:
        _redis_client = Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True
        )
        await _redis_client.ping()
        logger.info(f"Connected to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}: {e}")
        _redis_client = None
        return None


async def _get_cached_setting(key: str) -> Optional[str]:
    """Get cached setting value from Redis."""
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return None
        return await redis_client.get(f"{REDIS_KEY_PREFIX}{key}")
    except Exception as e:
        logger.warning(f"Error getting cached setting {key} from Redis: {e}")
        return None


async def _set_cached_setting(key: str, value: Optional[str]):
    """Cache a setting value in Redis with TTL."""
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return

        redis_key = f"{REDIS_KEY_PREFIX}{key}"
        if value is not None:
            await redis_client.setex(redis_key, CACHE_TTL_SECONDS, value)
        else:
            await redis_client.delete(redis_key)
    except Exception as e:
        logger.warning(f"Error setting cached setting {key} in Redis: {e}")


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """Read a raw setting value from the database."""
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """
    Insert or update a setting. Does not commit; the caller owns the transaction.
    """
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting:
        setting.value = value
    else:
        session.add(Setting(key=key, value=value))
    await session.flush()
    await _set_cached_setting(key, value)


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
    fallback_to_cache: bool = True
) -> Optional[str]:
    """
    Get a setting value from database first, then cache, then env var, then default.

    Args:
        session: Database session (optional)
        key: Setting key in database
        env_var: Environment variable name to fall back to
        default: Default value if neither database nor env var is set
        fallback_to_cache: If True and no session, use cache

    Returns:
        Setting value as string, or None
    """
    if session:
        try:
            value = await get_setting(session, key)
            if value is not None:
                await _set_cached_setting(key, value)
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if fallback_to_cache:
        cached = await _get_cached_setting(key)
        if cached is not None:
            return cached

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_bool_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: bool = True,
    fallback_to_cache: bool = True
) -> bool:
    """Get a boolean setting value."""
    value = await get_setting_with_fallback(session, key, env_var, None, fallback_to_cache)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


async def get_active_month(session: AsyncSession) -> Tuple[int, int]:
    """
    Return the (month, year) currently open for voting.

    Falls back to the league's current month when no setting is stored.
    """
    today = league_today()
    month_value = await get_setting(session, CURRENT_MONTH_KEY)
    year_value = await get_setting(session, CURRENT_YEAR_KEY)
    try:
        month = int(month_value) if month_value is not None else today.month
        year = int(year_value) if year_value is not None else today.year
    except ValueError:
        logger.warning(f"Invalid active month settings ({month_value}/{year_value}), using today")
        return today.month, today.year
    return month, year


async def set_active_month(session: AsyncSession, month: int, year: int) -> bool:
    """
    Store the active voting month and commit.

    Returns:
        True if the active month changed
    """
    if not 1 <= month <= 12:
        raise ValueError("El mes debe estar entre 1 y 12")
    if year < 2000:
        raise ValueError("Año inválido")

    current_month, current_year = await get_active_month(session)
    await set_setting(session, CURRENT_MONTH_KEY, str(month))
    await set_setting(session, CURRENT_YEAR_KEY, str(year))
    await session.commit()
    changed = (current_month, current_year) != (month, year)
    if changed:
        logger.info(f"Active voting month changed to {month}/{year}")
    return changed


async def close_redis_connection():
    """Close Redis connection (call on application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.close()
            logger.info("Closed Redis connection")
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None
