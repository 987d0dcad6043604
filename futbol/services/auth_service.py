"""
Authentication helpers.

Bearer tokens are issued by the identity provider; this service only
verifies them. create_access_token exists for local development and tests,
where tokens are signed with the shared HS256 key.
"""

import hmac
import json
import logging
import os
from datetime import timedelta
from typing import Dict, Optional

from dotenv import load_dotenv
from jose import JWTError, jwt
from svix.webhooks import Webhook, WebhookVerificationError

from futbol.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

# Identity provider token verification. For RS256 providers AUTH_JWT_KEY holds
# the PEM public key; for local development a shared HS256 secret.
AUTH_JWT_KEY = os.getenv("AUTH_JWT_KEY", "dev-secret-change-me")
AUTH_JWT_ALGORITHMS = [
    a.strip() for a in os.getenv("AUTH_JWT_ALGORITHMS", "HS256").split(",") if a.strip()
]
AUTH_JWT_ISSUER = os.getenv("AUTH_JWT_ISSUER") or None
ACCESS_TOKEN_EXPIRE_MINUTES = 60

# Identity provider webhook signing secret (svix format: whsec_...)
IDENTITY_WEBHOOK_SECRET = os.getenv("IDENTITY_WEBHOOK_SECRET")

# Shared secret for scheduled jobs
CRON_SECRET = os.getenv("CRON_SECRET")


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed token (development and tests only).

    Args:
        data: Claims to include; "sub" should hold the user id
        expires_delta: Optional lifetime override
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, AUTH_JWT_KEY, algorithm=AUTH_JWT_ALGORITHMS[0])


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify a bearer token.

    Returns:
        Decoded claims, or None if the token is invalid or expired
    """
    try:
        options = {"verify_aud": False}
        return jwt.decode(
            token,
            AUTH_JWT_KEY,
            algorithms=AUTH_JWT_ALGORITHMS,
            issuer=AUTH_JWT_ISSUER,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None


def verify_cron_secret(authorization: Optional[str]) -> bool:
    """Check an Authorization header against 'Bearer <CRON_SECRET>'."""
    if not CRON_SECRET or not authorization:
        return False
    return hmac.compare_digest(authorization, f"Bearer {CRON_SECRET}")


def verify_webhook(payload: bytes, headers: Dict[str, str]) -> Dict:
    """
    Verify an identity-provider webhook signature.

    Returns:
        The parsed event payload

    Raises:
        ValueError: If the secret is not configured or the signature is invalid
    """
    if not IDENTITY_WEBHOOK_SECRET:
        raise ValueError("IDENTITY_WEBHOOK_SECRET not configured")
    try:
        Webhook(IDENTITY_WEBHOOK_SECRET).verify(payload, headers)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise ValueError("Invalid webhook signature")
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        raise ValueError("Webhook payload is not valid JSON")
