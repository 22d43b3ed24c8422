"""
Short-lived encrypted handoff of user tokens to Celery workers.

A private sync request carries the caller's own GitHub token. Only the
sealed form travels through the broker; it expires after
PRIVATE_SYNC_TOKEN_TTL_SECONDS and is never persisted.
"""

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from attribution.config import settings
from attribution.services.github.exceptions import GithubConfigurationError

EXPIRED_MESSAGE = "Private sync request expired, please request a new sync"


def _get_cipher() -> Fernet:
    """Get Fernet cipher keyed from SECRET_KEY."""
    key = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def seal_token(token: str) -> str:
    return _get_cipher().encrypt(token.encode()).decode()


def open_token(sealed: str, ttl: Optional[int] = None) -> str:
    """
    Decrypt a sealed token.

    Raises:
        GithubConfigurationError: the token is expired, tampered with or
            sealed under another key
    """
    ttl = settings.PRIVATE_SYNC_TOKEN_TTL_SECONDS if ttl is None else ttl
    try:
        return _get_cipher().decrypt(sealed.encode(), ttl=ttl).decode()
    except InvalidToken as exc:
        raise GithubConfigurationError(EXPIRED_MESSAGE) from exc
