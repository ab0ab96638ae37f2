"""
Security utilities: password hashing, professional session tokens and
credential encryption
"""

import base64
import logging
import os
from datetime import timedelta
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import (
    ENCRYPTION_KEY_BASE64,
    PROFESSIONAL_JWT_SECRET,
    PROFESSIONAL_TOKEN_TTL_MINUTES,
)
from .utils.dates import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
PROFESSIONAL_TOKEN_ISSUER = "salonbook"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# AES-256-GCM blob layout: iv(12) || tag(16) || ciphertext
IV_LENGTH = 12
TAG_LENGTH = 16


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against bcrypt hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# PROFESSIONAL SESSION TOKENS
# ============================================================================


def create_professional_token(professional_id: int, user_id: int) -> str:
    """Issue a signed token for a professional dashboard session"""
    now = utcnow()
    claims = {
        "sub": str(professional_id),
        "tenant": user_id,
        "role": "professional",
        "iss": PROFESSIONAL_TOKEN_ISSUER,
        "iat": now,
        "exp": now + timedelta(minutes=PROFESSIONAL_TOKEN_TTL_MINUTES),
    }
    return jose_jwt.encode(claims, PROFESSIONAL_JWT_SECRET, algorithm=ALGORITHM)


def decode_professional_token(token: str) -> Optional[dict[str, Any]]:
    """Return the claims of a valid professional token, None otherwise"""
    try:
        claims = jose_jwt.decode(
            token,
            PROFESSIONAL_JWT_SECRET,
            algorithms=[ALGORITHM],
            issuer=PROFESSIONAL_TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.debug(f"Professional token rejected: {e}")
        return None
    if claims.get("role") != "professional":
        return None
    return claims


# ============================================================================
# CREDENTIAL ENCRYPTION (AES-256-GCM)
# ============================================================================


def _load_key(key_base64: Optional[str]) -> bytes:
    if not key_base64:
        raise RuntimeError("ENCRYPTION_KEY_BASE64 is not configured")
    key = base64.b64decode(key_base64)
    if len(key) != 32:
        raise RuntimeError("ENCRYPTION_KEY_BASE64 must decode to 32 bytes")
    return key


def encrypt_credential(plaintext: str, key_base64: Optional[str] = None) -> str:
    """
    Encrypt a third-party API key for storage.

    Returns base64(iv(12) || tag(16) || ciphertext).
    """
    key = _load_key(key_base64 or ENCRYPTION_KEY_BASE64)
    iv = os.urandom(IV_LENGTH)
    # AESGCM appends the tag to the ciphertext; the stored layout puts it first
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(iv + tag + ciphertext).decode("ascii")


def decrypt_credential(payload_base64: str, key_base64: Optional[str] = None) -> str:
    """
    Decrypt a stored credential blob.

    Raises:
        ValueError: If the blob is malformed or fails authentication
    """
    key = _load_key(key_base64 or ENCRYPTION_KEY_BASE64)
    try:
        payload = base64.b64decode(payload_base64, validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError("Credential is not valid base64") from e
    if len(payload) < IV_LENGTH + TAG_LENGTH:
        raise ValueError("Credential payload is too short")

    iv = payload[:IV_LENGTH]
    tag = payload[IV_LENGTH : IV_LENGTH + TAG_LENGTH]
    ciphertext = payload[IV_LENGTH + TAG_LENGTH :]
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise ValueError("Credential failed authentication") from e
    return plaintext.decode("utf-8")


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Show only the last 4 characters of a secret for display"""
    if not value:
        return None
    return f"****{value[-4:]}"
