import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Professional, User
from .security_utils import decode_professional_token

logger = logging.getLogger(__name__)

security = HTTPBearer()


class Principal:
    """
    Who is calling: the salon owner, or one of the owner's professionals.

    Professionals act inside their owner's tenant but only see their own
    appointments, customers and commissions.
    """

    def __init__(self, user: User, professional: Optional[Professional] = None):
        self.user = user
        self.professional = professional

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def is_owner(self) -> bool:
        return self.professional is None

    @property
    def professional_id(self) -> Optional[int]:
        return self.professional.id if self.professional else None


def verify_supabase_token(token: str) -> dict:
    """
    Verify a Supabase Auth access token.

    Supabase signs access tokens with the project's JWT secret (HS256) and
    sets `aud` to "authenticated" for signed-in users.
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        claims = jose_jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Supabase token rejected: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    if not claims.get("sub"):
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return claims


def _get_or_create_user(db: Session, claims: dict) -> User:
    auth_uid = claims["sub"]
    email = claims.get("email") or ""

    user = db.query(User).filter(User.auth_uid == auth_uid).first()
    if user:
        return user

    if email:
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.info(f"🔄 Migrating user {email} to auth uid {auth_uid}")
            existing_user.auth_uid = auth_uid
            db.commit()
            db.refresh(existing_user)
            return existing_user

    logger.info(f"🆕 Creating new user: {email}")
    metadata = claims.get("user_metadata") or {}
    user = User(auth_uid=auth_uid, email=email, business_name=metadata.get("business_name"))
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        if "unique" in str(e).lower() or "duplicate key" in str(e).lower():
            # Another request created the same user first
            user = db.query(User).filter(User.auth_uid == auth_uid).first()
            if user:
                return user
            raise HTTPException(
                status_code=409, detail="This email is already registered."
            ) from e
        raise
    logger.info(f"✅ New user created: {user.email}")
    return user


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    """Resolve the caller from either a professional token or a Supabase token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    professional_claims = decode_professional_token(token)
    if professional_claims:
        professional = (
            db.query(Professional)
            .filter(
                Professional.id == int(professional_claims["sub"]),
                Professional.user_id == professional_claims.get("tenant"),
            )
            .first()
        )
        if not professional or not professional.active:
            raise HTTPException(status_code=401, detail="Professional account is inactive")
        return Principal(professional.user, professional)

    claims = verify_supabase_token(token)
    user = _get_or_create_user(db, claims)
    logger.debug(f"✅ User authenticated: {user.email}")
    return Principal(user)


async def get_current_user(principal: Principal = Depends(get_current_principal)) -> User:
    """Owner-only routes: reject professional sessions"""
    if not principal.is_owner:
        raise HTTPException(status_code=403, detail="Only the salon owner can do this")
    return principal.user
