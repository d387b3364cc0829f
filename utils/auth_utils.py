import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from email_validator import EmailNotValidError, validate_email
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
import database
from errors import Unauthenticated, Unauthorized

logger = logging.getLogger("prodvent.auth")

# HTTP Bearer token dependency
security = HTTPBearer(auto_error=False)


##########
# JWT Token
##########
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT token with expiration and a unique id for revocation"""
    if not data.get("email"):
        raise ValueError("token payload needs an email")
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=config.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire, "iat": now, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def verify_token(token: str) -> dict:
    """Verify JWT token, return payload or raise Unauthenticated"""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.PyJWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise Unauthenticated("Invalid token")
    if not payload.get("email"):
        raise Unauthenticated("Invalid token")
    return payload


async def is_revoked(claims: dict) -> bool:
    jti = claims.get("jti")
    if not jti:
        return False
    return await database.db.revoked_tokens.find_one({"jti": jti}) is not None


async def revoke_token(claims: dict):
    """Remember the token's id until it would have expired anyway"""
    expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    await database.db.revoked_tokens.update_one(
        {"jti": claims["jti"]},
        {"$setOnInsert": {"jti": claims["jti"], "email": claims["email"], "expiresAt": expires_at}},
        upsert=True,
    )
    logger.info("Revoked token %s for %s", claims["jti"], claims["email"])


##########
# Current User
##########
async def _claims_from_credentials(credentials: HTTPAuthorizationCredentials) -> dict:
    claims = verify_token(credentials.credentials)
    if await is_revoked(claims):
        raise Unauthenticated("Token has been revoked")
    return claims


async def require_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Return decoded claims or raise 401 if not authenticated"""
    if not credentials:
        raise Unauthenticated()
    return await _claims_from_credentials(credentials)


async def optional_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Optional[dict]:
    """Return decoded claims if a token was sent, else None; a bad token still fails"""
    if not credentials:
        return None
    return await _claims_from_credentials(credentials)


def normalize_email(email: str) -> str:
    """Normalize an email the way EmailStr request fields are stored; unparseable input is returned stripped"""
    email = email.strip()
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return email


def require_matching_email(claims: dict, email: str):
    if normalize_email(claims.get("email", "")) != normalize_email(email):
        logger.warning("Token for %s used to access %s", claims.get("email"), email)
        raise Unauthorized()
