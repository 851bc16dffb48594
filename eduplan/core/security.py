"""
security.py
------------
Bearer-token checks for the EduPlan backend.

Teachers sign in through the web app's identity backend, which issues HS256
JWTs signed with SECRET_KEY. This service never handles passwords; it only
verifies those tokens and uses the "sub" claim as the teacher id that scopes
the timetable, the draft and the archive.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from eduplan.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the way the identity backend does (used by scripts and tests)."""
    claims = dict(data)
    claims["exp"] = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Verify signature and expiry and return the claims.

    Raises:
        JWTError: bad signature, malformed token or expired token.
    """
    # The identity backend adds an "aud" claim that is not meaningful here
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_aud": False})


def get_current_user(token: str = Depends(oauth2_scheme)) -> str:
    """FastAPI dependency: the teacher id of the caller, or 401."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_token(token)
    except JWTError:
        raise unauthorized

    teacher_id = claims.get("sub")
    if not teacher_id:
        raise unauthorized
    return teacher_id
