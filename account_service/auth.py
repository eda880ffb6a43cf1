import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
ACCESS_MIN = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
ALGO = "HS256"


def create_token(account_id: int, expires_minutes: int = ACCESS_MIN) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": str(account_id), "exp": exp}, JWT_SECRET, algorithm=ALGO)


def get_account_id(auth: Optional[str] = Header(default=None, alias="Authorization")) -> int:
    """Trusted account id of the caller, taken from a bearer token."""
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(401, "Missing token")
    token = auth.split(" ", 1)[1]
    try:
        return int(jwt.decode(token, JWT_SECRET, algorithms=[ALGO])["sub"])
    except (JWTError, KeyError, ValueError):
        raise HTTPException(401, "Invalid token")
