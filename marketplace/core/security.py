import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import jwt

# read in CI and in production alike
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS512")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))


def create_access_token(user_id: UUID, company_id: Optional[UUID], role: str) -> str:
    """Mint a bearer token for a user authenticated by the identity provider."""
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "exp": expire,
        "sub": str(user_id),
        "company_id": str(company_id) if company_id else None,
        "role": role,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)
