from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from hunt import config


def verify_token(authorization: Optional[str] = Header(None)):
    try:
        if not authorization or not config.JWT_SECRET:
            raise ValueError("missing token or secret")
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("not a bearer token")
        return jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
