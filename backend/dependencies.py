from fastapi import Depends, HTTPException, Cookie, Header, status
from typing import Optional
import jwt
from datetime import datetime, timedelta, timezone
import os
from dotenv import load_dotenv #for .env files

load_dotenv()

JWT_ALGORITHM = "HS256"   # ensures the token issued by trusted party(Using a shared secret) and has not been changed during transit.
JWT_EXPIRATION_MINUTES = 15
JWT_SECRET = os.getenv("SECRET_KEY", "your_default_jwt_secret_key")


def create_jwt_token(owner_id: str, expires_in_minutes: int = JWT_EXPIRATION_MINUTES) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_in_minutes)
    payload = {"sub": str(owner_id), "exp": expire} #sub is the opaque owner id every service call is scoped to
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(authorization: Optional[str] = Header(None),
                     access_token_cookie: Optional[str] = Cookie(None)) -> dict:
    #Determine which token to use: header first, then cookie
    token_value = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme != "Bearer" or not credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication scheme in header",
            )
        token_value = credentials
    elif access_token_cookie:
        token_value = access_token_cookie
    else:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not Authenticated: No token provided",
        )
    try:
        payload = jwt.decode(token_value, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token expired.Please refresh.",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Access Token",
        )
    owner_id = payload.get("sub")
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing owner id")
    return {"owner_id": owner_id}


def get_owner_id(user: dict = Depends(get_current_user)) -> str:
    return user["owner_id"]
