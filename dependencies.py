# dependencies.py
"""
Shared FastAPI dependencies: service accessors and the admin gate.
"""
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Request
from jose import JWTError, jwt

import config
from services import OrderLifecycleManager, OrderStore

logger = logging.getLogger(__name__)


def get_lifecycle(request: Request) -> OrderLifecycleManager:
     return request.app.state.lifecycle


def get_store(request: Request) -> OrderStore:
     return request.app.state.lifecycle.store


def _secret_matches(candidate: Optional[str], secret: Optional[str]) -> bool:
     if not candidate or not secret:
          return False
     return hmac.compare_digest(candidate.encode(), secret.encode())


def check_admin_password(password: str) -> bool:
     return _secret_matches(password, config.ADMIN_PASSWORD)


def issue_admin_token() -> Optional[str]:
     """Signed session token for the dashboard, or None when JWT_SECRET is unset."""
     if not config.JWT_SECRET:
          return None
     expires = datetime.now(timezone.utc) + timedelta(minutes=config.JWT_EXPIRE_MINUTES)
     return jwt.encode({"sub": "admin", "exp": expires}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


# Token Auth Dependency
def verify_admin(request: Request) -> dict:
     """
     Admin gate. Accepts the static ADMIN_TOKEN (x-admin-token header or
     token query param) or a bearer token issued by /api/admin/login.
     """
     token = request.headers.get("x-admin-token") or request.query_params.get("token")
     if _secret_matches(token, config.ADMIN_TOKEN):
          return {"sub": "admin"}

     auth = request.headers.get("Authorization")
     if auth and auth.startswith("Bearer ") and config.JWT_SECRET:
          try:
               payload = jwt.decode(auth.split(" ", 1)[1], config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
          except JWTError:
               raise HTTPException(status_code=403, detail="Invalid token")
          if payload.get("sub") == "admin":
               return payload
          raise HTTPException(status_code=403, detail="Invalid token")

     if token:
          raise HTTPException(status_code=403, detail="Invalid token")
     raise HTTPException(status_code=401, detail="Missing token")
