import uuid

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN
from .database import SessionLocal
from .services.engine import InterestEngine

_engine: InterestEngine | None = None


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def parse_actor_user_id(raw_actor_user_id: str | None) -> str | None:
    if not raw_actor_user_id:
        return None
    value = raw_actor_user_id.strip()
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Actor-User-Id must be a valid UUID")


def require_actor(x_actor_user_id: str | None = Header(default=None, alias="X-Actor-User-Id")) -> str:
    actor = parse_actor_user_id(x_actor_user_id)
    if not actor:
        raise HTTPException(status_code=401, detail="X-Actor-User-Id header is required")
    return actor


def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def get_interest_engine() -> InterestEngine:
    global _engine
    if _engine is None:
        _engine = InterestEngine(SessionLocal)
    return _engine


def get_db():
    with SessionLocal() as db:
        yield db
