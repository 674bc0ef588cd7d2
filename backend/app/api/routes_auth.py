# backend/app/api/routes_auth.py

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id, get_store
from app.core.errors import AuthenticationError, ConflictError, NotFoundError
from app.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
)
from app.db.sqlite_store import ItineraryStore
from app.models.user_models import RegisterIn, LoginIn, TokenOut, MeOut

router = APIRouter(prefix="/auth", tags=["auth"])


# --------------------------
# REGISTER
# --------------------------
@router.post("/register", response_model=TokenOut)
def register(data: RegisterIn, db: ItineraryStore = Depends(get_store)):
    if db.get_user_by_email(data.email):
        raise ConflictError("Email already registered")

    user_id = db.create_user(
        email=data.email,
        full_name=data.full_name or "",
        hashed_password=get_password_hash(data.password),
    )

    return {"access_token": create_access_token(subject=user_id)}


# --------------------------
# LOGIN
# --------------------------
@router.post("/login", response_model=TokenOut)
def login(data: LoginIn, db: ItineraryStore = Depends(get_store)):
    user = db.get_user_by_email(data.email)
    if not user or not verify_password(data.password, user["hashed_password"]):
        raise AuthenticationError("Invalid credentials")

    return {"access_token": create_access_token(subject=user["id"])}


# --------------------------
# ME
# --------------------------
@router.get("/me", response_model=MeOut)
def me(user_id: str = Depends(get_current_user_id), db: ItineraryStore = Depends(get_store)):
    user = db.get_user_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")

    return {
        "id": user["id"],
        "email": user["email"],
        "full_name": user["full_name"],
    }
