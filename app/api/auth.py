from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.core.errors import Unauthorized
from app.core.rate_limit import LOGIN_RATE_LIMIT, ME_RATE_LIMIT, limiter
from app.core.security import create_access_token, get_current_user, verify_password
from app.db.session import get_db
from app.models.user import User
from app.repositories import UserRepository
from app.schemas.token import Token
from app.schemas.user import UserOut

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/token", response_model=Token)
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = UserRepository(db).get_by_email(form_data.username)
    if not user or not user.is_active or not verify_password(form_data.password, user.password_hash):
        raise Unauthorized("Invalid credentials")

    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"access_token": token, "token_type": "bearer", "role": user.role.value}


@router.get("/me", response_model=UserOut)
@limiter.limit(ME_RATE_LIMIT)
def get_me(request: Request, current_user: User = Depends(get_current_user)):
    return current_user
