from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_principal
from app.core.errors import TokenInvalid
from app.core.security import Principal
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import UserSummary
from app.services.authentication import user_summary

router = APIRouter()


@router.get("/me", response_model=UserSummary)
def my_profile(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    user = db.get(User, principal.user_id)
    # tokens of deleted users are invalid
    if user is None or user.phone_number != principal.phone_number:
        raise TokenInvalid()
    return user_summary(user)
