from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.errors import TokenInvalid
from app.core.security import JwtTokenProvider, Principal, get_token_provider
from app.db.session import get_db
from app.services.authentication import AuthenticationService

bearer = HTTPBearer(auto_error=False)

def get_current_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    tokens: JwtTokenProvider = Depends(get_token_provider),
) -> Principal:
    if not creds:
        raise TokenInvalid()
    return tokens.authenticate(creds.credentials)

def get_auth_service(
    db: Session = Depends(get_db),
    tokens: JwtTokenProvider = Depends(get_token_provider),
) -> AuthenticationService:
    return AuthenticationService(db, tokens)
