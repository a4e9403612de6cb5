from fastapi import APIRouter, Depends, Request

from app.core.deps import get_auth_service, get_current_principal
from app.core.security import Principal
from app.schemas.auth import (
    AuthenticationResult,
    CurrentUser,
    OtpChallenge,
    OtpRequest,
    OtpVerificationRequest,
)
from app.services.authentication import AuthenticationService
from app.services.rate_limit import enforce_otp_limits
from app.services.user_directory import normalize_phone

router = APIRouter()


def _client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return str(client.host if client else "unknown")


@router.post("/request-otp", response_model=OtpChallenge, response_model_exclude_none=True)
def request_otp(
    payload: OtpRequest,
    request: Request,
    service: AuthenticationService = Depends(get_auth_service),
):
    enforce_otp_limits("send", client_ip=_client_ip(request), phone_number=normalize_phone(payload.phone_number))
    return service.initiate_authentication(payload.phone_number)


@router.post("/verify-otp", response_model=AuthenticationResult)
def verify_otp(
    payload: OtpVerificationRequest,
    request: Request,
    service: AuthenticationService = Depends(get_auth_service),
):
    enforce_otp_limits("verify", client_ip=_client_ip(request), phone_number=normalize_phone(payload.phone_number))
    return service.verify_otp_and_authenticate(payload.phone_number, payload.otp)


@router.get("/me", response_model=CurrentUser)
def me(
    principal: Principal = Depends(get_current_principal),
    service: AuthenticationService = Depends(get_auth_service),
):
    return service.current_user(principal)
