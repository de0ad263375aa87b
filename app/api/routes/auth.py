import logging

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_auth_gate
from app.core.security import hash_ip
from app.domain.schemas import LoginRequest, LoginResponse
from app.services.auth import AuthGate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    request: Request,
    gate: AuthGate = Depends(get_auth_gate),
):
    """Log in with a static token from a fingerprinted browser.

    Unknown devices (other than a user's very first one) get a 403 with
    needsApproval=true until the admin approves them.
    """
    ip_hash = data.ip_hash
    if not ip_hash:
        ip_hash = hash_ip(request.client.host if request.client else "unknown")

    result = gate.login(
        token=data.token,
        fingerprint=data.fingerprint,
        user_agent=data.user_agent,
        ip_hash=ip_hash,
    )
    return LoginResponse(user_id=result.user_id, role=result.role)
