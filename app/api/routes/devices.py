from fastapi import APIRouter, Depends, Query

from app.api.deps import get_auth_gate, get_device_registry
from app.domain.schemas import (
    CheckStatusRequest,
    CheckStatusResponse,
    DeviceAction,
    DeviceActionRequest,
    DeviceListResponse,
    DeviceResponse,
)
from app.services.auth import AuthGate
from app.services.devices import DeviceRegistry

router = APIRouter()


@router.get("", response_model=DeviceListResponse)
def list_devices(
    user_id: str | None = Query(None, alias="userId"),
    registry: DeviceRegistry = Depends(get_device_registry),
):
    """Pending and active devices for the admin dashboard."""
    devices = registry.list_devices(user_id)
    return DeviceListResponse(
        pending=[DeviceResponse(**d) for d in devices["pending"]],
        active=[DeviceResponse(**d) for d in devices["active"]],
    )


@router.post("/approve")
async def device_action(
    data: DeviceActionRequest,
    registry: DeviceRegistry = Depends(get_device_registry),
):
    """Approve, deny (delete) or revoke a device."""
    if data.action == DeviceAction.DENY:
        registry.deny(data.device_id)
        return {"success": True}

    if data.action == DeviceAction.REVOKE:
        device = registry.revoke(data.device_id)
    else:
        device = registry.approve(data.device_id)
    return {
        "success": True,
        "device": DeviceResponse(**device).model_dump(mode="json", by_alias=True),
    }


@router.post("/check-status", response_model=CheckStatusResponse)
def check_status(
    data: CheckStatusRequest,
    gate: AuthGate = Depends(get_auth_gate),
):
    """Whether a login from this fingerprint would be let in. Read-only."""
    status = gate.check_status(data.token, data.fingerprint)
    return CheckStatusResponse(
        is_approved=status.is_approved,
        needs_approval=status.needs_approval,
    )
