"""
Device registry: which browsers may log in for each user.

Device lifecycle (per user):

    UNKNOWN --first device ever--> ACTIVE
    UNKNOWN --otherwise--> PENDING --approve--> ACTIVE
                           PENDING --deny--> deleted
    ACTIVE --revoke--> REVOKED --approve--> ACTIVE

A revoked device that logs in again is refused (and alerted) until the
admin approves or denies it. Logging in never changes a known
device's approval state.
"""
import logging
from dataclasses import dataclass
from typing import Sequence

from app.core.errors import NotFoundError
from app.domain.schemas import Role
from app.repositories.device import DeviceRepository
from app.services.telegram import AlertRelay

logger = logging.getLogger(__name__)


@dataclass
class DeviceResolution:
    device: dict
    access_granted: bool
    needs_approval: bool
    revoked: bool = False


@dataclass
class DeviceStatus:
    is_approved: bool
    needs_approval: bool


class DeviceRegistry:

    def __init__(
        self,
        devices: DeviceRepository,
        alerts: AlertRelay,
        user_data: Sequence = (),
    ):
        self.devices = devices
        self.alerts = alerts
        # Repositories exposing delete_for_user(); purged when a device is revoked
        self.user_data = user_data

    def resolve_device(
        self,
        user_id: str,
        fingerprint: str,
        user_agent: str,
        ip_hash: str,
        role: Role,
    ) -> DeviceResolution:
        rows = self.devices.list_for_fingerprint(user_id, fingerprint)

        if rows:
            device = self.devices.collapse_to_oldest(rows)
            self.devices.touch(device["id"], user_agent, ip_hash)
        else:
            device = self._register(user_id, fingerprint, user_agent, ip_hash, role)

        if device.get("is_active"):
            return DeviceResolution(device=device, access_granted=True, needs_approval=False)

        revoked = device.get("revoked_at") is not None
        logger.info(
            f"Device {device['id']} for {role.value} awaiting approval "
            f"({'revoked' if revoked else 'new'})"
        )
        self.alerts.new_device(device, role.value, revoked=revoked)
        return DeviceResolution(
            device=device,
            access_granted=False,
            needs_approval=True,
            revoked=revoked,
        )

    def _register(
        self,
        user_id: str,
        fingerprint: str,
        user_agent: str,
        ip_hash: str,
        role: Role,
    ) -> dict:
        """Create the device row for an unseen fingerprint and return the canonical row."""
        if role is Role.ADMIN:
            auto_approve = True
        else:
            auto_approve = not self.devices.has_unrevoked_device(user_id)

        self.devices.insert_if_absent(user_id, fingerprint, user_agent, ip_hash, is_active=auto_approve)
        # Re-read: a concurrent login may have inserted the same fingerprint first
        device = self.devices.collapse_to_oldest(
            self.devices.list_for_fingerprint(user_id, fingerprint)
        )
        if device is None:
            raise RuntimeError("Failed to register device")

        if auto_approve and role is Role.CLIENT and device.get("is_active"):
            device = self._settle_first_device_race(user_id, device)

        logger.info(
            f"Registered device {device['id']} for {role.value} "
            f"(active={bool(device.get('is_active'))})"
        )
        return device

    def _settle_first_device_race(self, user_id: str, device: dict) -> dict:
        """Two different browsers both saw "no device yet": the older one keeps it."""
        active = self.devices.list_active(user_id)
        if active and active[0]["id"] != device["id"]:
            logger.warning(
                f"First-device race for user {user_id}: {device['id']} demoted, "
                f"{active[0]['id']} is older"
            )
            self.devices.deactivate(device["id"])
            device = {**device, "is_active": False}
        return device

    def check_status(self, user_id: str | None, fingerprint: str) -> DeviceStatus:
        """Read-only view of what a login from this fingerprint would get."""
        if not user_id:
            # No user yet: the first login will create it with an approved device
            return DeviceStatus(is_approved=True, needs_approval=False)

        rows = self.devices.list_for_fingerprint(user_id, fingerprint)
        if rows:
            is_active = bool(rows[0].get("is_active"))
            return DeviceStatus(is_approved=is_active, needs_approval=not is_active)

        # Only active devices count here, while login also holds back a new
        # fingerprint when a pending device exists, so a client with one
        # revoked and one pending device is told "approved" but lands pending.
        if self.devices.list_active(user_id):
            return DeviceStatus(is_approved=False, needs_approval=True)
        return DeviceStatus(is_approved=True, needs_approval=False)

    def list_devices(self, user_id: str | None = None) -> dict:
        """Pending (never approved, not revoked) and active devices for the dashboard."""
        rows = self.devices.list_all(user_id)
        return {
            "pending": [d for d in rows if not d.get("is_active") and d.get("revoked_at") is None],
            "active": [d for d in rows if d.get("is_active")],
        }

    def _get_or_404(self, device_id: str) -> dict:
        device = self.devices.get_by_id(device_id)
        if not device:
            raise NotFoundError("Không tìm thấy thiết bị")
        return device

    def approve(self, device_id: str) -> dict:
        device = self._get_or_404(device_id)
        updated = self.devices.activate(device_id) or {**device, "is_active": True, "revoked_at": None}
        logger.info(f"Device {device_id} approved")
        self.alerts.device_approved(device)
        return updated

    def deny(self, device_id: str) -> None:
        self._get_or_404(device_id)
        self.devices.delete(device_id)
        logger.info(f"Device {device_id} denied and removed")

    def revoke(self, device_id: str) -> dict:
        device = self._get_or_404(device_id)
        for repository in self.user_data:
            repository.delete_for_user(device["user_id"])
        updated = self.devices.revoke(device_id) or {**device, "is_active": False}
        logger.info(f"Device {device_id} revoked")
        self.alerts.device_revoked(device)
        return updated
