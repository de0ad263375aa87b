import logging
from dataclasses import dataclass

from app.core.config import Settings
from app.core.errors import DeviceApprovalRequired
from app.core.security import role_for_token
from app.domain.schemas import Role
from app.repositories.user import UserRepository
from app.services.devices import DeviceRegistry, DeviceStatus

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user_id: str
    role: Role


class AuthGate:
    """Token login for the two fixed users.

    Stateless: every call re-validates the static token; the browser keeps
    {userId, role, fingerprint, token} itself and there is no session.
    """

    def __init__(self, settings: Settings, users: UserRepository, registry: DeviceRegistry):
        self.settings = settings
        self.users = users
        self.registry = registry

    def login(self, token: str, fingerprint: str, user_agent: str, ip_hash: str) -> LoginResult:
        role = role_for_token(token, self.settings)
        user = self.users.resolve_for_role(role)

        resolution = self.registry.resolve_device(
            user_id=user["id"],
            fingerprint=fingerprint,
            user_agent=user_agent,
            ip_hash=ip_hash,
            role=role,
        )
        if not resolution.access_granted:
            raise DeviceApprovalRequired(revoked=resolution.revoked, role=role.value)

        logger.info(f"Login ok for {role.value} on device {resolution.device['id']}")
        return LoginResult(user_id=user["id"], role=role)

    def check_status(self, token: str, fingerprint: str) -> DeviceStatus:
        role = role_for_token(token, self.settings)
        user = self.users.get_by_role(role)
        return self.registry.check_status(user["id"] if user else None, fingerprint)
