"""
Application errors.

AppError subclasses carry their HTTP status and the Vietnamese text shown to
the user; the handlers registered in app.main turn them into JSON bodies so
routes and services can simply raise.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

MSG_INVALID_TOKEN = "Token không hợp lệ"
MSG_EMPTY_TOKEN = "Token không được để trống"
MSG_NEW_DEVICE = (
    "Thiết bị mới cần được xác nhận. "
    "Vui lòng chờ người kia xác nhận thiết bị này rồi thử lại."
)
MSG_REVOKED_DEVICE = (
    "Thiết bị này đã bị thu hồi quyền truy cập. "
    "Vui lòng chờ xác nhận lại trước khi đăng nhập."
)
MSG_ADMIN_REVOKED_DEVICE = (
    "Thiết bị quản trị này đã bị thu hồi. "
    "Hãy xác nhận lại thiết bị từ một thiết bị quản trị khác."
)
MSG_DAILY_MEMORY_LIMIT = "Bạn đã gửi năng lượng hôm nay rồi. Hãy đợi đến ngày mai nhé!"
MSG_INTERNAL_ERROR = "Đã có lỗi xảy ra, vui lòng thử lại sau"


class ConfigurationError(RuntimeError):
    """Raised at startup when required environment variables are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing or invalid environment variables: {', '.join(missing)}")


class AppError(Exception):
    status_code = 500
    message = MSG_INTERNAL_ERROR

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"success": False, "error": self.message, **self.extra}


class BadRequestError(AppError):
    status_code = 400
    message = "Yêu cầu không hợp lệ"


class InvalidTokenError(AppError):
    status_code = 401
    message = MSG_INVALID_TOKEN


class DeviceApprovalRequired(AppError):
    """A known or new device is not (or no longer) approved."""

    status_code = 403

    def __init__(self, revoked: bool = False, role: str = "client"):
        self.revoked = revoked
        self.role = role
        if revoked:
            message = MSG_ADMIN_REVOKED_DEVICE if role == "admin" else MSG_REVOKED_DEVICE
        else:
            message = MSG_NEW_DEVICE
        super().__init__(message, needsApproval=True, revoked=revoked)


class NotFoundError(AppError):
    status_code = 404
    message = "Không tìm thấy"


class DailyLimitReached(AppError):
    status_code = 429
    message = MSG_DAILY_MEMORY_LIMIT

    def __init__(self, message: str | None = None):
        super().__init__(message, limitReached=True)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": MSG_INTERNAL_ERROR},
    )
