from fastapi import APIRouter

from .routes import (
    ai,
    auth,
    cron,
    devices,
    health,
    interactions,
    preferences,
    push,
    schedules,
    telegram,
)

api_router = APIRouter()

# Health check
api_router.include_router(health.router, tags=["health"])

# Login and device approval
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(devices.router, prefix="/devices", tags=["devices"])

# Notifications
api_router.include_router(push.router, prefix="/push", tags=["push"])
api_router.include_router(telegram.router, prefix="/telegram", tags=["telegram"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])

# Cron triggers (secret-gated, full paths declared on the router)
api_router.include_router(cron.router, tags=["cron"])

# Daily message and quick replies
api_router.include_router(ai.router, prefix="/ai", tags=["ai"])
api_router.include_router(preferences.router, prefix="/user", tags=["preferences"])

# Reactions, messages and memories
api_router.include_router(interactions.router, tags=["interactions"])
