from fastapi import APIRouter, Depends, Query

from app.api.deps import get_db
from app.domain.schemas import (
    NotificationPreferences,
    NotificationPreferencesIn,
    NotificationPreferencesResponse,
    UserPreferences,
    UserPreferencesIn,
    UserPreferencesResponse,
)
from app.repositories.preferences import NotificationPreferenceRepository, UserPreferenceRepository

router = APIRouter()


@router.get("/preferences", response_model=UserPreferencesResponse)
def get_preferences(user_id: str = Query(..., alias="userId"), db=Depends(get_db)):
    prefs = UserPreferenceRepository(db).get(user_id) or {}
    return UserPreferencesResponse(preferences=UserPreferences(**prefs))


@router.post("/preferences", response_model=UserPreferencesResponse)
def save_preferences(data: UserPreferencesIn, db=Depends(get_db)):
    saved = UserPreferenceRepository(db).upsert(data.user_id, data.city, data.horoscope) or {}
    return UserPreferencesResponse(
        preferences=UserPreferences(city=saved.get("city"), horoscope=saved.get("horoscope")),
    )


@router.get(
    "/notification-preferences",
    response_model=NotificationPreferencesResponse,
)
def get_notification_preferences(user_id: str = Query(..., alias="userId"), db=Depends(get_db)):
    """Stored switches, or the all-enabled defaults when the user never saved any."""
    prefs = NotificationPreferenceRepository(db).get(user_id)
    if not prefs:
        return NotificationPreferencesResponse(preferences=NotificationPreferences())
    return NotificationPreferencesResponse(
        preferences=NotificationPreferences.model_validate(prefs),
    )


@router.post(
    "/notification-preferences",
    response_model=NotificationPreferencesResponse,
)
def save_notification_preferences(data: NotificationPreferencesIn, db=Depends(get_db)):
    prefs = data.model_dump(exclude={"user_id"})
    NotificationPreferenceRepository(db).upsert(data.user_id, **prefs)
    return NotificationPreferencesResponse(preferences=NotificationPreferences(**prefs))
