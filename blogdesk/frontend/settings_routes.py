"""Public, cacheable site settings."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import get_settings_service
from ..core.errors import SettingsUnavailable
from ..core.logging import settings_logger
from ..core.settings import SettingsService
from ..core.storage import StorageError

router = APIRouter(prefix="/api/settings", tags=["settings"])

PUBLIC_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"


@router.get("")
async def get_public_settings(
    category: str | None = None,
    settings: SettingsService = Depends(get_settings_service),
):
    """Site settings safe for anonymous readers.

    Sensitive keys are removed whoever is asking.
    """
    try:
        values = settings.public_settings(category)
    except StorageError as e:
        settings_logger.error("Get public settings failed: %s", e)
        raise SettingsUnavailable(f"Get public settings failed: {e}") from e

    return JSONResponse(content=values, headers={"Cache-Control": PUBLIC_CACHE_CONTROL})
