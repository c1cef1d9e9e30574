"""Router exposing templates, branding and the login background."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_current_identity, get_remote_backend
from ..services import RemoteBackend, SettingsService, SettingsServiceError

router = APIRouter()


@router.get("/branding", response_model=schemas.BrandingRead)
def read_branding(db: Session = Depends(get_db)) -> schemas.BrandingRead:
    """Public branding used by the login screen."""

    return SettingsService.get_branding(db)


@router.get(
    "",
    response_model=schemas.SettingsRead,
    dependencies=[Depends(get_current_identity)],
)
def read_settings(db: Session = Depends(get_db)) -> schemas.SettingsRead:
    return SettingsService.get_settings(db)


@router.put(
    "",
    response_model=schemas.SettingsRead,
    dependencies=[Depends(get_current_identity)],
)
def save_settings(
    settings_in: schemas.SettingsUpdate, db: Session = Depends(get_db)
) -> schemas.SettingsRead:
    return SettingsService.save_settings(db, settings_in)


@router.post(
    "/login-background",
    response_model=schemas.SettingsRead,
    dependencies=[Depends(get_current_identity)],
)
async def upload_login_background(
    request: Request,
    filename: str = Query(..., min_length=1, description="Original file name, used for its extension"),
    db: Session = Depends(get_db),
    backend: RemoteBackend = Depends(get_remote_backend),
) -> schemas.SettingsRead:
    """Store the request body as the new login background image."""

    content = await request.body()
    try:
        await SettingsService.upload_login_background(
            db, backend, filename=filename, content=content
        )
    except SettingsServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return SettingsService.get_settings(db)
