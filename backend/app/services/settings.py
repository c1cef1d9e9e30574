"""Templates, branding and other settings stored in local state."""

from __future__ import annotations

import logging
import time
from pathlib import PurePath
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import schemas
from .local_store import (
    APP_ICON_KEY,
    BUSINESS_PROFILE_KEY,
    INVOICES_KEY,
    LOGIN_BACKGROUND_KEY,
    TEMPLATES_KEY,
    LocalStore,
)
from .products import ProductService
from .remote_backend import RemoteBackend, RemoteBackendError

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPLATE = schemas.Template(
    id="template_default",
    name="Standard",
    is_default=True,
    accent_color="#2563eb",
    default_notes="Thank you for your business!",
    layout=schemas.TemplateLayout.MODERN,
)

DEFAULT_BUSINESS_PROFILE = schemas.BusinessProfile(
    name="God Favor Business Center",
    email="contact@gfbc.com",
    address="123 Business Rd.\nCity, Country 12345",
    logo_url="",
)

DEFAULT_APP_ICON = "/icon.svg"
DEFAULT_LOGIN_BACKGROUND = "/default-background.jpg"
LOGIN_BACKGROUND_BASENAME = "login-background"


class SettingsServiceError(RuntimeError):
    """Raised when settings cannot be saved."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _normalize_default_template(templates: List[schemas.Template]) -> List[schemas.Template]:
    """Keep exactly one template flagged as default, the first flagged one wins."""

    default_index = next(
        (index for index, template in enumerate(templates) if template.is_default), 0
    )
    return [
        template.model_copy(update={"is_default": index == default_index})
        for index, template in enumerate(templates)
    ]


def _background_content_type(extension: str) -> Optional[str]:
    return {
        "jpg": "image/jpeg",
        "jpeg": "image/jpeg",
        "png": "image/png",
        "gif": "image/gif",
        "webp": "image/webp",
        "svg": "image/svg+xml",
    }.get(extension.lower())


class SettingsService:
    """Read, save and reset the customisable settings."""

    @staticmethod
    def list_templates(db: Session) -> List[schemas.Template]:
        raw, _ = LocalStore(db).load(TEMPLATES_KEY, [DEFAULT_TEMPLATE.model_dump(mode="json")])
        return [schemas.Template.model_validate(item) for item in raw]

    @staticmethod
    def get_business_profile(db: Session) -> schemas.BusinessProfile:
        raw, _ = LocalStore(db).load(
            BUSINESS_PROFILE_KEY, DEFAULT_BUSINESS_PROFILE.model_dump(mode="json")
        )
        return schemas.BusinessProfile.model_validate(raw)

    @staticmethod
    def get_settings(db: Session) -> schemas.SettingsRead:
        store = LocalStore(db)
        app_icon, _ = store.load(APP_ICON_KEY, DEFAULT_APP_ICON)
        login_background, _ = store.load(LOGIN_BACKGROUND_KEY, DEFAULT_LOGIN_BACKGROUND)
        return schemas.SettingsRead(
            templates=SettingsService.list_templates(db),
            business_profile=SettingsService.get_business_profile(db),
            app_icon=app_icon,
            login_background=login_background,
        )

    @staticmethod
    def get_branding(db: Session) -> schemas.BrandingRead:
        current = SettingsService.get_settings(db)
        return schemas.BrandingRead(
            business_name=current.business_profile.name,
            logo_url=current.business_profile.logo_url or None,
            app_icon=current.app_icon,
            login_background=current.login_background,
        )

    @staticmethod
    def save_settings(db: Session, data: schemas.SettingsUpdate) -> schemas.SettingsRead:
        store = LocalStore(db)
        templates = _normalize_default_template(list(data.templates))
        store.save(TEMPLATES_KEY, [template.model_dump(mode="json") for template in templates])
        store.save(APP_ICON_KEY, data.app_icon)
        store.save(BUSINESS_PROFILE_KEY, data.business_profile.model_dump(mode="json"))
        return SettingsService.get_settings(db)

    @staticmethod
    async def upload_login_background(
        db: Session,
        backend: RemoteBackend,
        *,
        filename: str,
        content: bytes,
    ) -> str:
        """Upload a new login background and store its cache-busted public URL."""

        if not content:
            raise SettingsServiceError("Background upload failed: the file is empty", status_code=400)
        extension = PurePath(filename).suffix.lstrip(".") or filename
        object_name = f"{LOGIN_BACKGROUND_BASENAME}.{extension}"
        try:
            public_url = await backend.upload_asset(
                object_name,
                content,
                overwrite=True,
                content_type=_background_content_type(extension),
            )
        except RemoteBackendError as exc:
            LOGGER.warning("Login background upload failed: %s", exc)
            raise SettingsServiceError(f"Background upload failed: {exc.message}") from exc

        url = f"{public_url}?t={int(time.time() * 1000)}"
        LocalStore(db).save(LOGIN_BACKGROUND_KEY, url)
        return url

    @staticmethod
    def reset_local_data(db: Session) -> None:
        """Restore every locally stored value to its default."""

        store = LocalStore(db)
        store.save(INVOICES_KEY, [])
        ProductService.reset(db)
        store.save(TEMPLATES_KEY, [DEFAULT_TEMPLATE.model_dump(mode="json")])
        store.save(BUSINESS_PROFILE_KEY, DEFAULT_BUSINESS_PROFILE.model_dump(mode="json"))
        store.save(APP_ICON_KEY, DEFAULT_APP_ICON)
        store.save(LOGIN_BACKGROUND_KEY, DEFAULT_LOGIN_BACKGROUND)
        LOGGER.info("Local application data reset to defaults")
