"""Schemas for branding, templates and other customisable settings."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class TemplateLayout(str, Enum):
    MODERN = "modern"
    CLASSIC = "classic"


class Template(BaseModel):
    id: str
    name: str = Field(..., min_length=1, max_length=120)
    is_default: bool = False
    accent_color: str = Field(default="#2563eb", pattern=r"^#[0-9a-fA-F]{3,8}$")
    default_notes: str = ""
    layout: TemplateLayout = TemplateLayout.MODERN


class BusinessProfile(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    address: str = ""
    logo_url: Optional[str] = None


class SettingsRead(BaseModel):
    templates: List[Template]
    business_profile: BusinessProfile
    app_icon: str
    login_background: str


class SettingsUpdate(BaseModel):
    """Settings saved together from the settings dialog."""

    templates: List[Template] = Field(..., min_length=1)
    business_profile: BusinessProfile
    app_icon: str = Field(..., min_length=1)

    @field_validator("templates")
    @classmethod
    def _unique_template_ids(cls, value: List[Template]) -> List[Template]:
        ids = [template.id for template in value]
        if len(ids) != len(set(ids)):
            raise ValueError("Template identifiers must be unique.")
        return value


class BrandingRead(BaseModel):
    """Public branding shown before a user signs in."""

    business_name: str
    logo_url: Optional[str] = None
    app_icon: str
    login_background: str
