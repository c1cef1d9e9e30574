"""Expose Pydantic schemas for convenient imports."""

from .auth import (
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RoleUpdateRequest,
    SessionStatus,
    SessionStatusResponse,
    SetupScriptResponse,
    UserCreateRequest,
    UserCreateResponse,
    UserListResponse,
    UserProfile,
    UserRole,
    UserUpdateRequest,
)
from .common import PaginatedResponse
from .invoice import (
    Customer,
    Invoice,
    InvoiceDetailResponse,
    InvoiceInput,
    InvoiceListResponse,
    InvoiceRead,
    LineItem,
    Product,
    ProductCreate,
    ProductListResponse,
)
from .reports import CustomerCountsResponse, HistoricalReportsResponse, ReportRowRead
from .settings import (
    BrandingRead,
    BusinessProfile,
    SettingsRead,
    SettingsUpdate,
    Template,
    TemplateLayout,
)

__all__ = [
    "EmailRequest",
    "LoginRequest",
    "MessageResponse",
    "RoleUpdateRequest",
    "SessionStatus",
    "SessionStatusResponse",
    "SetupScriptResponse",
    "UserCreateRequest",
    "UserCreateResponse",
    "UserListResponse",
    "UserProfile",
    "UserRole",
    "UserUpdateRequest",
    "PaginatedResponse",
    "Customer",
    "Invoice",
    "InvoiceDetailResponse",
    "InvoiceInput",
    "InvoiceListResponse",
    "InvoiceRead",
    "LineItem",
    "Product",
    "ProductCreate",
    "ProductListResponse",
    "CustomerCountsResponse",
    "HistoricalReportsResponse",
    "ReportRowRead",
    "BrandingRead",
    "BusinessProfile",
    "SettingsRead",
    "SettingsUpdate",
    "Template",
    "TemplateLayout",
]
