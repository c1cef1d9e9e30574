"""Service layer encapsulating business logic for API routers."""

from .database_setup import provisioning_script, setup_instructions
from .invoices import InvoiceService, next_invoice_number
from .local_store import LocalStore, PersistedSessionStore
from .products import ProductService
from .remote_backend import (
    AuthenticationError,
    AuthSession,
    AuthUser,
    EmailNotConfirmedError,
    ProfileNotFoundError,
    RemoteBackend,
    RemoteBackendError,
    RemoteConfigurationError,
    SchemaNotProvisionedError,
    SignUpResult,
    SupabaseBackend,
    build_remote_backend_from_env,
)
from .reports import CustomerCounts, HistoricalReports, ReportRow, ReportService
from .session_bootstrap import (
    PROFILE_UNAVAILABLE_MESSAGE,
    SessionBootstrapController,
    SessionState,
    resolve_identity,
)
from .settings import SettingsService, SettingsServiceError
from .users import UserDirectory, UserDirectoryError

__all__ = [
    "provisioning_script",
    "setup_instructions",
    "InvoiceService",
    "next_invoice_number",
    "LocalStore",
    "PersistedSessionStore",
    "ProductService",
    "AuthenticationError",
    "AuthSession",
    "AuthUser",
    "EmailNotConfirmedError",
    "ProfileNotFoundError",
    "RemoteBackend",
    "RemoteBackendError",
    "RemoteConfigurationError",
    "SchemaNotProvisionedError",
    "SignUpResult",
    "SupabaseBackend",
    "build_remote_backend_from_env",
    "CustomerCounts",
    "HistoricalReports",
    "ReportRow",
    "ReportService",
    "PROFILE_UNAVAILABLE_MESSAGE",
    "SessionBootstrapController",
    "SessionState",
    "resolve_identity",
    "SettingsService",
    "SettingsServiceError",
    "UserDirectory",
    "UserDirectoryError",
]
