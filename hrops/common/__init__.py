"""Common module: shared utilities for HR Ops."""

from hrops.common.audit import AuditTrail, create_audit_entry, get_audit_history
from hrops.common.exceptions import (
    AppException,
    ConfigurationError,
    ConflictError,
    ForbiddenException,
    LeaveValidationError,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from hrops.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    apply_sort,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "get_audit_history",
    # Exceptions
    "AppException",
    "ConfigurationError",
    "ConflictError",
    "ForbiddenException",
    "LeaveValidationError",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "apply_sort",
    "paginate",
]
