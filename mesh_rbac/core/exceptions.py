"""Custom exception classes for mesh-rbac."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    Follows RFC 7807 Problem Details so enforcement helpers can turn any
    error into a problem-details body without extra mapping.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
            raise AppException(
            status_code=422,
            detail="ServiceRole default/viewer has no rules",
            type="rbac-configuration-error",
            extra={"object": "ServiceRole default/viewer"}
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code.

        Args:
            status_code: HTTP status code.

        Returns:
            Human-readable title for the status code.
        """
        titles = {
            400: "Bad Request",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
        }
        return titles.get(status_code, "Error")

    def to_problem_details(self) -> dict[str, Any]:
        """Render the exception as an RFC 7807 problem-details mapping."""
        return {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
            "instance": self.instance,
            **self.extra,
        }


class NotFoundException(AppException):
    """Exception raised when a referenced object is not found.

    Example:
            raise NotFoundException(
            detail="Policy path conf/policies does not exist",
            type="policy-path-not-found",
            extra={"path": "conf/policies"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ForbiddenException(AppException):
    """Exception raised for authorization failures.

    Example:
            raise ForbiddenException(
            detail="RBAC: access denied",
            type="forbidden",
            extra={"service": "products.svc.cluster.local"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "forbidden",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=403,
            detail=detail,
            type=type,
            title="Forbidden",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """Exception raised for resource conflicts."""

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


# ============================================================================
# RBAC configuration errors
# ============================================================================


class ConfigurationError(ValidationException):
    """Malformed RBAC configuration object.

    Raised at admission or load time, never during a decision. ``errors``
    holds every problem found so operators can fix a manifest in one pass.

    Example:
        raise ConfigurationError(
            "ServiceRole default/viewer: rules[0].services must not be empty",
            object_ref="ServiceRole default/viewer",
            errors=["rules[0].services must not be empty"],
        )
    """

    def __init__(
        self,
        detail: str,
        object_ref: str | None = None,
        errors: list[str] | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        merged: dict[str, Any] = {
            "object": object_ref,
            "errors": list(errors or [detail]),
        }
        merged.update(extra or {})
        self.object_ref = object_ref
        self.errors = merged["errors"]
        super().__init__(
            detail=detail,
            type="rbac-configuration-error",
            instance=instance,
            extra=merged,
        )


class RbacConfigConflictError(ConflictException):
    """A second RbacConfig was submitted while one already exists."""

    def __init__(
        self,
        existing: str,
        rejected: str,
        instance: str | None = None,
    ) -> None:
        self.existing = existing
        self.rejected = rejected
        super().__init__(
            detail=(
                f"RbacConfig {rejected} rejected: RbacConfig {existing} already exists; "
                "update or delete the existing object instead"
            ),
            type="rbac-config-conflict",
            instance=instance,
            extra={"existing": existing, "rejected": rejected},
        )


class AccessDeniedError(ForbiddenException):
    """Raised by enforcement helpers when a decision is DENY.

    The audit record of the decision travels in ``extra["audit"]``.
    """

    def __init__(
        self,
        audit: dict[str, Any],
        detail: str = "RBAC: access denied",
        instance: str | None = None,
    ) -> None:
        self.audit = audit
        super().__init__(
            detail=detail,
            type="rbac-access-denied",
            instance=instance,
            extra={"audit": audit},
        )
