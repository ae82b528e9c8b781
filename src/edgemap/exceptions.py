"""Custom exceptions for edgemap with context support."""

import uuid
from typing import Any


def generate_correlation_id() -> str:
    """
    Generate an 8-character UUID-based correlation ID.

    Returns:
        8-character correlation ID string.
    """
    return str(uuid.uuid4())[:8]


class EdgemapError(Exception):
    """Base exception for edgemap with context and correlation ID support."""

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise exception with message, correlation ID, and context.

        Args:
            message: Error message.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        self.message = message
        self.correlation_id = correlation_id or generate_correlation_id()
        self.context = context or {}
        super().__init__(f"{message} [correlation_id={self.correlation_id}]")


class ConfigurationError(EdgemapError):
    """Raised when configuration loading or validation fails."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise configuration error with path context.

        Args:
            message: Error message.
            config_path: Optional path to the configuration file.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if config_path is not None:
            context["config_path"] = str(config_path)
        super().__init__(message, correlation_id=correlation_id, context=context)


class TemplateError(ConfigurationError):
    """Raised when a worker script template is missing or has no placeholder."""

    def __init__(
        self,
        message: str,
        template: str | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if context is None:
            context = {}
        if template is not None:
            context["template"] = template
        super().__init__(message, correlation_id=correlation_id, context=context)


class ProviderError(EdgemapError):
    """Raised when a listing or detail endpoint returns an unusable response."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise provider error with provider and status context.

        Args:
            message: Error message.
            provider: Optional provider type tag (e.g., "cms", "catalog").
            status_code: Optional HTTP status code of the failed response.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if provider is not None:
            context["provider"] = provider
        if status_code is not None:
            context["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, correlation_id=correlation_id, context=context)


class FetchError(EdgemapError):
    """Raised when the transport gives up on a request after its own retries."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        attempts: int | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if context is None:
            context = {}
        if url is not None:
            context["url"] = url
        if attempts is not None:
            context["attempts"] = attempts
        super().__init__(message, correlation_id=correlation_id, context=context)


class RetryExhaustedError(EdgemapError):
    """Raised when a domain-level operation fails on every allowed attempt."""

    def __init__(
        self,
        operation: str,
        errors: list[BaseException],
        correlation_id: str | None = None,
    ) -> None:
        """
        Initialise with the operation name and every failure observed.

        Args:
            operation: Human-readable name of the retried operation.
            errors: Failures in attempt order; the last one is the cause.
            correlation_id: Optional correlation ID. If None, generates a new one.
        """
        self.operation = operation
        self.errors = list(errors)
        last = errors[-1] if errors else None
        super().__init__(
            f"{operation} failed after {len(errors)} attempts: {last}",
            correlation_id=correlation_id,
            context={"operation": operation, "attempts": len(errors)},
        )


class UploadError(EdgemapError):
    """Raised when the script upload API rejects a script."""

    def __init__(
        self,
        message: str,
        script: str | None = None,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise upload error with script name and API error details.

        Args:
            message: Error message.
            script: Optional name of the script that failed to upload.
            status_code: Optional HTTP status code returned by the API.
            errors: Structured error objects returned by the API.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if script is not None:
            context["script"] = script
        if status_code is not None:
            context["status_code"] = status_code
        self.errors = errors or []
        super().__init__(message, correlation_id=correlation_id, context=context)
