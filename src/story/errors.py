"""
Story generation exceptions.

Two families live here:
- Provider-level exceptions raised by text/image providers and factories.
- AppError subclasses surfaced to API callers. Each carries an HTTP status
  and a stable machine-readable error code.

The generation service catches provider-level exceptions and re-raises them
as AppError subclasses with context logged.
"""

import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger("story_generator")


# Error messages
INVALID_GENRE = "Invalid genre provided"
PROVIDER_NOT_CONFIGURED = "AI provider not properly configured"
PROVIDER_UNAVAILABLE = "AI provider is currently unavailable"
STORY_GENERATION_FAILED = "Failed to generate story"
IMAGE_GENERATION_FAILED = "Failed to generate image"
INVALID_JSON_RESPONSE = "Received invalid JSON response from AI provider"
INTERNAL_ERROR = "An internal error occurred"


class ProviderConfigError(ValueError):
    """Raised at provider construction when a required credential is missing."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(message)


class UnsupportedProviderError(ValueError):
    """Raised by a factory for an unrecognized provider name."""

    def __init__(self, kind: str, provider: str):
        self.kind = kind
        self.provider = provider
        super().__init__(f"Unsupported {kind} provider: {provider}")


class ProviderRequestError(RuntimeError):
    """Raised when a provider call fails or returns an unusable payload."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(message)


class AppError(Exception):
    """Base exception for errors rendered to API callers."""

    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

    def headers(self) -> Dict[str, str]:
        return {}


class ValidationError(AppError):
    """Bad input shape or bounds."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        if self.details:
            data["details"] = self.details
        return data


class RequestTooLargeError(AppError):
    status_code = 413
    error_code = "REQUEST_TOO_LARGE"

    def __init__(self, message: str = "Request too large"):
        super().__init__(message)


class ProviderError(AppError):
    """A provider failed in a way not covered by a more specific error."""

    status_code = 502
    error_code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.provider:
            data["provider"] = self.provider
        return data


class ProviderNotConfiguredError(ProviderError):
    status_code = 503
    error_code = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, provider: str):
        super().__init__(PROVIDER_NOT_CONFIGURED, provider)


class ProviderUnavailableError(ProviderError):
    status_code = 503
    error_code = "PROVIDER_UNAVAILABLE"

    def __init__(self, provider: str):
        super().__init__(PROVIDER_UNAVAILABLE, provider)


class GenerationError(AppError):
    status_code = 422
    error_code = "GENERATION_ERROR"


class StoryGenerationError(GenerationError):
    error_code = "STORY_GENERATION_ERROR"

    def __init__(self, message: str = STORY_GENERATION_FAILED):
        super().__init__(message)


class ImageGenerationError(GenerationError):
    error_code = "IMAGE_GENERATION_ERROR"

    def __init__(self, message: str = IMAGE_GENERATION_FAILED):
        super().__init__(message)


class InvalidResponseError(GenerationError):
    """Provider output unusable even after the parsing fallbacks."""

    error_code = "INVALID_RESPONSE"

    def __init__(self, message: str = INVALID_JSON_RESPONSE):
        super().__init__(message)


class RateLimitExceededError(AppError):
    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, reset_time: Optional[float] = None):
        super().__init__("Rate limit exceeded. Please try again later.")
        # epoch seconds
        self.reset_time = reset_time

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.reset_time is not None:
            data["resetTime"] = datetime.fromtimestamp(
                self.reset_time, tz=timezone.utc
            ).isoformat()
        return data

    def retry_after(self, now: Optional[float] = None) -> Optional[int]:
        if self.reset_time is None:
            return None
        now = time.time() if now is None else now
        return max(0, math.ceil(self.reset_time - now))

    def headers(self) -> Dict[str, str]:
        retry_after = self.retry_after()
        if retry_after is None:
            return {}
        return {"Retry-After": str(retry_after)}


class InternalServerError(AppError):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = INTERNAL_ERROR):
        super().__init__(message)


def log_error(error: BaseException, **context: Any) -> None:
    """
    Log an error with structured context.

    Context should name the provider, genre and sizes involved. Never pass
    credentials.
    """
    if isinstance(error, AppError):
        error_data = error.to_dict()
    else:
        error_data = {"name": type(error).__name__, "message": str(error)}

    log_data = {"error": error_data}
    if context:
        log_data["context"] = context

    logger.error(f"[StoryError] {json.dumps(log_data, ensure_ascii=False, default=str)}")


def log_warning(message: str, **context: Any) -> None:
    """Log a recoverable condition with structured context."""
    if context:
        logger.warning(f"[StoryWarning] {message} {json.dumps(context, ensure_ascii=False, default=str)}")
    else:
        logger.warning(f"[StoryWarning] {message}")
