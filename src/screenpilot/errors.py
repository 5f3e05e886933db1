"""Application-level exception types for screenpilot."""

from __future__ import annotations

SERVICE_UNAVAILABLE = 503


class ScreenPilotError(Exception):
    """Base exception for screenpilot."""


class ConfigurationError(ScreenPilotError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class EntrypointError(ConfigurationError):
    """Raised when a `module:attr` entrypoint cannot be loaded or is unusable."""


class DeviceFailure(ScreenPilotError):
    """Base exception for device backend failures."""


class CaptureFailure(DeviceFailure):
    """Raised when screenshot acquisition keeps failing after all retries."""


class ExecutionFailure(DeviceFailure):
    """Raised when the device fails to execute a parsed action."""


class InferenceFailure(ScreenPilotError):
    """Raised when the vision-language model call fails."""


class ReasoningFailure(ScreenPilotError):
    """Raised when the reasoning oracle call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def overloaded(self) -> bool:
        return self.status_code == SERVICE_UNAVAILABLE


class RetrievalFailure(ScreenPilotError):
    """Raised when a knowledge lookup fails."""


class EmptyGoalFailure(ScreenPilotError):
    """Raised when no goal is supplied."""
