"""
biliaudio.exceptions - Custom exception classes.

All biliaudio-specific exceptions inherit from BiliAudioError.
"""


class BiliAudioError(Exception):
    """Base exception for all biliaudio errors."""

    pass


class ConfigError(BiliAudioError):
    """Configuration loading or validation error."""

    pass


class RemoteError(BiliAudioError):
    """Network failure, non-success status or malformed payload from the API."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message)


class NotFoundError(BiliAudioError):
    """Expected data absent from an otherwise successful response."""

    pass


class StreamError(BiliAudioError):
    """Media transfer interrupted."""

    pass


class TranscodeError(BiliAudioError):
    """Encoder failed to start or exited with a non-zero status."""

    def __init__(self, message: str, returncode: int | None = None, diagnostics: str = ""):
        self.returncode = returncode
        self.diagnostics = diagnostics
        if diagnostics:
            message = f"{message}: {diagnostics.strip()}"
        super().__init__(message)


class ValidationError(BiliAudioError):
    """Input validation error."""

    pass


class DependencyError(BiliAudioError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
