"""
Keg errors.
"""


class KegError(Exception):
    """Base exception for all keg errors."""
    pass


class FormulaError(KegError):
    """Errors in a formula file or descriptor."""
    pass


class FormulaNotFoundError(FormulaError):
    """No formula could be found for a reference."""
    pass


class UnsupportedPlatformError(KegError):
    """The formula has no artifact for the requested platform."""
    pass


class DownloadError(KegError):
    """Errors while fetching an artifact."""
    pass


class ChecksumMismatchError(KegError):
    """Downloaded content does not match the formula checksum."""

    def __init__(self, expected: str, actual: str, path: str | None = None):
        self.expected = expected
        self.actual = actual
        self.path = path
        location = f" for {path}" if path else ""
        super().__init__(
            f"Checksum mismatch{location}: expected {expected}, got {actual}"
        )


class InstallError(KegError):
    """Errors while placing an artifact into the prefix."""
    pass


class NotInstalledError(InstallError):
    """The requested formula is not installed."""
    pass


class ReleaseCheckError(KegError):
    """The latest upstream release could not be determined."""
    pass
