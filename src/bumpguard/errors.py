"""Custom exceptions for bumpguard with user-friendly error messages."""


class BumpguardError(Exception):
    """Base exception with user-friendly message and optional hint.

    Attributes:
        message: The main error message.
        hint: Optional hint for resolving the error.
    """

    def __init__(self, message: str, hint: str = "") -> None:
        """Initialize the exception.

        Args:
            message: The main error message.
            hint: Optional hint for resolving the error.
        """
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class InvalidPackageIdentifierError(BumpguardError):
    """Package name does not satisfy the naming rules of its ecosystem.

    This is a caller contract violation and the only error that escapes
    the engine's entry points.
    """

    def __init__(
        self,
        name: str,
        ecosystem: str = "npm",
        message: str = "",
        hint: str = "",
    ) -> None:
        self.name = name
        self.ecosystem = ecosystem
        if not message:
            message = f"Invalid {ecosystem} package identifier: {name!r}"
        if not hint:
            if ecosystem == "npm":
                hint = "npm names are lowercase, at most 214 characters, optionally scoped as @scope/name."
            else:
                hint = "PyPI names contain letters, digits, '.', '_' and '-' and start and end alphanumeric."
        super().__init__(message, hint)


class EvidenceUnavailableError(BumpguardError):
    """An evidence source could not produce information for a package."""

    def __init__(
        self,
        source: str,
        package: str = "",
        original_error: Exception | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        self.source = source
        self.package = package
        self.original_error = original_error
        if not message:
            message = f"{source} evidence unavailable"
            if package:
                message += f" for {package}"
            if original_error:
                message += f": {original_error}"
        super().__init__(message, hint)


class NetworkError(EvidenceUnavailableError):
    """Network connectivity issue."""

    def __init__(
        self,
        service: str,
        original_error: Exception | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        if not message:
            message = f"Failed to reach {service}"
            if original_error:
                message += f": {original_error}"
        if not hint:
            hint = "Check your internet connection and firewall settings."
        super().__init__(service, original_error=original_error, message=message, hint=hint)


class RateLimitError(EvidenceUnavailableError):
    """API rate limit exceeded."""

    def __init__(
        self,
        service: str,
        retry_after: int | None = None,
        message: str = "",
        hint: str = "",
    ) -> None:
        self.retry_after = retry_after
        if not message:
            if retry_after:
                message = f"{service} rate limit exceeded. Retry after {retry_after} seconds."
            else:
                message = f"{service} rate limit exceeded."
        if not hint and service == "GitHub":
            hint = "Authenticate with GITHUB_TOKEN to increase limit from 60 to 5000 requests/hour."
        super().__init__(service, message=message, hint=hint)


class MalformedVersionError(BumpguardError):
    """Version string could not be parsed."""

    def __init__(self, version: str, message: str = "", hint: str = "") -> None:
        self.version = version
        if not message:
            message = f"Malformed version string: {version!r}"
        super().__init__(message, hint)


class UnscannableFileError(BumpguardError):
    """Source file could not be read or parsed."""

    def __init__(self, path: str, reason: str = "", message: str = "", hint: str = "") -> None:
        self.path = path
        self.reason = reason
        if not message:
            message = f"Cannot scan {path}"
            if reason:
                message += f": {reason}"
        super().__init__(message, hint)


class ConfigurationError(BumpguardError):
    """Invalid configuration."""

    pass
