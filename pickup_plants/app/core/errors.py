from typing import Dict, Optional


class ConfigurationError(RuntimeError):
    """Raised when the service cannot start with the current environment."""


class AuthProviderError(Exception):
    """Failure reported by (or while talking to) the managed auth provider.

    ``message`` is human readable and safe to show to the user.
    """

    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class RecipeFormError(Exception):
    """Per-field validation failures for a recipe submission."""

    def __init__(self, errors: Dict[str, str], status_code: int = 422):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors
        self.status_code = status_code


class LoginRequired(Exception):
    def __init__(self, next_path: str):
        super().__init__(next_path)
        self.next_path = next_path


class SessionPending(Exception):
    """The browser session is still being restored from the provider."""
