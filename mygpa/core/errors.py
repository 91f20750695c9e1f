from typing import Optional


class AuthProviderError(Exception):
    """Failure reported by an auth provider, tagged with an ``auth/...`` code."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class StorageError(Exception):
    """Object storage operation failed."""


DEFAULT_MESSAGES = {
    "login": "Login failed. Please try again.",
    "signup": "Signup failed. Please try again.",
    "reset": "Failed to send password reset email.",
    "reset_confirm": "Failed to reset password.",
}

AUTH_ERROR_MESSAGES = {
    "login": {
        "auth/user-not-found": "No account found with this email.",
        "auth/wrong-password": "Incorrect password.",
        "auth/invalid-credential": "Invalid email or password.",
        "auth/invalid-email": "Invalid email address.",
        "auth/user-disabled": "This account has been disabled.",
        "auth/too-many-requests": "Too many failed attempts. Please try again later.",
    },
    "signup": {
        "auth/email-already-in-use": "An account with this email already exists.",
        "auth/invalid-email": "Invalid email address.",
        "auth/operation-not-allowed": "Email/password accounts are not enabled.",
        "auth/weak-password": "Password is too weak. Please choose a stronger password.",
    },
    "reset": {
        "auth/user-not-found": "No account found with this email address.",
        "auth/invalid-email": "Invalid email address.",
    },
    "reset_confirm": {
        "auth/expired-action-code": "The password reset link has expired.",
        "auth/invalid-action-code": "The password reset link is invalid or has already been used.",
        "auth/user-disabled": "This account has been disabled.",
        "auth/weak-password": "Password is too weak. Please choose a stronger password.",
    },
}

AUTH_ERROR_STATUS = {
    "auth/user-not-found": 401,
    "auth/wrong-password": 401,
    "auth/invalid-credential": 401,
    "auth/invalid-id-token": 401,
    "auth/user-disabled": 403,
    "auth/too-many-requests": 429,
    "auth/email-already-in-use": 409,
}


def describe_auth_error(action: str, error: Exception) -> str:
    """Turn a provider error into the message shown to the user for ``action``."""
    if isinstance(error, AuthProviderError):
        known = AUTH_ERROR_MESSAGES.get(action, {}).get(error.code)
        if known:
            return known
        # Unknown codes pass the provider's own message through
        if error.message and error.message != error.code:
            return error.message
    return DEFAULT_MESSAGES.get(action, "Request failed.")


def auth_error_status(action: str, error: Exception) -> int:
    if not isinstance(error, AuthProviderError):
        return 500
    if action == "reset" and error.code == "auth/user-not-found":
        return 404
    return AUTH_ERROR_STATUS.get(error.code, 400)
