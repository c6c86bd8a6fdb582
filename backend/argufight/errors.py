"""Domain exceptions for the admin back-office."""


class ArguFightError(Exception):
    """Base class for errors surfaced to operators as plain messages."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SettingValidationError(ArguFightError):
    """A setting value does not satisfy its registry definition."""

    status_code = 400

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class UnknownSettingError(ArguFightError):
    """A key is not registered and strict key checking is enabled."""

    status_code = 400

    def __init__(self, key: str):
        super().__init__(f"Unknown setting key: {key}")
        self.key = key


class SettingConflictError(ArguFightError):
    """A write was based on a stale version of the settings."""

    status_code = 409


class NotFoundError(ArguFightError):
    """Target record does not exist."""

    status_code = 404
