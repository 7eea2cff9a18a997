"""Custom exceptions for configuration management."""


class ConfigError(Exception):
    """Raised when configuration data cannot be processed."""


class MissingSettingError(ConfigError):
    """Raised when a required setting is unset for the active environment."""

    def __init__(self, key: str, environment: str) -> None:
        super().__init__(f"Setting {key} is not configured for environment '{environment}'.")
        self.key = key
        self.environment = environment
