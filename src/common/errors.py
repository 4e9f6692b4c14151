"""Error types shared across packages."""


class ConfigurationError(ValueError):
    """A setting is unusable; the operation aborts and is not retried."""
