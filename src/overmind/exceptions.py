"""Exceptions raised by overmind."""


class OvermindError(Exception):
    """Base class for overmind errors."""


class ConfigError(OvermindError):
    """Raised when a configuration file or value is invalid."""


class LurkerNotFoundError(OvermindError):
    """Raised when a worker unit cannot be resolved by name."""

    def __init__(self, name: str, bootstrap: str = ""):
        self.name = name
        self.bootstrap = bootstrap
        where = f" in {bootstrap!r}" if bootstrap else ""
        super().__init__(f"Lurker class {name!r} not found{where}")
