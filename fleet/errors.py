"""Exceptions raised at the collaborator and configuration boundaries."""


class FleetError(Exception):
    """Base class for fleet maintenance errors."""


class PersistenceError(FleetError):
    """A store could not write a record."""


class ConfigError(FleetError):
    """A policy file is missing, malformed or inconsistent."""
