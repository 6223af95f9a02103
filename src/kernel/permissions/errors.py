"""
Errors raised by the permission engine.

Query paths never surface these to callers; they are converted to a deny
(or an empty result) at the service boundary.
"""


class PermissionEngineError(Exception):
    """Base class for permission engine failures."""


class InvalidConditionError(PermissionEngineError, ValueError):
    """A condition or context could not be built from caller data."""
