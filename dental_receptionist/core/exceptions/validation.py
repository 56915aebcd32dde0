"""
Validation exceptions.
"""


class ValidationError(Exception):
    """Exception raised when classifier output or an entity is malformed."""
    pass
