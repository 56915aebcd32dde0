"""
External collaborator exceptions.
"""


class UpstreamError(Exception):
    """Exception raised when a collaborator is unreachable or keeps failing."""
    pass
