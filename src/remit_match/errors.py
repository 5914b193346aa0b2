"""
Shared exception types.
"""


class RemitMatchError(Exception):
    """Base exception for pipeline errors."""

    pass


class MissingInputError(RemitMatchError, ValueError):
    """A required input (note text, company name) was not provided.

    This is a caller error and is never degraded to an empty result.
    """

    pass
