"""
Exception hierarchy for routelens.

Only conditions that must stop a run step (or be reported distinctly) get an
exception type. Discovery and extraction misses are not exceptional: they are
logged as warnings and represented by empty results or ``None``.

routelens/src/routelens/exceptions.py
"""

__all__ = [
    "RouteLensError",
    "SelectionError",
    "ModelNotConfiguredError",
    "ModelResponseError",
    "PayloadError",
]


class RouteLensError(Exception):
    """Base class for routelens errors."""


class SelectionError(RouteLensError):
    """The selection collaborator supplied an unknown or empty choice."""


class ModelNotConfiguredError(RouteLensError):
    """The model client is missing credentials, an endpoint or a model id.

    Raised before any network attempt and never retried.
    """


class ModelResponseError(RouteLensError):
    """The model service answered without any usable text."""


class PayloadError(RouteLensError):
    """A request payload artifact cannot be used for review."""
