"""
skillswap.errors — Domain exceptions
=====================================

Services raise these; :mod:`skillswap.api.main` maps them to HTTP
responses.  ``NotFoundError`` and ``ValidationFailure`` subclass the
builtin ``LookupError`` / ``ValueError`` so callers catching the builtins
keep working.
"""

from __future__ import annotations


class SkillSwapError(Exception):
    """Base class for all domain errors."""

    status_code = 400


class NotFoundError(SkillSwapError, LookupError):
    """A referenced user, skill, request, response or chat does not exist."""

    status_code = 404


class ValidationFailure(SkillSwapError, ValueError):
    """Input rejected: empty text, self-endorsement, bad transition."""

    status_code = 422


class PermissionDenied(SkillSwapError):
    """The caller is not allowed to act on this resource."""

    status_code = 403


class RemoteServiceFailure(SkillSwapError):
    """An external service (AI endpoint) failed or replied with garbage."""

    status_code = 502
