"""Exception hierarchy for starbase."""

from __future__ import annotations


class StarbaseError(Exception):
    """Base exception for all starbase errors."""


class FetchError(StarbaseError):
    """Remote, network or checkout failure. Messages are always credential-redacted."""


class SourceDirNotFound(FetchError):
    """Requested subdirectory is absent after checkout."""


class FetchTimeoutError(FetchError, TimeoutError):
    """A git step exceeded its timeout and was killed."""


class BuildError(StarbaseError):
    """Non-fetch failure while building a graph document."""


class ParseDegraded(StarbaseError):
    """Structured parse of one file failed; the resolver falls back to regex scans."""


class UnresolvedImport(StarbaseError):
    """A relative specifier matched no known file.

    Never raised: unresolved specifiers are dropped silently. Kept so callers
    can name the condition.
    """


class HandTrackingInitError(StarbaseError):
    """Camera or hand landmark model could not be initialised."""
