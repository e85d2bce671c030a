"""Error kinds raised by the tracker's collaborators.

None of these are fatal: the scheduler degrades every failure to
"no alert this cycle" and keeps polling.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker errors."""


class SourceUnavailable(TrackerError):
    """The rate source could not produce a sample."""


class AnalysisUnavailable(TrackerError):
    """The analyzer failed, timed out, or returned malformed output."""


class ConfigurationInvalid(TrackerError, ValueError):
    """A user-supplied setting was rejected."""
