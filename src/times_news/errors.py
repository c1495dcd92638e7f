"""Exception hierarchy for Times News.

Read-path failures (directory, membership, history) abort the current run.
Write-path failures (a single watch toggle) are isolated to that toggle.
"""

from __future__ import annotations


class TimesNewsError(Exception):
    """Base class for all Times News errors."""


class ConfigurationError(TimesNewsError):
    """Raised when required settings are missing or invalid."""


class TransportDecodeError(TimesNewsError):
    """Raised when an inbound Slack payload cannot be decoded."""


class ChannelError(TimesNewsError):
    """Base class for errors tied to a single channel."""

    def __init__(self, message: str, *, channel_id: str = "", channel_name: str = "") -> None:
        super().__init__(message)
        self.channel_id = channel_id
        self.channel_name = channel_name


class DirectoryUnavailableError(TimesNewsError):
    """Raised when any page of the channel listing cannot be fetched."""


class MembershipQueryError(ChannelError):
    """Raised when a channel's membership cannot be listed."""


class HistoryFetchError(ChannelError):
    """Raised when a channel's history cannot be fetched."""


class NotMemberError(ChannelError):
    """Raised when the watcher is not a member of the channel.

    Expected during aggregation: the channel exists but is not watched.
    """


class MutationError(ChannelError):
    """Base class for failures of a single watch toggle."""


class JoinFailedError(MutationError):
    """Raised when the watcher cannot join a channel."""


class LeaveFailedError(MutationError):
    """Raised when the watcher cannot leave a channel."""


class UnknownActionError(MutationError):
    """Raised when a toggle carries an action id we do not handle."""


class MalformedReferenceError(TimesNewsError):
    """Raised when an encoded channel reference cannot be decoded."""
