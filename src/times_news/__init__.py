"""Times News: watch personal "times" channels and post hourly activity digests.

This package provides:
- ChannelDirectory: Lists workspace channels and selects times channels
- WatchStateController: Reads and toggles the bot's channel membership
- ActivityAggregator: Counts recent posts per channel for the digest
- EventDispatcher: Routes Slack events and interactions to the above
"""

__version__ = "0.1.0"
