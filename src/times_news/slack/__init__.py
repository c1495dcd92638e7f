"""Slack Web API access for Times News."""

from times_news.slack.client import PlatformClient, SlackAPIError, SlackClient
from times_news.slack.pagination import paginate

__all__ = [
    "PlatformClient",
    "SlackAPIError",
    "SlackClient",
    "paginate",
]
