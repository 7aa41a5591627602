"""External directory providers."""

from .slack import SlackDirectory, SlackDirectoryConfig

__all__ = ["SlackDirectory", "SlackDirectoryConfig"]
