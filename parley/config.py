"""
Server config variables
"""

import asyncio
import logging
import os
from typing import Callable

import yaml

from .decorators import with_logger

# Logging setup
TRACE = 5
logging.addLevelName(TRACE, "TRACE")
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


@with_logger
class ConfigurationStore:
    def __init__(self):
        """
        Change default values here.
        """
        self.LISTEN = [
            {
                "ADDRESS": "",
                "PORT": 8002,
                "NAME": None,
                "PROTOCOL": "SimpleJsonProtocol",
                "PROXY": False,
            },
            {
                "ADDRESS": "",
                "PORT": 3000,
                "NAME": None,
                "PROTOCOL": "WebSocketProtocol",
                "PATH": "/ws",
                "PROXY": False,
            }
        ]
        self.LOG_LEVEL = "DEBUG"
        # Whether or not to use uvloop as a drop-in replacement for asyncio's
        # default event loop
        self.USE_UVLOOP = False

        self.CONTROL_SERVER_PORT = 4000
        self.METRICS_PORT = 8011
        self.ENABLE_METRICS = False

        # How many seconds open connections get to close cleanly on shutdown
        self.SHUTDOWN_TIMEOUT = 5

        # Longer display names are cut off after trimming whitespace
        self.NAME_MAX_LENGTH = 20
        # Longer chat messages are cut off after trimming whitespace
        self.CHAT_MESSAGE_MAX_LENGTH = 1000

        # Schedule for expiring old sessions and evicting stale queue entries
        self.MAINTENANCE_CRON = "*/5 * * * *"
        # Sessions older than this many seconds are ended. 0 disables expiry.
        self.SESSION_MAX_AGE = 60 * 60
        # Participants waiting longer than this many seconds are removed from
        # their queue. 0 lets participants wait indefinitely.
        self.QUEUE_MAX_WAIT = 0

        self._defaults = {
            key: value for key, value in vars(self).items() if key.isupper()
        }

        self._callbacks: dict[str, Callable] = {}
        self.refresh()

    def refresh(self) -> None:
        new_values = self._defaults.copy()

        config_file = os.getenv("CONFIGURATION_FILE")
        if config_file is not None:
            try:
                with open(config_file) as f:
                    new_values.update(yaml.safe_load(f))
            except FileNotFoundError:
                self._logger.warning(
                    "No configuration file found at %s",
                    config_file
                )
            except TypeError:
                self._logger.info(
                    "Configuration file at %s appears to be empty",
                    config_file
                )

        triggered_callback_keys = tuple(
            key
            for key in new_values
            if key in self._callbacks
            and hasattr(self, key)
            and getattr(self, key) != new_values[key]
        )

        for key, new_value in new_values.items():
            old_value = getattr(self, key, None)
            if new_value != old_value:
                self._logger.info(
                    "New value for %s: %r -> %r", key, old_value, new_value
                )
            setattr(self, key, new_value)

        for key in triggered_callback_keys:
            self._dispatch_callback(key)

    def register_callback(self, key: str, callback: Callable) -> None:
        self._callbacks[key.upper()] = callback

    def _dispatch_callback(self, key: str) -> None:
        callback = self._callbacks[key]
        if asyncio.iscoroutinefunction(callback):
            asyncio.create_task(callback())
        else:
            callback()


def set_log_level():
    logger = logging.getLogger()
    logger.setLevel(config.LOG_LEVEL)


config = ConfigurationStore()
config.register_callback("LOG_LEVEL", set_log_level)
