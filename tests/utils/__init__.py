from .exhaust_callbacks import exhaust_callbacks
from .messages import commands, last_message, sent_messages

__all__ = (
    "commands",
    "exhaust_callbacks",
    "last_message",
    "sent_messages",
)
