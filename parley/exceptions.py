"""
Common exception definitions
"""


class ClientError(Exception):
    """
    Represents a protocol violation by the client.

    If recoverable is False, it is expected that the connection be terminated
    immediately.
    """
    def __init__(self, message, recoverable=True, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.recoverable = recoverable


class InvalidRegistration(ClientError):
    """
    The registration request had a missing or malformed name, or named a tier
    that doesn't exist. Nothing was changed and the client has to send a new
    registration.
    """
