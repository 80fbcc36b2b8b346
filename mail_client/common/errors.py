"""
Client error types.

Everything the client can fail with derives from MailClientError so the
entry point can report it and exit with a non-zero status.
"""


class MailClientError(Exception):
    """Base class for all client failures"""


class ServerConnectionError(MailClientError):
    """The socket could not be created or the server could not be reached"""


class TransportIOError(MailClientError):
    """Sending to or receiving from the server failed"""


class ProtocolError(MailClientError):
    """The server response does not have the shape expected for the command"""


class MissingTokenError(MailClientError):
    """An authenticated command was requested but no login token is stored"""


class TokenStoreError(MailClientError):
    """The login token could not be written"""
