"""
Mail Client

Runs one command against the mail server: loads the login token when the
command needs it, encodes the request, exchanges it over a fresh
connection, decodes the response and updates the stored token.
"""

import logging
from typing import Callable, Optional

from ..common.commands import CommandKind, CommandSpec, requires_token
from ..common.config import ClientConfig
from ..common.token_store import TokenStore
from . import protocol
from .transport import TransportSession


class MailClient:
    """One-shot command client for the envelope protocol"""

    def __init__(self, config: Optional[ClientConfig] = None,
                 token_store: Optional[TokenStore] = None,
                 session_factory: Optional[Callable[[ClientConfig], TransportSession]] = None):
        """
        Args:
            config: Connection settings, defaults to ClientConfig()
            token_store: Where the login token lives, defaults to the
                         config's token path
            session_factory: Builds the transport session for a config
        """
        self.config = config or ClientConfig()
        self.token_store = token_store or TokenStore(self.config.token_path)
        self.session_factory = session_factory or self._create_session
        logging.debug(f"Initialized client for {self.config.address}:{self.config.port}")

    @staticmethod
    def _create_session(config: ClientConfig) -> TransportSession:
        return TransportSession(
            config.address,
            config.is_v6,
            config.port,
            buffer_size=config.buffer_size,
            framing=config.framing,
        )

    def exchange(self, request: str) -> str:
        """Send one request envelope and return the raw response"""
        with self.session_factory(self.config) as session:
            session.send(request)
            return session.receive()

    def execute(self, spec: CommandSpec) -> protocol.DecodedResult:
        """
        Run a command and return the decoded response.

        A successful login stores the new token, a successful logout removes
        it.
        """
        token = self.token_store.load() if requires_token(spec.kind) else None
        request = protocol.encode_message(spec, token)
        response = self.exchange(request)
        logging.debug(f"Raw response: {response!r}")

        result = protocol.decode_message(spec.kind, response)
        if isinstance(result, protocol.LoginResult):
            self.token_store.save(result.token)
        elif spec.kind is CommandKind.LOGOUT and isinstance(result, protocol.MessageResult):
            self.token_store.delete()
        return result

    def register(self, username: str, password: str) -> protocol.DecodedResult:
        """Create an account; ``password`` must already be base64 encoded"""
        return self.execute(CommandSpec.build(CommandKind.REGISTER, username, password))

    def login(self, username: str, password: str) -> protocol.DecodedResult:
        """Log in; ``password`` must already be base64 encoded"""
        return self.execute(CommandSpec.build(CommandKind.LOGIN, username, password))

    def list_messages(self) -> protocol.DecodedResult:
        return self.execute(CommandSpec.build(CommandKind.LIST))

    def send_message(self, recipient: str, subject: str, body: str) -> protocol.DecodedResult:
        return self.execute(CommandSpec.build(CommandKind.SEND, recipient, subject, body))

    def fetch_message(self, message_id: str) -> protocol.DecodedResult:
        return self.execute(CommandSpec.build(CommandKind.FETCH, str(message_id)))

    def logout(self) -> protocol.DecodedResult:
        return self.execute(CommandSpec.build(CommandKind.LOGOUT))
