"""
Transport Session

Owns the TCP connection to the mail server for one request/response
exchange: connect, send the request envelope, read the response, close.

The protocol has no length prefix or terminator. The read loop stops when
a read leaves the received total unchanged (the peer closed the
connection), and in ``balanced`` framing mode also as soon as the response
envelope's parentheses balance. Anything the server sent after the closing
parenthesis in the same read is dropped in that mode.
"""

import logging
import socket
from enum import Enum
from typing import Optional

from ..common.config import DEFAULT_BUFFER_SIZE, FRAMING_BALANCED, FRAMING_MODES
from ..common.errors import ProtocolError, ServerConnectionError, TransportIOError
from .envelope import EnvelopeScanner


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class TransportSession:
    """Single use blocking connection to the mail server"""

    def __init__(self, address: str, is_v6: bool, port: int,
                 buffer_size: int = DEFAULT_BUFFER_SIZE,
                 framing: str = FRAMING_BALANCED):
        """
        Args:
            address: Server address literal
            is_v6: Whether ``address`` is IPv6
            port: Server port
            buffer_size: Size of each socket read
            framing: ``balanced`` or ``quiescence``
        """
        if framing not in FRAMING_MODES:
            raise ValueError(f"Unknown framing mode: {framing}")
        self.address = address
        self.is_v6 = is_v6
        self.port = port
        self.buffer_size = buffer_size
        self.framing = framing
        self.sock: Optional[socket.socket] = None
        self.state = SessionState.UNCONNECTED
        logging.debug(f"Initialized session for {address}:{port} (v6={is_v6})")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def connect(self):
        """
        Open the socket and connect to the server.

        Raises:
            ServerConnectionError: If the socket cannot be created or the
                                   connection fails
        """
        if self.state is not SessionState.UNCONNECTED:
            raise TransportIOError(f"Cannot connect a {self.state.value} session")

        family = socket.AF_INET6 if self.is_v6 else socket.AF_INET
        try:
            self.sock = socket.socket(family, socket.SOCK_STREAM)
        except OSError as e:
            raise ServerConnectionError("Unable to create socket") from e

        destination = (self.address, self.port, 0, 0) if self.is_v6 else (self.address, self.port)
        try:
            self.sock.connect(destination)
        except OSError as e:
            logging.error(f"Connection failed: {e}")
            self.sock.close()
            self.sock = None
            self.state = SessionState.CLOSED
            raise ServerConnectionError("Unable to connect to server") from e

        self.state = SessionState.CONNECTED
        logging.debug(f"Connected to {self.address}:{self.port}")

    def send(self, data: str):
        """
        Write the whole request envelope.

        Raises:
            TransportIOError: If the session is not connected or the write
                              fails
        """
        if self.state is not SessionState.CONNECTED:
            raise TransportIOError("Not connected to server")
        payload = data.encode("utf-8")
        try:
            self.sock.sendall(payload)
        except OSError as e:
            raise TransportIOError("Unable to send data to server") from e
        logging.debug(f"Sent {len(payload)} bytes")

    def receive(self) -> str:
        """
        Read the response envelope.

        Returns:
            The response text

        Raises:
            TransportIOError: If the session is not connected or a read fails
            ProtocolError: If the response is not valid UTF-8
        """
        if self.state is not SessionState.CONNECTED:
            raise TransportIOError("Not connected to server")

        scanner = EnvelopeScanner() if self.framing == FRAMING_BALANCED else None
        buffer = bytearray()
        previous_size = 0
        while True:
            try:
                chunk = self.sock.recv(self.buffer_size)
            except OSError as e:
                raise TransportIOError("Unable to process data from server") from e
            buffer += chunk
            logging.debug(f"Received {len(chunk)} bytes, {len(buffer)} total")

            if scanner is not None and scanner.feed(chunk):
                logging.debug("Response envelope complete")
                if scanner.consumed < len(buffer):
                    logging.debug(f"Discarding {len(buffer) - scanner.consumed} bytes after the envelope")
                    del buffer[scanner.consumed:]
                break
            if len(buffer) == previous_size:
                logging.debug("No more data from server")
                break
            previous_size = len(buffer)

        try:
            return buffer.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError("Response is not valid UTF-8") from e

    def close(self):
        """Release the socket"""
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None
        self.state = SessionState.CLOSED
