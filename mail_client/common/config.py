"""
Client configuration.

Defaults match the reference mail server deployment: IPv6 loopback on
port 32323, token kept in ``login-token`` in the working directory.
"""

from dataclasses import dataclass

DEFAULT_ADDRESS = "::1"
DEFAULT_PORT = 32323
DEFAULT_TOKEN_PATH = "login-token"
DEFAULT_BUFFER_SIZE = 4096

FRAMING_BALANCED = "balanced"
FRAMING_QUIESCENCE = "quiescence"
FRAMING_MODES = (FRAMING_BALANCED, FRAMING_QUIESCENCE)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass
class ClientConfig:
    """
    Settings for a single client invocation.

    Attributes:
        address: Server address literal (already validated)
        is_v6: Whether ``address`` is an IPv6 address
        port: Server port
        token_path: File holding the login token
        buffer_size: Size of each socket read
        framing: How the read loop detects the end of a response
    """
    address: str = DEFAULT_ADDRESS
    is_v6: bool = True
    port: int = DEFAULT_PORT
    token_path: str = DEFAULT_TOKEN_PATH
    buffer_size: int = DEFAULT_BUFFER_SIZE
    framing: str = FRAMING_BALANCED

    def __post_init__(self):
        if self.framing not in FRAMING_MODES:
            raise ValueError(f"Unknown framing mode: {self.framing}")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.buffer_size <= 0:
            raise ValueError(f"Invalid buffer size: {self.buffer_size}")
