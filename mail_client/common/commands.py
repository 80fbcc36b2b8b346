"""
Mail Client Commands

Command kinds, argument keys and the command specification handed to the
request encoder. Each command kind carries a fixed, ordered set of argument
keys; that order is the order the fields appear on the wire.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Tuple


class CommandKind(Enum):
    """
    Commands understood by the mail server.

    The value of each member is the command name used in the request
    envelope, e.g. ``(login "alice" "cHc=")``.
    """
    REGISTER = "register"
    LOGIN = "login"
    LIST = "list"
    SEND = "send"
    FETCH = "fetch"
    LOGOUT = "logout"


class ArgumentKey(Enum):
    """Named arguments a command may carry"""
    USERNAME = "USERNAME"
    PASSWORD = "PASSWORD"
    RECIPIENT = "RECIPIENT"
    SUBJECT = "SUBJECT"
    BODY = "BODY"
    ID = "ID"


# Wire order of the arguments for every command
COMMAND_ARGUMENTS: Dict[CommandKind, Tuple[ArgumentKey, ...]] = {
    CommandKind.REGISTER: (ArgumentKey.USERNAME, ArgumentKey.PASSWORD),
    CommandKind.LOGIN: (ArgumentKey.USERNAME, ArgumentKey.PASSWORD),
    CommandKind.LIST: (),
    CommandKind.SEND: (ArgumentKey.RECIPIENT, ArgumentKey.SUBJECT, ArgumentKey.BODY),
    CommandKind.FETCH: (ArgumentKey.ID,),
    CommandKind.LOGOUT: (),
}

AUTHENTICATED_COMMANDS = frozenset({
    CommandKind.LIST,
    CommandKind.SEND,
    CommandKind.FETCH,
    CommandKind.LOGOUT,
})


def requires_token(kind: CommandKind) -> bool:
    """Return True if the command must carry the stored login token"""
    return kind in AUTHENTICATED_COMMANDS


@dataclass(frozen=True)
class CommandSpec:
    """
    One command to be sent to the server.

    Attributes:
        kind: The command kind
        args: Argument values keyed by ArgumentKey. Passwords are expected
              to be base64 encoded already.

    Raises:
        ValueError: If the argument keys do not match the keys required
                    by ``kind``
    """
    kind: CommandKind
    args: Dict[ArgumentKey, str] = field(default_factory=dict)

    def __post_init__(self):
        expected = COMMAND_ARGUMENTS[self.kind]
        if set(self.args) != set(expected):
            missing = [key.value for key in expected if key not in self.args]
            extra = [key.value for key in self.args if key not in expected]
            raise ValueError(
                f"Invalid arguments for {self.kind.value}: "
                f"missing={missing}, unexpected={extra}"
            )

    def ordered_values(self) -> Tuple[str, ...]:
        """Return the argument values in wire order"""
        return tuple(self.args[key] for key in COMMAND_ARGUMENTS[self.kind])

    @classmethod
    def build(cls, kind: CommandKind, *values: str) -> "CommandSpec":
        """
        Create a spec from positional values given in wire order.

        Args:
            kind: The command kind
            *values: Argument values, one per key of ``kind``

        Returns:
            CommandSpec: The validated command
        """
        keys = COMMAND_ARGUMENTS[kind]
        if len(values) != len(keys):
            raise ValueError(
                f"{kind.value} expects {len(keys)} arguments, got {len(values)}"
            )
        return cls(kind, dict(zip(keys, values)))
