"""
Mail Protocol Implementation

Builds request envelopes from command specs and turns response envelopes
back into typed results.

Request Format:
    (register "user" "base64pass")
    (login "user" "base64pass")
    (list "token")
    (send "token" "recipient" "subject" "body")
    (fetch "token" 42)
    (logout "token")

Response Format:
    (ok "message")                                 register, send, logout
    (ok "greeting" "token")                        login
    (ok ((1 "from" "subject") (2 "from" "subj")))  list
    (ok ("from" "subject" "body"))                 fetch
    (err "message")                                any command
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..common.commands import CommandKind, CommandSpec, requires_token
from ..common.errors import MissingTokenError, ProtocolError
from . import envelope

SUCCESS_PREFIX = "SUCCESS: "
ERROR_PREFIX = "ERROR: "


@dataclass
class MessageResult:
    """Single message response (register, send, logout)"""
    kind: CommandKind
    message: str

    def render(self) -> str:
        return SUCCESS_PREFIX + self.message


@dataclass
class LoginResult:
    """Successful login: server greeting and the token to persist"""
    greeting: str
    token: str

    def render(self) -> str:
        return SUCCESS_PREFIX + self.greeting


@dataclass
class ListItem:
    """
    One message header in a list response.

    ``subject`` is None when the server sent only the sender.
    """
    id: str
    sender: str
    subject: Optional[str] = None


@dataclass
class ListResult:
    """Headers of the messages in the user's mailbox"""
    items: List[ListItem] = field(default_factory=list)

    def render(self) -> str:
        lines = [SUCCESS_PREFIX]
        for item in self.items:
            lines.append(f"{item.id}: ")
            lines.append(f"  From: {item.sender}")
            if item.subject is not None:
                lines.append(f"  Subject: {item.subject}")
        return "\n".join(lines)


@dataclass
class FetchResult:
    """A complete message"""
    sender: str
    subject: str
    body_lines: List[str] = field(default_factory=list)

    @property
    def body(self) -> str:
        return "\n".join(self.body_lines)

    def render(self) -> str:
        return "\n".join([
            SUCCESS_PREFIX,
            "",
            f"From: {self.sender}",
            f"Subject: {self.subject}",
            "",
            self.body,
        ])


@dataclass
class ErrorResult:
    """The server rejected the command"""
    message: str

    def render(self) -> str:
        return ERROR_PREFIX + self.message


DecodedResult = Union[MessageResult, LoginResult, ListResult, FetchResult, ErrorResult]


def _quote(value: str) -> str:
    return '"' + envelope.escape(value) + '"'


def encode_message(spec: CommandSpec, token: Optional[str] = None) -> str:
    """
    Encode a command as a request envelope.

    Args:
        spec: The command and its arguments
        token: Stored login token, required for list, send, fetch and logout

    Returns:
        The envelope text

    Raises:
        MissingTokenError: If the command needs a token and none was given
    """
    data = "(" + spec.kind.value

    if requires_token(spec.kind):
        if token is None:
            raise MissingTokenError("Login token could not be obtained")
        data += " " + _quote(token)

    for value in spec.ordered_values():
        if spec.kind is CommandKind.FETCH:
            # The message id goes out bare and is the only argument
            data += " " + value
            break
        data += " " + _quote(value)

    data += ")"
    logging.debug(f"Encoded {spec.kind.value} request ({len(data)} chars)")
    return data


def _require_complete(kind: CommandKind, response: str):
    """Reject responses whose envelope is cut off"""
    if not envelope.EnvelopeScanner().feed(response.encode("utf-8")):
        raise ProtocolError(f"Truncated {kind.value} response")


def _quoted_text(kind: CommandKind, data: str) -> str:
    """Return the still escaped text between the outer quotes of ``data``"""
    start = data.find('"')
    if start == -1 or data.rfind('"') == start:
        raise ProtocolError(f"Malformed {kind.value} response: unterminated quoted field")
    return envelope.strip_outer_quotes(data)


def _message_text(kind: CommandKind, response: str) -> str:
    """Unescaped text of a single field response such as (ok "message")"""
    _quoted_text(kind, envelope.strip_header(response))
    return envelope.unescape(envelope.message_content(response))


def _decode_message(kind: CommandKind, response: str) -> MessageResult:
    return MessageResult(kind, _message_text(kind, response))


def _decode_login(kind: CommandKind, response: str) -> LoginResult:
    # Format: (ok "greeting" "token")
    fields = envelope.split_quoted_fields(envelope.strip_header(response))
    if len(fields) != 2:
        raise ProtocolError(
            f"Malformed login response: expected 2 fields, got {len(fields)}"
        )
    greeting = envelope.unescape(_quoted_text(kind, fields[0]))

    token_text = fields[1]
    end = token_text.find(")")
    if end != -1:
        token_text = token_text[:end]
    token = _quoted_text(kind, token_text.strip())
    if not token:
        raise ProtocolError("Malformed login response: empty token")
    return LoginResult(greeting, token)


def _decode_list_item(item: str) -> Optional[ListItem]:
    """Decode one ``(id "from" "subject")`` item, None marks the end of the list"""
    item = envelope.strip_outer_paren(item)
    parts = envelope.split_on_char(item, " ")
    if len(parts) < 2:
        return None
    number = parts[0]
    remainder = item[len(number) + 1:]
    if not remainder.replace('"', "").strip():
        return None

    values = []
    for piece in envelope.split_quoted_fields(remainder):
        if piece == " " or not piece:
            continue
        values.append(envelope.unescape(envelope.strip_outer_quotes(piece)))
        if len(values) == 2:
            break
    if not values:
        return None
    subject = values[1] if len(values) > 1 else None
    return ListItem(number.strip(), values[0], subject)


def _decode_list(kind: CommandKind, response: str) -> ListResult:
    # Format: (ok ((1 "from" "subject") (2 "from" "subject")))
    body = envelope.strip_outer_paren(envelope.strip_primary_wrapping(response))
    result = ListResult()
    for raw_item in envelope.split_list_items(body):
        item = _decode_list_item(raw_item)
        if item is None:
            break
        result.items.append(item)
    return result


def _decode_fetch(kind: CommandKind, response: str) -> FetchResult:
    # Format: (ok ("from" "subject" "body"))
    body = envelope.strip_outer_paren(envelope.strip_primary_wrapping(response))
    fields = envelope.split_quoted_fields(body)
    if len(fields) != 3:
        raise ProtocolError(
            f"Malformed fetch response: expected 3 fields, got {len(fields)}"
        )
    sender = envelope.unescape(_quoted_text(kind, fields[0]))
    subject = envelope.unescape(_quoted_text(kind, fields[1]))
    text = _quoted_text(kind, fields[2])
    lines = [envelope.unescape(line) for line in envelope.split_lines(text)]
    return FetchResult(sender, subject, lines)


_DECODERS: Dict[CommandKind, Callable[[CommandKind, str], DecodedResult]] = {
    CommandKind.REGISTER: _decode_message,
    CommandKind.SEND: _decode_message,
    CommandKind.LOGOUT: _decode_message,
    CommandKind.LOGIN: _decode_login,
    CommandKind.LIST: _decode_list,
    CommandKind.FETCH: _decode_fetch,
}


def decode_message(kind: CommandKind, response: str) -> DecodedResult:
    """
    Decode a response envelope for the command that produced it.

    Args:
        kind: The command the request was made with
        response: The raw response text

    Returns:
        ErrorResult for ``err`` responses, otherwise the result type of the
        command

    Raises:
        ProtocolError: If the response is empty, cut off before its
                       envelope closes, or does not match the shape
                       expected for ``kind``
    """
    if not response.strip():
        raise ProtocolError("Empty response from server")
    _require_complete(kind, response)

    if not envelope.is_ok(response):
        return ErrorResult(_message_text(kind, response))

    result = _DECODERS[kind](kind, response)
    logging.debug(f"Decoded {kind.value} response: {result}")
    return result
