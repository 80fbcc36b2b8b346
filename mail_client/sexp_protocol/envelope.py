"""
Envelope Codec

String transforms for the parenthesized text protocol spoken by the mail
server. Requests and responses are single envelopes:

    envelope := "(" status-or-cmd (" " field)* ")"
    field    := quoted | bare-token
    quoted   := '"' escaped-chars '"'

Escaping rules:
   - backslash is doubled
   - double quote is prefixed with a backslash
   - the two character sequence backslash + n stays as is (newline marker)

Responses start with a status header, ``(ok`` or ``(err``, which is cut off
before the payload is parsed.

All functions here are total: when a delimiter is absent the input comes
back unchanged.
"""

from typing import List

OK_PREFIX = "(ok "
OK_HEADER_LENGTH = 3
ERR_HEADER_LENGTH = 4

# Separators used when taking responses apart
QUOTED_FIELD_SEPARATOR = '" "'
LIST_ITEM_SEPARATOR = ") ("
NEWLINE_MARKER = "\\n"


def escape(data: str) -> str:
    """
    Escape a value before it is placed between double quotes.

    The three passes run in a fixed order: backslashes are doubled first,
    then quotes are escaped, then a doubled newline marker is collapsed back
    so that a ``\\n`` typed by the user keeps meaning newline.
    """
    data = data.replace("\\", "\\\\")
    data = data.replace('"', '\\"')
    data = data.replace("\\\\n", "\\n")
    return data


def unescape(data: str) -> str:
    """Undo escape(): ``\\\\`` becomes ``\\``, then ``\\"`` becomes ``\"``"""
    data = data.replace("\\\\", "\\")
    data = data.replace('\\"', '"')
    return data


def is_ok(response: str) -> bool:
    """Return True if the response carries the ok status"""
    return response.startswith(OK_PREFIX)


def strip_header(response: str) -> str:
    """
    Cut off the status header.

    Three characters (``(ok``) are removed from ok responses, four
    (``(err``) from anything else.
    """
    if is_ok(response):
        return response[OK_HEADER_LENGTH:]
    return response[ERR_HEADER_LENGTH:]


def strip_first_left_paren(data: str) -> str:
    """Drop everything up to and including the first ``(``"""
    position = data.find("(")
    if position == -1:
        return data
    return data[position + 1:]


def strip_last_right_paren(data: str) -> str:
    """Drop everything from the last ``)`` onward"""
    position = data.rfind(")")
    if position == -1:
        return data
    return data[:position]


def strip_outer_paren(data: str) -> str:
    """Remove one layer of surrounding parentheses"""
    return strip_last_right_paren(strip_first_left_paren(data))


def strip_primary_wrapping(response: str) -> str:
    """Remove the status header and the envelope's closing parenthesis"""
    return strip_last_right_paren(strip_header(response))


def strip_outer_quotes(data: str) -> str:
    """
    Drop everything up to and including the first ``"`` and everything from
    the last ``"`` onward. Strings without a quote are returned unchanged.
    """
    position = data.find('"')
    if position == -1:
        return data
    data = data[position + 1:]
    position = data.rfind('"')
    if position == -1:
        return data
    return data[:position]


def message_content(response: str) -> str:
    """Return the quoted text of a single field response, still escaped"""
    return strip_outer_quotes(strip_header(response))


def split_on_char(data: str, separator: str) -> List[str]:
    """
    Split ``data`` on a single character.

    A separator at the very end does not produce a trailing empty field and
    an empty string yields no fields.
    """
    if len(separator) != 1:
        raise ValueError("separator must be a single character")
    if not data:
        return []
    fields = data.split(separator)
    if data.endswith(separator):
        fields.pop()
    return fields


def split_on_substring(data: str, separator: str) -> List[str]:
    """
    Split ``data`` on a literal substring.

    The separator is not dropped whole. For an odd length separator the
    field keeps the separator's first character and the next field starts
    at its last character, so with ``" "`` every quoted field keeps both of
    its quotes and with ``) (`` every list item keeps both parentheses. For
    an even length separator (the two character newline marker) the
    separator is removed entirely.

    The text after the last separator is always appended as the last field.
    """
    if not separator:
        raise ValueError("separator must not be empty")
    kept = len(separator) % 2
    resume = len(separator) // 2 + 1
    fields = []
    position = data.find(separator)
    while position != -1:
        fields.append(data[:position + kept])
        data = data[position + resume:]
        position = data.find(separator)
    fields.append(data)
    return fields


def split_quoted_fields(data: str) -> List[str]:
    """Split a run of quoted fields separated by single spaces"""
    return split_on_substring(data, QUOTED_FIELD_SEPARATOR)


def split_list_items(data: str) -> List[str]:
    """
    Split a run of parenthesized list items separated by single spaces.

    Items are cut at ``) (`` like split_on_substring() does, each keeping
    both parentheses, but only where the ``)`` closes a top level item
    outside any quoted string. A subject containing ``) (`` stays whole.
    """
    scanner = EnvelopeScanner()
    fields = []
    start = 0
    for position, char in enumerate(data):
        if scanner.step(ord(char)) and data.startswith(LIST_ITEM_SEPARATOR, position):
            fields.append(data[start:position + 1])
            start = position + 2
    fields.append(data[start:])
    return fields


def split_lines(data: str) -> List[str]:
    """Split text on the escaped newline marker"""
    return split_on_substring(data, NEWLINE_MARKER)


class EnvelopeScanner:
    """
    Incremental detector for the end of an envelope.

    Bytes are fed as they arrive from the socket. Parenthesis depth is
    tracked outside quoted strings; inside them a backslash escapes the next
    byte. The envelope is complete once the first opened parenthesis has
    been closed again.

    The scanner works on raw bytes: every structural character is ASCII and
    never occurs inside a multi-byte UTF-8 sequence.
    """

    def __init__(self):
        self.depth = 0
        self.in_string = False
        self.escaped = False
        self.started = False
        self.complete = False
        self.consumed = 0

    def feed(self, chunk: bytes) -> bool:
        """
        Consume ``chunk`` and report whether the envelope is complete.

        Bytes after the closing parenthesis are ignored.
        """
        for byte in chunk:
            if self.complete:
                break
            self.consumed += 1
            if self.step(byte):
                self.complete = True
        return self.complete

    def step(self, code: int) -> bool:
        """
        Advance over one byte or character code.

        Returns True when ``code`` is a closing parenthesis outside a quoted
        string that brings the depth back to zero. Unlike feed() this keeps
        going after that, so a run of sibling lists can be walked item by
        item.
        """
        if self.in_string:
            if self.escaped:
                self.escaped = False
            elif code == 0x5C:  # backslash
                self.escaped = True
            elif code == 0x22:  # double quote
                self.in_string = False
        elif code == 0x22:
            self.in_string = True
        elif code == 0x28:  # (
            self.depth += 1
            self.started = True
        elif code == 0x29:  # )
            self.depth -= 1
            return self.started and self.depth <= 0
        return False
