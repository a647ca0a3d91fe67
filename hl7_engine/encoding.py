"""
HL7 Encoding Characters

Every HL7 v2 message declares its own delimiters in the first bytes of
the MSH segment:

    MSH|^~\\&|...
       ||||+--- sub-component separator (&)
       |||+---- escape character (\\)
       ||+----- repetition separator (~)
       |+------ component separator (^)
       +------- field separator (|), the character right after "MSH"

This module reads those characters and decodes/encodes escape sequences
such as \\F\\ (a literal field separator inside a value).
"""

import logging
from dataclasses import dataclass

from .exceptions import StructuralError

logger = logging.getLogger(__name__)


SEGMENT_TERMINATOR = "\r"
MLLP_START_BLOCK = "\x0b"
MLLP_END_BLOCK = "\x1c"


@dataclass(frozen=True)
class EncodingContext:
    """
    The delimiter set of one message.

    Attributes:
        field_separator: Separates fields (MSH-1, default |)
        component_separator: Separates components (default ^)
        repetition_separator: Separates field repetitions (default ~)
        escape_character: Introduces escape sequences (default \\)
        subcomponent_separator: Separates sub-components (default &)
    """

    field_separator: str = "|"
    component_separator: str = "^"
    repetition_separator: str = "~"
    escape_character: str = "\\"
    subcomponent_separator: str = "&"

    @property
    def encoding_characters(self) -> str:
        """The MSH-2 value, in the order HL7 declares it."""
        return (
            self.component_separator
            + self.repetition_separator
            + self.escape_character
            + self.subcomponent_separator
        )


DEFAULT_ENCODING = EncodingContext()


def _is_usable_delimiter(char: str) -> bool:
    return len(char) == 1 and not char.isalnum() and not char.isspace()


def resolve_encoding(message: str) -> EncodingContext:
    """
    Read the encoding characters from the start of an MSH segment.

    Resolution is purely mechanical: the field separator is the character
    right after "MSH", and the block up to the following field separator
    holds the four encoding characters, optionally followed by a fifth
    truncation character (HL7 2.7+). If the block is missing, short, too
    long, repeats a character, or contains letters, digits or whitespace,
    the standard set ^~\\& is used instead.

    A letter, digit or space right after "MSH" means the header is
    garbled (e.g. "MSHELLO"), and is rejected like a missing MSH. So is
    a malformed block whose field separator is itself one of ^~\\&, since
    the standard set can't be used with it.

    Args:
        message: Raw HL7 message text, MLLP framing already removed

    Returns:
        The resolved EncodingContext

    Raises:
        StructuralError: If the text doesn't start with "MSH" or the
            field separator is unusable

    Example:
        resolve_encoding("MSH|^~\\\\&|APP|...")  # EncodingContext() defaults
        resolve_encoding("MSH#$%@!#APP#...").field_separator  # "#"
    """
    if not message or not message.startswith("MSH"):
        raise StructuralError("First segment must be MSH")

    field_separator = message[3:4]
    if field_separator in ("", "\r", "\n"):
        # Bare "MSH" line: nothing declared, nothing to split
        return DEFAULT_ENCODING
    if not _is_usable_delimiter(field_separator):
        raise StructuralError(
            f"MSH segment has no usable field separator (found {field_separator!r})"
        )

    # The encoding block ends at the next field separator or segment end
    block = message[4:]
    for stop in (field_separator, "\r", "\n"):
        position = block.find(stop)
        if position != -1:
            block = block[:position]

    candidate = field_separator + block
    if (
        len(block) in (4, 5)
        and len(set(candidate)) == len(candidate)
        and all(_is_usable_delimiter(char) for char in block)
    ):
        return EncodingContext(
            field_separator=field_separator,
            component_separator=block[0],
            repetition_separator=block[1],
            escape_character=block[2],
            subcomponent_separator=block[3],
        )

    if field_separator in DEFAULT_ENCODING.encoding_characters:
        raise StructuralError(
            f"Malformed MSH encoding characters {block!r} "
            f"with field separator {field_separator!r}"
        )

    logger.warning(
        "Malformed MSH encoding characters %r, using defaults '^~\\&'", block
    )
    return EncodingContext(field_separator=field_separator)


def _escape_table(encoding: EncodingContext) -> dict:
    """Escape code -> decoded text."""
    return {
        "F": encoding.field_separator,
        "S": encoding.component_separator,
        "T": encoding.subcomponent_separator,
        "R": encoding.repetition_separator,
        "E": encoding.escape_character,
        ".br": SEGMENT_TERMINATOR,
        # Highlight on / normal text
        "H": "",
        "N": "",
    }


def _decode_hex(code: str):
    """Decode an \\Xhh..\\ code, or return None when it isn't valid hex."""
    digits = code[1:]
    if not digits or len(digits) % 2:
        return None
    try:
        return bytes.fromhex(digits).decode("latin-1")
    except ValueError:
        return None


def unescape(value: str, encoding: EncodingContext = DEFAULT_ENCODING) -> str:
    """
    Decode HL7 escape sequences in a single value.

    Unknown escape codes and unterminated sequences are kept literally,
    escape characters included, instead of failing.

    Example:
        unescape("Smith\\\\F\\\\Jones")  # Returns "Smith|Jones"
        unescape("50\\\\Z\\\\")          # Returns "50\\\\Z\\\\" unchanged
    """
    escape_char = encoding.escape_character
    if not value or escape_char not in value:
        return value

    table = _escape_table(encoding)
    decoded = []
    position = 0

    while position < len(value):
        start = value.find(escape_char, position)
        if start == -1:
            decoded.append(value[position:])
            break

        decoded.append(value[position:start])
        end = value.find(escape_char, start + 1)
        if end == -1:
            decoded.append(value[start:])
            break

        code = value[start + 1 : end]
        if code in table:
            decoded.append(table[code])
        elif code.startswith("X") and _decode_hex(code) is not None:
            decoded.append(_decode_hex(code))
        else:
            decoded.append(value[start : end + 1])
        position = end + 1

    return "".join(decoded)


def escape(value: str, encoding: EncodingContext = DEFAULT_ENCODING) -> str:
    """
    Encode delimiter characters in a value so it can be written to wire text.

    Inverse of unescape() for the structural characters, carriage return
    and line feed.

    Example:
        escape("Smith|Jones")  # Returns "Smith\\\\F\\\\Jones"
    """
    if not value:
        return value

    esc = encoding.escape_character
    replacements = {
        encoding.escape_character: f"{esc}E{esc}",
        encoding.field_separator: f"{esc}F{esc}",
        encoding.component_separator: f"{esc}S{esc}",
        encoding.subcomponent_separator: f"{esc}T{esc}",
        encoding.repetition_separator: f"{esc}R{esc}",
        "\r": f"{esc}.br{esc}",
        "\n": f"{esc}X0A{esc}",
    }

    if not any(char in value for char in replacements):
        return value
    return "".join(replacements.get(char, char) for char in value)


def strip_mllp_framing(message: str) -> str:
    """
    Remove MLLP block characters around a message.

    Messages copied from an MLLP capture keep the <VT> start byte and the
    <FS><CR> trailer; neither belongs to the HL7 text.
    """
    cleaned = message.lstrip(" \t\r\n\ufeff")
    if cleaned.startswith(MLLP_START_BLOCK):
        cleaned = cleaned[1:]
    cleaned = cleaned.rstrip("\r\n")
    if cleaned.endswith(MLLP_END_BLOCK):
        cleaned = cleaned[:-1]
    return cleaned
