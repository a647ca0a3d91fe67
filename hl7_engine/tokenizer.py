"""
HL7 Tokenizer

This module turns raw message text into the generic segment/field tree.
It knows nothing about message types; it only applies the delimiters
declared in MSH.

HL7 Message Structure Basics:
- Segments are separated by carriage returns (\\r), but files often use \\n or \\r\\n
- Fields within a segment are separated by the field separator (|)
- Repetitions within a field are separated by ~
- Components within a repetition are separated by ^
- Sub-components within a component are separated by &
- In MSH the field separator itself is MSH-1 and the encoding block is MSH-2

Note: HL7 "standards" are more like guidelines.
Ragged segments are accepted as they are and left to the validator.
"""

from typing import List, Tuple

from .config import ParsingOptions, DEFAULT_PARSING_OPTIONS
from .encoding import EncodingContext, resolve_encoding, unescape
from .models import Field, Segment


def split_message_into_segments(message: str) -> List[str]:
    """
    Split an HL7 message into individual segment lines.

    HL7 segments are separated by carriage return (\\r),
    but files might also use \\n or \\r\\n.

    Args:
        message: The raw HL7 message string

    Returns:
        List of segment strings, blank lines removed

    Example:
        message = "MSH|...\\rPID|...\\rPV1|..."
        segments = split_message_into_segments(message)
        # Returns ["MSH|...", "PID|...", "PV1|..."]
    """
    # Normalize line endings - replace \r\n with \r, then \n with \r
    normalized = message.replace("\r\n", "\r").replace("\n", "\r")

    return [seg for seg in normalized.split("\r") if seg.strip()]


def parse_field(
    token: str,
    encoding: EncodingContext,
    options: ParsingOptions = DEFAULT_PARSING_OPTIONS,
) -> Field:
    """
    Split one raw field into repetitions, components and sub-components.

    Escape sequences are decoded after splitting, so an escaped
    delimiter (\\S\\) never creates an extra component.

    Example:
        parse_field("Doe^John~Roe^Jane", DEFAULT_ENCODING).get_component(2, repetition=2)
        # Returns "Jane"
    """

    def decode(value: str) -> str:
        if not options.preserve_whitespace:
            value = value.strip()
        return unescape(value, encoding)

    repetitions = []
    for instance in token.split(encoding.repetition_separator):
        components = []
        for component in instance.split(encoding.component_separator):
            components.append(
                tuple(
                    decode(sub)
                    for sub in component.split(encoding.subcomponent_separator)
                )
            )
        repetitions.append(tuple(components))

    return Field(repetitions=tuple(repetitions))


def parse_segment(
    line: str,
    encoding: EncodingContext,
    options: ParsingOptions = DEFAULT_PARSING_OPTIONS,
) -> Segment:
    """
    Parse one segment line.

    The segment type is the first token. For MSH the field separator
    consumed by the split is put back as MSH-1 and the encoding block is
    kept verbatim as MSH-2, so every other MSH field keeps its HL7 number.

    Example:
        segment = parse_segment("PID|1||P12345||Doe^John", DEFAULT_ENCODING)
        segment.get_value(3)     # Returns "P12345"
        segment.get_value(5, 2)  # Returns "John"
    """
    parts = line.split(encoding.field_separator)
    segment_type = parts[0].strip()

    if segment_type == "MSH":
        fields = [Field.from_value(encoding.field_separator)]
        if len(parts) > 1:
            fields.append(Field.from_value(parts[1]))
        fields.extend(parse_field(token, encoding, options) for token in parts[2:])
    else:
        fields = [parse_field(token, encoding, options) for token in parts[1:]]

    return Segment(segment_type=segment_type, fields=tuple(fields))


def tokenize(
    message: str, options: ParsingOptions = DEFAULT_PARSING_OPTIONS
) -> Tuple[EncodingContext, Tuple[Segment, ...]]:
    """
    Tokenize a full message.

    Args:
        message: Raw message text starting with MSH
        options: Parsing options

    Returns:
        Tuple of (encoding context, segments in original order)

    Raises:
        StructuralError: If the text doesn't start with MSH
    """
    encoding = resolve_encoding(message)
    segments = tuple(
        parse_segment(line, encoding, options)
        for line in split_message_into_segments(message)
    )
    return encoding, segments
