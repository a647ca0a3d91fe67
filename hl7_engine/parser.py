"""
HL7 v2 Message Parser

This is the main parser module. It tokenizes raw text and lifts the MSH
header into typed Message metadata, keeping every segment (MSH
included) in order.

The flow is:
1. Strip MLLP framing and leading blank lines
2. Resolve the encoding characters from MSH (fails if there is no MSH)
3. Tokenize segments into the field tree
4. Read header values from fixed MSH positions
5. Return an immutable Message

Parsing is tolerant: anything that starts with a usable MSH produces a
Message. Missing header fields become empty strings and a bad MSH-7
becomes ``timestamp=None``; the validator reports such problems.

Usage:
    from hl7_engine import parse_message

    message = parse_message(raw_text)
    print(message.message_type, message.trigger_event)
    pid = message.get_segment("PID")
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from .config import ParsingOptions, DEFAULT_PARSING_OPTIONS
from .encoding import EncodingContext, strip_mllp_framing
from .exceptions import HL7ParserError, StructuralError
from .models import Field, Message, Segment
from .tokenizer import tokenize

logger = logging.getLogger(__name__)


# YYYYMMDD[HH[MM[SS[.S[S[S[S]]]]]]][+/-ZZZZ]
_TIMESTAMP_PATTERN = re.compile(
    r"^(\d{4})(\d{2})(\d{2})"
    r"(?:(\d{2})(?:(\d{2})(?:(\d{2})(?:\.(\d{1,4}))?)?)?)?"
    r"([+-]\d{4})?$"
)


def parse_hl7_timestamp(timestamp: str) -> Optional[datetime]:
    """
    Convert an HL7 DTM/TS value to a datetime.

    The format is strict: date digits are required, time parts are
    optional but must nest (no minutes without hours), and an optional
    +/-HHMM offset makes the result timezone-aware.

    Args:
        timestamp: HL7 formatted timestamp string

    Returns:
        datetime, or None if the value is empty or invalid

    Examples:
        parse_hl7_timestamp("20250502130000")  # datetime(2025, 5, 2, 13, 0)
        parse_hl7_timestamp("20250502")        # datetime(2025, 5, 2, 0, 0)
        parse_hl7_timestamp("2025-05-02")      # None
    """
    if not timestamp:
        return None

    match = _TIMESTAMP_PATTERN.match(timestamp.strip())
    if not match:
        return None

    year, month, day, hour, minute, second, fraction, offset = match.groups()

    tzinfo = None
    if offset:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[3:5])
        if hours > 23 or minutes > 59:
            return None
        tzinfo = timezone(sign * timedelta(hours=hours, minutes=minutes))

    microsecond = int(fraction.ljust(6, "0")) if fraction else 0

    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            microsecond,
            tzinfo=tzinfo,
        )
    except ValueError:
        return None


def format_hl7_timestamp(value: datetime) -> str:
    """
    Format a datetime as an HL7 timestamp (YYYYMMDDHHMMSS[+/-ZZZZ]).

    Example:
        format_hl7_timestamp(datetime(2025, 5, 2, 13, 0))  # "20250502130000"
    """
    text = value.strftime("%Y%m%d%H%M%S")
    if value.tzinfo is not None:
        text += value.strftime("%z")
    return text


def split_message_type(msh_9: Field) -> Tuple[str, str, str]:
    """
    Split MSH-9 into message type, trigger event and message structure.

    Handles the usual "ADT^A01^ADT_A01" form as well as senders that only
    send the structure ("ADT_A01") or only the type ("ACK"). Missing
    parts are empty strings.

    Example:
        split_message_type(parse_field("ORU^R01", enc))  # ("ORU", "R01", "")
        split_message_type(parse_field("ADT_A01", enc))  # ("ADT", "A01", "ADT_A01")
    """
    message_type = msh_9.get_component(1).strip()
    trigger_event = msh_9.get_component(2).strip()
    message_structure = msh_9.get_component(3).strip()

    if not trigger_event and "_" in message_type:
        structure = message_type
        message_type, _, trigger_event = structure.partition("_")
        message_structure = message_structure or structure

    return message_type, trigger_event, message_structure


def _parse_sequence_number(value: str) -> Optional[int]:
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def build_message(
    segments: Tuple[Segment, ...], encoding: EncodingContext, raw_message: str = ""
) -> Message:
    """
    Build a Message from tokenized segments.

    Header values are read from the first segment, which must be MSH.
    Positions follow the HL7 MSH definition (MSH-3 sending application,
    MSH-9 message type, MSH-10 control ID...).

    Raises:
        StructuralError: If there are no segments or the first one isn't MSH
    """
    if not segments or segments[0].segment_type != "MSH":
        raise StructuralError("First segment must be MSH")

    msh = segments[0]
    message_type, trigger_event, message_structure = split_message_type(
        msh.get_field(9)
    )

    raw_timestamp = msh.get_value(7)
    timestamp = parse_hl7_timestamp(raw_timestamp)
    if raw_timestamp and timestamp is None:
        logger.warning(
            "Unparseable MSH-7 timestamp %r in message %s",
            raw_timestamp,
            msh.get_value(10),
        )

    return Message(
        message_type=message_type,
        trigger_event=trigger_event,
        message_structure=message_structure,
        message_control_id=msh.get_value(10),
        sending_application=msh.get_value(3),
        sending_facility=msh.get_value(4),
        receiving_application=msh.get_value(5),
        receiving_facility=msh.get_value(6),
        timestamp=timestamp,
        raw_timestamp=raw_timestamp,
        processing_id=msh.get_value(11),
        version_id=msh.get_value(12),
        sequence_number=_parse_sequence_number(msh.get_value(13)),
        continuation_pointer=msh.get_value(14),
        accept_ack_type=msh.get_value(15),
        application_ack_type=msh.get_value(16),
        country_code=msh.get_value(17),
        character_set=msh.get_value(18),
        principal_language=msh.get_value(19),
        segments=segments,
        encoding=encoding,
        raw_message=raw_message,
    )


def parse_message(
    message: str, options: ParsingOptions = DEFAULT_PARSING_OPTIONS
) -> Message:
    """
    Parse a single HL7 v2 message.

    Args:
        message: Raw HL7 message text
        options: Parsing options

    Returns:
        Message with header metadata and all segments

    Raises:
        StructuralError: If the text doesn't start with a usable MSH segment

    Example:
        message = parse_message(
            "MSH|^~\\\\&|SENDER|FAC|REC|FAC|20250502130000||ADT^A01|123|P|2.5\\r"
            "PID|1||P12345||Doe^John||19850210|M"
        )
        message.message_type           # "ADT"
        message.get_segment("PID").get_value(5, 2)  # "John"
    """
    if not isinstance(message, str):
        raise StructuralError(
            f"Expected message text, got {type(message).__name__}"
        )

    if options.strip_mllp_framing:
        text = strip_mllp_framing(message)
    else:
        text = message.lstrip(" \t\r\n\ufeff")

    try:
        encoding, segments = tokenize(text, options)
        result = build_message(segments, encoding, raw_message=message)
    except HL7ParserError:
        raise
    except Exception as e:
        raise StructuralError(f"Unexpected error while parsing: {e}") from e

    logger.debug(
        "Parsed HL7 message type=%s trigger=%s control_id=%s segments=%d",
        result.message_type,
        result.trigger_event,
        result.message_control_id,
        len(result.segments),
    )
    return result


def parse_hl7_file(
    file_path: str, options: ParsingOptions = DEFAULT_PARSING_OPTIONS
) -> Message:
    """
    Read a file containing one HL7 message and parse it.

    Raises:
        FileNotFoundError: If file doesn't exist
        StructuralError: If the content is not an HL7 message
    """
    with open(file_path, "r", encoding="utf-8") as f:
        content = f.read()

    return parse_message(content, options)
