"""
HL7 Acknowledgment Generator

Builds ACK replies for received messages. The caller always chooses the
acknowledgment code; nothing here infers accept or reject from the
message. Rendering to text lives in serializer.acknowledge_to_string().

Usage:
    from hl7_engine import AckCode, generate_acknowledgment, acknowledge_to_string

    ack = generate_acknowledgment(message, AckCode.APPLICATION_ACCEPT)
    reply = acknowledge_to_string(ack)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .config import ParsingOptions, DEFAULT_PARSING_OPTIONS
from .exceptions import MissingSegmentError
from .models import AckCode, Acknowledgment, ErrorCondition, Message
from .parser import parse_message

logger = logging.getLogger(__name__)


DEFAULT_PROCESSING_ID = "P"
DEFAULT_VERSION_ID = "2.5.1"


def generate_acknowledgment(
    message: Message,
    ack_code,
    text_message: Optional[str] = None,
    error_condition: Optional[ErrorCondition] = None,
    expected_sequence_number: Optional[int] = None,
    timestamp: Optional[datetime] = None,
) -> Acknowledgment:
    """
    Build an acknowledgment for a received message.

    Sending and receiving application/facility are swapped so the reply
    is addressed back to the original sender, and the original encoding
    characters, processing ID and version are echoed.

    Args:
        message: The message being acknowledged
        ack_code: AckCode member or its code ("AA", "AE", ...)
        text_message: Optional MSA-3 text; an empty string is stored as None
        error_condition: Optional error detail, rendered as ERR
        expected_sequence_number: Optional MSA-4
        timestamp: Reply timestamp (default: now, UTC); truncated to whole
            seconds, the precision MSH-7 is written with

    Returns:
        Acknowledgment

    Raises:
        InvalidAckCodeError: If ack_code is not an HL7 acknowledgment code
    """
    code = AckCode.parse(ack_code)

    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    timestamp = timestamp.replace(microsecond=0)

    ack = Acknowledgment(
        message_control_id=message.message_control_id,
        acknowledgment_code=code,
        text_message=text_message or None,
        error_condition=error_condition,
        timestamp=timestamp,
        expected_sequence_number=expected_sequence_number,
        trigger_event=message.trigger_event,
        sending_application=message.receiving_application,
        sending_facility=message.receiving_facility,
        receiving_application=message.sending_application,
        receiving_facility=message.sending_facility,
        processing_id=message.processing_id or DEFAULT_PROCESSING_ID,
        version_id=message.version_id or DEFAULT_VERSION_ID,
        encoding=message.encoding,
    )

    logger.debug(
        "Generated %s acknowledgment for control_id=%s",
        code.value,
        message.message_control_id,
    )
    return ack


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def parse_acknowledgment(
    text: str, options: ParsingOptions = DEFAULT_PARSING_OPTIONS
) -> Acknowledgment:
    """
    Read an ACK message back into an Acknowledgment.

    The acknowledged control ID comes from MSA-2, not MSH-10, since a
    reply may carry a control ID of its own.

    Raises:
        StructuralError: If the text is not an HL7 message
        MissingSegmentError: If there is no MSA segment
        InvalidAckCodeError: If MSA-1 is not an acknowledgment code
    """
    message = parse_message(text, options)

    msa = message.get_segment("MSA")
    if msa is None:
        raise MissingSegmentError("MSA")

    error_condition = None
    err = message.get_segment("ERR")
    if err is not None:
        error_condition = ErrorCondition(
            error_code=err.get_value(3),
            error_description=err.get_value(7),
            error_location=err.get_value(2),
            severity=err.get_value(4),
            user_message=err.get_value(8),
        )

    return Acknowledgment(
        message_control_id=msa.get_value(2),
        acknowledgment_code=AckCode.parse(msa.get_value(1)),
        text_message=msa.get_value(3) or None,
        error_condition=error_condition,
        timestamp=message.timestamp,
        expected_sequence_number=_parse_int(msa.get_value(4)),
        trigger_event=message.trigger_event,
        sending_application=message.sending_application,
        sending_facility=message.sending_facility,
        receiving_application=message.receiving_application,
        receiving_facility=message.receiving_facility,
        processing_id=message.processing_id,
        version_id=message.version_id,
        encoding=message.encoding,
        message_type=message.message_type or "ACK",
    )
