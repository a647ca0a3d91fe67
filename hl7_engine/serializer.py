"""
HL7 Serializer

Renders segments, messages and acknowledgments back to wire text. Values
in the model are stored decoded, so every sub-component is escaped on
the way out with the message's own encoding characters.
"""

from typing import List, Optional, Tuple

from .encoding import EncodingContext, SEGMENT_TERMINATOR, escape
from .models import Acknowledgment, Field, Message, Segment
from .parser import format_hl7_timestamp


def field_to_string(field: Field, encoding: EncodingContext) -> str:
    """
    Render one field.

    Example:
        field_to_string(Field(((("Doe",), ("John",)),)), DEFAULT_ENCODING)
        # Returns "Doe^John"
    """
    return encoding.repetition_separator.join(
        encoding.component_separator.join(
            encoding.subcomponent_separator.join(
                escape(sub, encoding) for sub in component
            )
            for component in repetition
        )
        for repetition in field.repetitions
    )


def segment_to_string(segment: Segment, encoding: EncodingContext) -> str:
    """
    Render one segment without its terminator.

    MSH is written as "MSH" + MSH-1 + MSH-2 verbatim, followed by the
    remaining fields, which is the inverse of how the tokenizer reads it.
    """
    fs = encoding.field_separator

    if segment.segment_type == "MSH":
        if len(segment.fields) < 2:
            return "MSH" + fs + encoding.encoding_characters
        parts = [segment.fields[1].value]
        parts.extend(field_to_string(f, encoding) for f in segment.fields[2:])
        return "MSH" + fs + fs.join(parts)

    parts = [segment.segment_type]
    parts.extend(field_to_string(f, encoding) for f in segment.fields)
    return fs.join(parts)


def segments_to_string(
    segments: Tuple[Segment, ...], encoding: EncodingContext
) -> str:
    """Render segments, each followed by a carriage return."""
    return "".join(
        segment_to_string(segment, encoding) + SEGMENT_TERMINATOR
        for segment in segments
    )


def message_to_string(
    message: Message, encoding: Optional[EncodingContext] = None
) -> str:
    """
    Render a parsed message back to wire text.

    Args:
        message: Message to render
        encoding: Delimiters to use; defaults to the message's own

    Returns:
        Message text with \\r segment terminators
    """
    return segments_to_string(message.segments, encoding or message.encoding)


def _trimmed(values: List[str]) -> List[str]:
    """Drop trailing empty fields, keeping positions of the rest."""
    while values and not values[-1]:
        values.pop()
    return values


def _segment(segment_type: str, values: List[str]) -> Segment:
    return Segment(
        segment_type=segment_type,
        fields=tuple(Field.from_value(value) for value in values),
    )


def acknowledgment_segments(
    ack: Acknowledgment,
    sending_application: Optional[str] = None,
    sending_facility: Optional[str] = None,
    receiving_application: Optional[str] = None,
    receiving_facility: Optional[str] = None,
    control_id: Optional[str] = None,
) -> Tuple[Segment, ...]:
    """
    Build the MSH, MSA and optional ERR segments of an acknowledgment.

    Routing arguments left as None fall back to the acknowledgment's own
    (already swapped) routing. MSH-10 echoes the original control ID
    unless ``control_id`` is given.
    """
    encoding = ack.encoding

    if ack.trigger_event:
        msh_9 = Field(repetitions=((("ACK",), (ack.trigger_event,), ("ACK",)),))
    else:
        msh_9 = Field.from_value("ACK")

    msh = Segment(
        segment_type="MSH",
        fields=(
            Field.from_value(encoding.field_separator),
            Field.from_value(encoding.encoding_characters),
            Field.from_value(
                ack.sending_application
                if sending_application is None
                else sending_application
            ),
            Field.from_value(
                ack.sending_facility if sending_facility is None else sending_facility
            ),
            Field.from_value(
                ack.receiving_application
                if receiving_application is None
                else receiving_application
            ),
            Field.from_value(
                ack.receiving_facility
                if receiving_facility is None
                else receiving_facility
            ),
            Field.from_value(
                format_hl7_timestamp(ack.timestamp) if ack.timestamp else ""
            ),
            Field.from_value(""),
            msh_9,
            Field.from_value(
                ack.message_control_id if control_id is None else control_id
            ),
            Field.from_value(ack.processing_id),
            Field.from_value(ack.version_id),
        ),
    )

    msa = _segment(
        "MSA",
        _trimmed(
            [
                ack.acknowledgment_code.value,
                ack.message_control_id,
                ack.text_message or "",
                ""
                if ack.expected_sequence_number is None
                else str(ack.expected_sequence_number),
            ]
        ),
    )

    segments = [msh, msa]

    if ack.error_condition is not None:
        error = ack.error_condition
        # ERR-2 location, ERR-3 code, ERR-4 severity, ERR-7 diagnostics, ERR-8 user message
        segments.append(
            _segment(
                "ERR",
                _trimmed(
                    [
                        "",
                        error.error_location,
                        error.error_code,
                        error.severity,
                        "",
                        "",
                        error.error_description,
                        error.user_message,
                    ]
                ),
            )
        )

    return tuple(segments)


def acknowledge_to_string(
    ack: Acknowledgment,
    sending_application: Optional[str] = None,
    sending_facility: Optional[str] = None,
    receiving_application: Optional[str] = None,
    receiving_facility: Optional[str] = None,
    control_id: Optional[str] = None,
) -> str:
    """
    Render an acknowledgment to HL7 wire text.

    The reply uses the encoding characters of the message it answers.

    Args:
        ack: Acknowledgment built by generate_acknowledgment()
        sending_application: MSH-3 of the reply (default: original receiver)
        sending_facility: MSH-4 of the reply
        receiving_application: MSH-5 of the reply (default: original sender)
        receiving_facility: MSH-6 of the reply
        control_id: MSH-10 of the reply (default: original control ID)

    Returns:
        ACK message text

    Example:
        text = acknowledge_to_string(ack, "OMNICARE", "HOSPITAL", "APP", "FACILITY")
        # MSH|^~\\&|OMNICARE|HOSPITAL|APP|FACILITY|20250502130000+0000||ACK^A01^ACK|MSG003|P|2.5.1
        # MSA|AA|MSG003
    """
    segments = acknowledgment_segments(
        ack,
        sending_application,
        sending_facility,
        receiving_application,
        receiving_facility,
        control_id,
    )
    return segments_to_string(segments, ack.encoding)
