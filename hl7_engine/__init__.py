"""
HL7 v2.x Message Engine

A Python package that turns raw pipe-delimited HL7 v2 messages (ADT,
ORU, SIU, ...) into a navigable segment/field tree, validates them
against structural rules, and builds acknowledgments.

Example usage:
    from hl7_engine import (
        AckCode,
        acknowledge_to_string,
        generate_acknowledgment,
        parse_message,
        validate_message,
    )

    message = parse_message(raw_text)
    result = validate_message(message)
    code = AckCode.APPLICATION_ACCEPT if result.valid else AckCode.APPLICATION_ERROR
    reply = acknowledge_to_string(generate_acknowledgment(message, code))
"""

import logging

from .parser import (
    parse_message,
    parse_hl7_file,
    parse_hl7_timestamp,
    format_hl7_timestamp,
)

from .validator import validate_message, REQUIRED_SEGMENTS, SUPPORTED_MESSAGE_TYPES

from .acknowledgment import generate_acknowledgment, parse_acknowledgment

from .serializer import acknowledge_to_string, message_to_string

from .encoding import EncodingContext, DEFAULT_ENCODING, resolve_encoding

from .config import ParsingOptions, ValidationConfig

from .models import (
    Field,
    Segment,
    Message,
    Finding,
    ValidationResult,
    AckCode,
    ErrorCondition,
    Acknowledgment,
)

from .exceptions import (
    HL7ParserError,
    StructuralError,
    InvalidAckCodeError,
    MissingSegmentError,
)

__all__ = [
    # Parsing
    "parse_message",
    "parse_hl7_file",
    "parse_hl7_timestamp",
    "format_hl7_timestamp",
    # Validation
    "validate_message",
    "REQUIRED_SEGMENTS",
    "SUPPORTED_MESSAGE_TYPES",
    # Acknowledgments and serialization
    "generate_acknowledgment",
    "parse_acknowledgment",
    "acknowledge_to_string",
    "message_to_string",
    # Encoding and options
    "EncodingContext",
    "DEFAULT_ENCODING",
    "resolve_encoding",
    "ParsingOptions",
    "ValidationConfig",
    # Domain models
    "Field",
    "Segment",
    "Message",
    "Finding",
    "ValidationResult",
    "AckCode",
    "ErrorCondition",
    "Acknowledgment",
    # Exceptions
    "HL7ParserError",
    "StructuralError",
    "InvalidAckCodeError",
    "MissingSegmentError",
]

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
