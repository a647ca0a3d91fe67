"""
HL7 Structural Validator

Checks a parsed message against structural rules and returns a
ValidationResult. It never raises: callers that need strict rejection
inspect ``valid`` and ``errors``; callers that only need best-effort
structure can skip validation entirely.

Rules, in order:
1. The message has at least one segment
2. The first segment is MSH
3. Required segments for known message types are present
4. MSH and PID (when present) carry at least one field
5. Header quality: message type, control ID and MSH-7 timestamp (warnings)

Field data types are not checked here.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from .config import ValidationConfig, DEFAULT_VALIDATION_CONFIG
from .exceptions import HL7ParserError
from .models import (
    Finding,
    Message,
    ValidationResult,
    SEVERITY_ERROR,
    SEVERITY_WARNING,
)
from .parser import parse_message

logger = logging.getLogger(__name__)


# Minimal segments each message type must contain.
# Types outside this table are accepted without type-specific checks.
REQUIRED_SEGMENTS: Dict[str, Tuple[str, ...]] = {
    "ADT": ("PID",),
    "ORM": ("PID", "ORC"),
    "ORU": ("OBR", "OBX"),
    "ORL": ("MSA",),
    "SIU": ("SCH",),
    "DFT": ("PID", "FT1"),
    "MFN": ("MFI",),
    "RAS": ("ORC", "RXA"),
    "RDE": ("ORC", "RXE"),
    "RDS": ("ORC", "RXD"),
    "MDM": ("EVN", "PID", "TXA"),
    "ACK": ("MSA",),
}

SUPPORTED_MESSAGE_TYPES = tuple(REQUIRED_SEGMENTS)

# Segments that are useless without at least one field
_SEGMENTS_NEEDING_FIELDS = ("MSH", "PID")


def _error(code: str, message: str, location: str) -> Finding:
    return Finding(SEVERITY_ERROR, code, message, location)


def _warning(code: str, message: str, location: str) -> Finding:
    return Finding(SEVERITY_WARNING, code, message, location)


def _required_segments(
    message_type: str, config: ValidationConfig
) -> Optional[Tuple[str, ...]]:
    """Required segments for a type, or None when the type is unknown."""
    rules = dict(REQUIRED_SEGMENTS)
    if config.required_segments:
        rules.update(
            {key.upper(): value for key, value in config.required_segments.items()}
        )
    required = rules.get(message_type.upper())
    return None if required is None else tuple(required)


def check_structure(message: Message) -> List[Finding]:
    """Rules 1 and 2: non-empty segment list starting with MSH."""
    if not message.segments:
        return [_error("empty-message", "Message contains no segments", "segments")]

    first = message.segments[0].segment_type
    if first != "MSH":
        return [
            _error(
                "first-segment",
                f"First segment must be MSH, found '{first}'",
                "segments[0]",
            )
        ]
    return []


def check_required_segments(
    message: Message, config: ValidationConfig = DEFAULT_VALIDATION_CONFIG
) -> List[Finding]:
    """
    Rule 3: every required segment for the message type is present.

    Unknown message types produce a single warning and no requirements.
    """
    message_type = message.message_type
    if not message_type:
        return []

    required = _required_segments(message_type, config)
    if required is None:
        return [
            _warning(
                "unknown-message-type",
                f"Message type '{message_type}' is not a known type; "
                "only structural checks were applied",
                "MSH-9",
            )
        ]

    present = {segment.segment_type for segment in message.segments}
    return [
        _error(
            "required-segment",
            f"{segment_type} segment is required for {message_type} messages",
            segment_type,
        )
        for segment_type in required
        if segment_type not in present
    ]


def check_segment_fields(message: Message) -> List[Finding]:
    """Rule 4: MSH and PID segments carry at least one non-empty field."""
    findings = []
    for position, segment in enumerate(message.segments):
        if segment.segment_type not in _SEGMENTS_NEEDING_FIELDS:
            continue
        # MSH-1 is the separator itself, so it doesn't count as content
        fields = segment.fields
        if segment.segment_type == "MSH":
            fields = fields[1:]
        if not any(not f.is_empty for f in fields):
            findings.append(
                _error(
                    "empty-segment",
                    f"{segment.segment_type} segment has no fields",
                    f"segments[{position}]",
                )
            )
    return findings


def check_header(
    message: Message, config: ValidationConfig = DEFAULT_VALIDATION_CONFIG
) -> List[Finding]:
    """Rule 5: header values that a receiver needs to route and acknowledge."""
    findings = []
    if not message.message_type:
        findings.append(
            _warning("required-field", "Message type (MSH-9) is missing", "MSH-9")
        )
    if not message.message_control_id:
        findings.append(
            _warning(
                "required-field",
                "Message control ID (MSH-10) is missing",
                "MSH-10",
            )
        )
    if config.validate_timestamp and message.timestamp is None:
        if message.raw_timestamp:
            text = (
                f"Message timestamp (MSH-7) '{message.raw_timestamp}' "
                "could not be parsed"
            )
        else:
            text = "Message timestamp (MSH-7) is missing"
        findings.append(_warning("invalid-timestamp", text, "MSH-7"))
    return findings


def _run_checks(message: Message, config: ValidationConfig) -> List[Finding]:
    findings = check_structure(message)
    if message.segments:
        findings.extend(check_required_segments(message, config))
        findings.extend(check_segment_fields(message))
        findings.extend(check_header(message, config))
    return findings


def validate_message(
    message: Union[Message, str],
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
) -> ValidationResult:
    """
    Validate a message (or raw message text) against structural rules.

    Args:
        message: A parsed Message, or raw text to parse first
        config: Validation options

    Returns:
        ValidationResult; ``valid`` is True when no finding is an error
        (or, in strict mode, when there are no findings at all). Input
        that is not shaped like a Message yields a single
        "validation-error" finding instead of an exception.

    Example:
        result = validate_message(parse_message(text))
        if not result.valid:
            for error in result.errors:
                print(error.message)
    """
    if isinstance(message, str):
        try:
            message = parse_message(message)
        except HL7ParserError as e:
            return ValidationResult(
                valid=False,
                findings=(_error("structure", str(e), "message"),),
            )

    try:
        findings = _run_checks(message, config)
    except (AttributeError, TypeError) as e:
        logger.debug("Validation could not inspect %s: %s", type(message).__name__, e)
        return ValidationResult(
            valid=False,
            findings=(
                _error(
                    "validation-error",
                    f"Message could not be validated: {e}",
                    "message",
                ),
            ),
        )

    if config.strict_mode:
        valid = not findings
    else:
        valid = not any(f.severity == SEVERITY_ERROR for f in findings)

    logger.debug(
        "Validated message control_id=%s valid=%s findings=%d",
        message.message_control_id,
        valid,
        len(findings),
    )
    return ValidationResult(valid=valid, findings=tuple(findings))
