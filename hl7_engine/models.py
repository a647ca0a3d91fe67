"""
Domain Models for the HL7 Engine

The module contains the immutable value objects produced by the engine:
the generic segment/field tree of a parsed message, the validation
result, and acknowledgments. Segments are not subclassed per type;
consumers look at ``segment_type`` and read fields by position.

Field tree:
    Field       -> one or more repetitions (split on ~)
    repetition  -> one or more components (split on ^)
    component   -> one or more sub-components (split on &), plain strings
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
import json

from .encoding import EncodingContext, DEFAULT_ENCODING
from .exceptions import InvalidAckCodeError


Component = Tuple[str, ...]
Repetition = Tuple[Component, ...]


@dataclass(frozen=True)
class Field:
    """
    One field of a segment.

    Attributes:
        repetitions: Repeated values of the field. A field without
            repetition separators has exactly one repetition.
    """

    repetitions: Tuple[Repetition, ...] = ((("",),),)

    @classmethod
    def from_value(cls, value: str) -> "Field":
        """Build a scalar field holding a single, already decoded string."""
        return cls(repetitions=(((value,),),))

    @property
    def is_repeated(self) -> bool:
        return len(self.repetitions) > 1

    @property
    def is_empty(self) -> bool:
        return all(
            sub == "" for rep in self.repetitions for comp in rep for sub in comp
        )

    @property
    def value(self) -> str:
        """First sub-component of the first component of the first repetition."""
        return self.get_component(1)

    @property
    def components(self) -> Tuple[Component, ...]:
        """Components of the first repetition."""
        return self.repetitions[0]

    def get_component(
        self, component: int = 1, subcomponent: int = 1, repetition: int = 1
    ) -> str:
        """
        Safely get a component value using HL7 1-based positions.

        Returns an empty string for any position that doesn't exist.

        Example:
            name = Field(repetitions=((("Doe",), ("John",)),))
            name.get_component(2)  # Returns "John"
            name.get_component(7)  # Returns ""
        """
        if repetition < 1 or repetition > len(self.repetitions):
            return ""
        components = self.repetitions[repetition - 1]
        if component < 1 or component > len(components):
            return ""
        subcomponents = components[component - 1]
        if subcomponent < 1 or subcomponent > len(subcomponents):
            return ""
        return subcomponents[subcomponent - 1]

    def to_python(self):
        """
        Convert to plain strings and lists, collapsing single-element levels.

        Examples:
            "A"      -> "A"
            "A^B"    -> ["A", "B"]
            "A^B~C"  -> [["A", "B"], "C"]   (one entry per repetition)
        """

        def collapse_component(component):
            return component[0] if len(component) == 1 else list(component)

        def collapse_repetition(rep):
            if len(rep) == 1:
                return collapse_component(rep[0])
            return [collapse_component(comp) for comp in rep]

        if len(self.repetitions) == 1:
            return collapse_repetition(self.repetitions[0])
        return [collapse_repetition(rep) for rep in self.repetitions]


EMPTY_FIELD = Field()


@dataclass(frozen=True)
class Segment:
    """
    One segment (line) of an HL7 message.

    Attributes:
        segment_type: Three-letter segment code taken from the first token (e.g. "PID")
        fields: Fields in order. fields[0] is field 1 (PID-1, MSH-1...).
            Empty fields are kept so positions never shift.
    """

    segment_type: str
    fields: Tuple[Field, ...] = ()

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def get_field(self, index: int) -> Field:
        """
        Get a field by its HL7 position (PID-3 is get_field(3)).

        Returns an empty Field if the segment is shorter than that.
        """
        if 1 <= index <= len(self.fields):
            return self.fields[index - 1]
        return EMPTY_FIELD

    def get_value(
        self,
        index: int,
        component: int = 1,
        subcomponent: int = 1,
        repetition: int = 1,
    ) -> str:
        """
        Get a single string from the segment.

        Example:
            pid.get_value(5, 2)  # PID-5.2, the given name
        """
        return self.get_field(index).get_component(component, subcomponent, repetition)

    def to_dict(self) -> dict:
        return {
            "segment_type": self.segment_type,
            "fields": [f.to_python() for f in self.fields],
        }


@dataclass(frozen=True)
class Message:
    """
    A parsed HL7 v2 message.

    Header attributes are lifted from MSH; every segment, MSH included,
    is kept in ``segments`` in the original order.

    Attributes:
        message_type: MSH-9.1 (e.g. "ADT")
        trigger_event: MSH-9.2 (e.g. "A01")
        message_structure: MSH-9.3 (e.g. "ADT_A01")
        message_control_id: MSH-10
        sending_application: MSH-3
        sending_facility: MSH-4
        receiving_application: MSH-5
        receiving_facility: MSH-6
        timestamp: MSH-7 parsed, or None when missing/unparseable
        raw_timestamp: MSH-7 exactly as received
        processing_id: MSH-11
        version_id: MSH-12
        sequence_number: MSH-13 as int, or None
        continuation_pointer: MSH-14
        accept_ack_type: MSH-15
        application_ack_type: MSH-16
        country_code: MSH-17
        character_set: MSH-18
        principal_language: MSH-19
        segments: All segments in order
        encoding: Delimiters declared by this message
        raw_message: The original text
    """

    message_type: str = ""
    trigger_event: str = ""
    message_structure: str = ""
    message_control_id: str = ""
    sending_application: str = ""
    sending_facility: str = ""
    receiving_application: str = ""
    receiving_facility: str = ""
    timestamp: Optional[datetime] = None
    raw_timestamp: str = ""
    processing_id: str = ""
    version_id: str = ""
    sequence_number: Optional[int] = None
    continuation_pointer: str = ""
    accept_ack_type: str = ""
    application_ack_type: str = ""
    country_code: str = ""
    character_set: str = ""
    principal_language: str = ""
    segments: Tuple[Segment, ...] = ()
    encoding: EncodingContext = DEFAULT_ENCODING
    raw_message: str = ""

    def get_segment(self, segment_type: str) -> Optional[Segment]:
        """First segment of the given type, or None."""
        for segment in self.segments:
            if segment.segment_type == segment_type:
                return segment
        return None

    def get_segments(self, segment_type: str) -> Tuple[Segment, ...]:
        """All segments of the given type, in message order."""
        return tuple(s for s in self.segments if s.segment_type == segment_type)

    def to_dict(self) -> dict:
        """Convert message to a dictionary suitable for JSON output."""
        return {
            "message_type": self.message_type,
            "trigger_event": self.trigger_event,
            "message_structure": self.message_structure,
            "message_control_id": self.message_control_id,
            "sending_application": self.sending_application,
            "sending_facility": self.sending_facility,
            "receiving_application": self.receiving_application,
            "receiving_facility": self.receiving_facility,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "raw_timestamp": self.raw_timestamp,
            "processing_id": self.processing_id,
            "version_id": self.version_id,
            "segments": [segment.to_dict() for segment in self.segments],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert message to formatted JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class Finding:
    """
    A single validation finding.

    Attributes:
        severity: "error" or "warning"
        code: Short machine-readable code (e.g. "required-segment")
        message: Human-readable description
        location: Where the problem is (e.g. "MSH-7", "segments")
    """

    severity: str
    code: str
    message: str
    location: str = ""

    def to_dict(self) -> dict:
        return {
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "location": self.location,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a message. ``valid`` is False if any finding counts as an error."""

    valid: bool
    findings: Tuple[Finding, ...] = ()

    @property
    def errors(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity == SEVERITY_ERROR)

    @property
    def warnings(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity == SEVERITY_WARNING)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class AckCode(Enum):
    """HL7 table 0008 acknowledgment codes."""

    APPLICATION_ACCEPT = "AA"
    APPLICATION_ERROR = "AE"
    APPLICATION_REJECT = "AR"
    COMMIT_ACCEPT = "CA"
    COMMIT_ERROR = "CE"
    COMMIT_REJECT = "CR"

    @classmethod
    def parse(cls, code) -> "AckCode":
        """
        Accept an AckCode or its two-letter string.

        Raises:
            InvalidAckCodeError: If the code is not in table 0008
        """
        if isinstance(code, cls):
            return code
        try:
            return cls(str(code).strip().upper())
        except ValueError:
            raise InvalidAckCodeError(str(code)) from None

    @property
    def is_accept(self) -> bool:
        return self in (AckCode.APPLICATION_ACCEPT, AckCode.COMMIT_ACCEPT)


@dataclass(frozen=True)
class ErrorCondition:
    """
    Error detail carried in the ERR segment of an acknowledgment.

    Attributes:
        error_code: HL7 error code (ERR-3), e.g. "207"
        error_description: Diagnostic text (ERR-7)
        error_location: Location of the error (ERR-2), e.g. "PID^1^3"
        severity: ERR-4, "E" (error), "W" (warning) or "I" (information)
        user_message: Text meant for the end user (ERR-8)
    """

    error_code: str
    error_description: str = ""
    error_location: str = ""
    severity: str = "E"
    user_message: str = ""


@dataclass(frozen=True)
class Acknowledgment:
    """
    An ACK reply to a received message.

    Routing fields are already swapped, so ``sending_application`` is the
    application that received the original message.
    """

    message_control_id: str
    acknowledgment_code: AckCode
    text_message: Optional[str] = None
    error_condition: Optional[ErrorCondition] = None
    timestamp: Optional[datetime] = None
    expected_sequence_number: Optional[int] = None
    trigger_event: str = ""
    sending_application: str = ""
    sending_facility: str = ""
    receiving_application: str = ""
    receiving_facility: str = ""
    processing_id: str = "P"
    version_id: str = "2.5.1"
    encoding: EncodingContext = field(default=DEFAULT_ENCODING)
    message_type: str = "ACK"

    def to_dict(self) -> dict:
        result = {
            "message_type": self.message_type,
            "message_control_id": self.message_control_id,
            "acknowledgment_code": self.acknowledgment_code.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
        if self.text_message is not None:
            result["text_message"] = self.text_message
        if self.error_condition is not None:
            result["error_condition"] = {
                "error_code": self.error_condition.error_code,
                "error_description": self.error_condition.error_description,
                "error_location": self.error_condition.error_location,
                "severity": self.error_condition.severity,
                "user_message": self.error_condition.user_message,
            }
        return result
