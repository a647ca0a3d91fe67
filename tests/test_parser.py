"""
Unit Tests for the HL7 Tokenizer and Message Parser

Tests cover:
- Encoding character resolution from MSH
- Segment/field/component/repetition splitting and escape decoding
- Message header extraction and tolerant timestamp handling
- Structural failures for non-HL7 input
- Rendering parsed messages back to wire text

Run tests with: python -m pytest tests/test_parser.py -v
Or: python -m unittest tests.test_parser
"""

import dataclasses
import json
import os
import tempfile
import unittest
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from hl7_engine.config import ParsingOptions
from hl7_engine.encoding import (
    DEFAULT_ENCODING,
    EncodingContext,
    escape,
    resolve_encoding,
    strip_mllp_framing,
    unescape,
)
from hl7_engine.exceptions import HL7ParserError, StructuralError
from hl7_engine.parser import (
    format_hl7_timestamp,
    parse_hl7_file,
    parse_hl7_timestamp,
    parse_message,
    split_message_type,
)
from hl7_engine.serializer import field_to_string, message_to_string
from hl7_engine.tokenizer import (
    parse_field,
    parse_segment,
    split_message_into_segments,
)


ADT_A01 = (
    "MSH|^~\\&|SENDING_APP|SENDING_FACILITY|RECEIVING_APP|RECEIVING_FACILITY|"
    "20240101120000||ADT^A01^ADT_A01|MSG001|P|2.5.1\r"
    "EVN|A01|20240101120000\r"
    "PID|1||123456^^^MRN||Doe^John^M||19800101|M|||123 Main St^^Anytown^ST^12345\r"
    "PV1|1|I|ICU^101^A"
)

ORU_R01 = (
    "MSH|^~\\&|LAB_SYSTEM|LAB|EMR|HOSPITAL|20240101130000||ORU^R01|LAB001|P|2.5.1\r"
    "PID|1||654321^^^MRN||Roe^Jane||19750505|F\r"
    "OBR|1|ORD001|FIL001|CBC^Complete Blood Count\r"
    "OBX|1|NM|WBC^White Blood Cells||7.2|10^3/uL|4.0-11.0|N|||F\r"
    "OBX|2|NM|RBC^Red Blood Cells||4.8|10^6/uL|4.2-5.9|N|||F\r"
    "OBX|3|NM|HGB^Hemoglobin||14.1|g/dL|13.0-17.0|N|||F"
)


class TestResolveEncoding(unittest.TestCase):
    """Tests for encoding character resolution."""

    def test_standard_encoding(self):
        """Test the usual |^~\\& delimiters."""
        encoding = resolve_encoding("MSH|^~\\&|APP")
        self.assertEqual(encoding, DEFAULT_ENCODING)
        self.assertEqual(encoding.encoding_characters, "^~\\&")

    def test_custom_encoding(self):
        """Test that non-standard delimiters are read from MSH."""
        encoding = resolve_encoding("MSH#$%@!#APP")
        self.assertEqual(encoding.field_separator, "#")
        self.assertEqual(encoding.component_separator, "$")
        self.assertEqual(encoding.repetition_separator, "%")
        self.assertEqual(encoding.escape_character, "@")
        self.assertEqual(encoding.subcomponent_separator, "!")

    def test_duplicate_encoding_characters_fall_back(self):
        """Test that a block repeating a character uses the defaults."""
        encoding = resolve_encoding("MSH|^^\\&|APP")
        self.assertEqual(encoding, EncodingContext(field_separator="|"))

    def test_short_encoding_block_falls_back(self):
        """Test that fewer than four encoding characters uses the defaults."""
        encoding = resolve_encoding("MSH|^~|APP")
        self.assertEqual(encoding.encoding_characters, "^~\\&")

    def test_truncation_character_accepted(self):
        """Test that a fifth truncation character is allowed in MSH-2."""
        encoding = resolve_encoding("MSH|^~\\&#|APP")
        self.assertEqual(encoding, DEFAULT_ENCODING)

        message = parse_message("MSH|^~\\&#|APP|FAC")
        self.assertEqual(message.segments[0].get_value(2), "^~\\&#")
        self.assertEqual(message.sending_application, "APP")

    def test_long_encoding_block_falls_back(self):
        """Test that extra characters after the encoding block use the defaults."""
        with self.assertLogs("hl7_engine.encoding", level="WARNING") as logs:
            encoding = resolve_encoding("MSH|^~\\&XY|APP")

        self.assertEqual(encoding, EncodingContext(field_separator="|"))
        self.assertIn("Malformed MSH encoding characters", logs.output[0])

    def test_malformed_block_with_clashing_separator(self):
        """Test that a bad block can't fall back when MSH-1 is one of ^~\\&."""
        with self.assertRaises(StructuralError):
            resolve_encoding("MSH^~\\&|X^Y")

    def test_bare_msh(self):
        """Test that a lone MSH uses the standard set."""
        self.assertEqual(resolve_encoding("MSH"), DEFAULT_ENCODING)

    def test_missing_msh(self):
        """Test that text not starting with MSH is rejected."""
        with self.assertRaises(StructuralError) as context:
            resolve_encoding("PID|1||123")
        self.assertIn("First segment must be MSH", str(context.exception))

    def test_garbled_field_separator(self):
        """Test that a letter after MSH is rejected."""
        with self.assertRaises(StructuralError):
            resolve_encoding("MSHELLO WORLD")


class TestEscapeSequences(unittest.TestCase):
    """Tests for escape decoding and encoding."""

    def test_structural_escapes(self):
        """Test the five delimiter escapes."""
        self.assertEqual(unescape("A\\F\\B"), "A|B")
        self.assertEqual(unescape("A\\S\\B"), "A^B")
        self.assertEqual(unescape("A\\T\\B"), "A&B")
        self.assertEqual(unescape("A\\R\\B"), "A~B")
        self.assertEqual(unescape("A\\E\\B"), "A\\B")

    def test_line_break(self):
        """Test that .br decodes to a carriage return."""
        self.assertEqual(unescape("Line 1\\.br\\Line 2"), "Line 1\rLine 2")

    def test_hex_escape(self):
        """Test hexadecimal escapes."""
        self.assertEqual(unescape("\\X41\\"), "A")
        self.assertEqual(unescape("A\\X0D\\B"), "A\rB")

    def test_formatting_hints_removed(self):
        """Test that highlight on/off codes decode to nothing."""
        self.assertEqual(unescape("\\H\\bold\\N\\"), "bold")

    def test_unknown_escape_passes_through(self):
        """Test that unknown codes are kept literally."""
        self.assertEqual(unescape("50\\Z\\mg"), "50\\Z\\mg")

    def test_unterminated_escape_passes_through(self):
        """Test that an escape without a closing character is kept."""
        self.assertEqual(unescape("abc\\F"), "abc\\F")

    def test_custom_escape_character(self):
        """Test decoding with the message's own escape character."""
        encoding = resolve_encoding("MSH#$%@!#")
        self.assertEqual(unescape("A@F@B", encoding), "A#B")

    def test_escape_delimiters(self):
        """Test that delimiters in values are escaped."""
        self.assertEqual(escape("Smith|Jones"), "Smith\\F\\Jones")
        self.assertEqual(escape("A^B&C~D\\E"), "A\\S\\B\\T\\C\\R\\D\\E\\E")
        self.assertEqual(escape("Line 1\rLine 2"), "Line 1\\.br\\Line 2")

    def test_escape_plain_value_unchanged(self):
        """Test that a value without delimiters is returned as is."""
        self.assertEqual(escape("plain text"), "plain text")


class TestSplitMessageIntoSegments(unittest.TestCase):
    """Tests for message splitting functionality."""

    def test_split_with_newlines(self):
        """Test splitting message with \\n separators."""
        message = "MSH|test\nPID|test\nPV1|test"
        segments = split_message_into_segments(message)

        self.assertEqual(len(segments), 3)
        self.assertTrue(segments[0].startswith("MSH"))

    def test_split_with_carriage_returns(self):
        """Test splitting message with \\r separators."""
        message = "MSH|test\rPID|test\rPV1|test"
        segments = split_message_into_segments(message)

        self.assertEqual(len(segments), 3)

    def test_split_with_crlf(self):
        """Test splitting message with \\r\\n separators."""
        message = "MSH|test\r\nPID|test\r\nPV1|test"
        segments = split_message_into_segments(message)

        self.assertEqual(len(segments), 3)

    def test_split_filters_empty_lines(self):
        """Test that empty and trailing lines are filtered out."""
        message = "MSH|test\n\n\nPID|test\r\r"
        segments = split_message_into_segments(message)

        self.assertEqual(segments, ["MSH|test", "PID|test"])


class TestParseSegment(unittest.TestCase):
    """Tests for segment tokenizing."""

    def test_segment_type_from_first_token(self):
        """Test that the segment type is the first token."""
        segment = parse_segment("PID|1||P12345", DEFAULT_ENCODING)
        self.assertEqual(segment.segment_type, "PID")

    def test_empty_fields_keep_positions(self):
        """Test that PID-3 stays PID-3 when PID-2 is empty."""
        segment = parse_segment("PID|1||P12345||Doe^John", DEFAULT_ENCODING)

        self.assertEqual(segment.field_count, 5)
        self.assertTrue(segment.get_field(2).is_empty)
        self.assertEqual(segment.get_value(3), "P12345")
        self.assertEqual(segment.get_value(5, 1), "Doe")
        self.assertEqual(segment.get_value(5, 2), "John")

    def test_field_out_of_range(self):
        """Test that reading past the end returns empty values."""
        segment = parse_segment("PV1|1|O", DEFAULT_ENCODING)

        self.assertEqual(segment.get_value(19), "")
        self.assertTrue(segment.get_field(19).is_empty)

    def test_msh_separator_is_first_field(self):
        """Test MSH-1 and MSH-2 handling."""
        segment = parse_segment("MSH|^~\\&|APP|FAC", DEFAULT_ENCODING)

        self.assertEqual(segment.get_value(1), "|")
        self.assertEqual(segment.get_value(2), "^~\\&")
        self.assertEqual(segment.get_value(3), "APP")
        self.assertEqual(segment.get_value(4), "FAC")

    def test_segment_without_fields(self):
        """Test a segment that is only its type code."""
        segment = parse_segment("PID", DEFAULT_ENCODING)

        self.assertEqual(segment.segment_type, "PID")
        self.assertEqual(segment.fields, ())


class TestParseField(unittest.TestCase):
    """Tests for field tokenizing."""

    def test_scalar_field(self):
        """Test a field without separators."""
        field = parse_field("P12345", DEFAULT_ENCODING)

        self.assertFalse(field.is_repeated)
        self.assertEqual(field.value, "P12345")

    def test_components(self):
        """Test component splitting."""
        field = parse_field("Doe^John^M", DEFAULT_ENCODING)
        self.assertEqual(field.components, (("Doe",), ("John",), ("M",)))

    def test_repetitions(self):
        """Test repetition splitting."""
        field = parse_field("123^^^MRN~456^^^SSN", DEFAULT_ENCODING)

        self.assertTrue(field.is_repeated)
        self.assertEqual(len(field.repetitions), 2)
        self.assertEqual(field.get_component(1, repetition=2), "456")
        self.assertEqual(field.get_component(4, repetition=2), "SSN")

    def test_subcomponents(self):
        """Test sub-component splitting."""
        field = parse_field("X&Y^Z", DEFAULT_ENCODING)

        self.assertEqual(field.get_component(1, 1), "X")
        self.assertEqual(field.get_component(1, 2), "Y")
        self.assertEqual(field.get_component(2), "Z")

    def test_escaped_separator_does_not_split(self):
        """Test that \\S\\ is decoded without creating a component."""
        field = parse_field("A\\S\\B", DEFAULT_ENCODING)
        self.assertEqual(field.components, (("A^B",),))

    def test_empty_field(self):
        """Test that an empty token is an empty value, not missing."""
        field = parse_field("", DEFAULT_ENCODING)

        self.assertTrue(field.is_empty)
        self.assertEqual(field.value, "")

    def test_whitespace_stripped_when_requested(self):
        """Test the preserve_whitespace option."""
        options = ParsingOptions(preserve_whitespace=False)

        self.assertEqual(parse_field("  x  ", DEFAULT_ENCODING, options).value, "x")
        self.assertEqual(parse_field("  x  ", DEFAULT_ENCODING).value, "  x  ")

    def test_field_to_string_round_trip(self):
        """Test rendering a parsed field gives back the same text."""
        token = "123^^^MRN~A\\F\\B&C"
        field = parse_field(token, DEFAULT_ENCODING)
        self.assertEqual(field_to_string(field, DEFAULT_ENCODING), token)

    def test_to_python(self):
        """Test conversion to plain values."""
        self.assertEqual(parse_field("A", DEFAULT_ENCODING).to_python(), "A")
        self.assertEqual(parse_field("A^B", DEFAULT_ENCODING).to_python(), ["A", "B"])
        self.assertEqual(
            parse_field("A^B~C", DEFAULT_ENCODING).to_python(), [["A", "B"], "C"]
        )


class TestParseHL7Timestamp(unittest.TestCase):
    """Tests for HL7 timestamp parsing."""

    def test_full_timestamp(self):
        """Test parsing a complete timestamp (YYYYMMDDHHMMSS)."""
        result = parse_hl7_timestamp("20250502130000")
        self.assertEqual(result, datetime(2025, 5, 2, 13, 0, 0))

    def test_timestamp_with_minutes(self):
        """Test parsing timestamp with hours and minutes only."""
        result = parse_hl7_timestamp("202505021430")
        self.assertEqual(result, datetime(2025, 5, 2, 14, 30))

    def test_date_only(self):
        """Test parsing date-only timestamp."""
        result = parse_hl7_timestamp("20250502")
        self.assertEqual(result, datetime(2025, 5, 2))

    def test_fractional_seconds(self):
        """Test parsing fractional seconds."""
        result = parse_hl7_timestamp("20250502130000.12")
        self.assertEqual(result.microsecond, 120000)

    def test_timestamp_with_timezone(self):
        """Test that an offset gives an aware datetime."""
        result = parse_hl7_timestamp("20250502130000+0500")
        self.assertEqual(
            result,
            datetime(2025, 5, 2, 13, 0, tzinfo=timezone(timedelta(hours=5))),
        )

    def test_empty_timestamp(self):
        """Test parsing empty timestamp."""
        self.assertIsNone(parse_hl7_timestamp(""))

    def test_invalid_timestamp(self):
        """Test parsing non-numeric timestamp."""
        self.assertIsNone(parse_hl7_timestamp("invalid"))

    def test_short_timestamp(self):
        """Test that a year alone is not accepted."""
        self.assertIsNone(parse_hl7_timestamp("2025"))

    def test_iso_format_rejected(self):
        """Test that dashes are not accepted."""
        self.assertIsNone(parse_hl7_timestamp("2025-05-02"))

    def test_impossible_date(self):
        """Test a month that doesn't exist."""
        self.assertIsNone(parse_hl7_timestamp("20251302"))

    def test_format_round_trip(self):
        """Test that formatting and parsing agree."""
        value = datetime(2025, 5, 2, 13, 0, 5, tzinfo=timezone.utc)
        text = format_hl7_timestamp(value)

        self.assertEqual(text, "20250502130005+0000")
        self.assertEqual(parse_hl7_timestamp(text), value)


class TestSplitMessageType(unittest.TestCase):
    """Tests for MSH-9 handling."""

    def test_type_and_trigger(self):
        """Test the common TYPE^TRIGGER form."""
        field = parse_field("ORU^R01", DEFAULT_ENCODING)
        self.assertEqual(split_message_type(field), ("ORU", "R01", ""))

    def test_full_form(self):
        """Test TYPE^TRIGGER^STRUCTURE."""
        field = parse_field("ADT^A01^ADT_A01", DEFAULT_ENCODING)
        self.assertEqual(split_message_type(field), ("ADT", "A01", "ADT_A01"))

    def test_structure_only(self):
        """Test a sender that only sends the structure identifier."""
        field = parse_field("ADT_A04", DEFAULT_ENCODING)
        self.assertEqual(split_message_type(field), ("ADT", "A04", "ADT_A04"))

    def test_type_only(self):
        """Test a bare message type."""
        field = parse_field("ACK", DEFAULT_ENCODING)
        self.assertEqual(split_message_type(field), ("ACK", "", ""))

    def test_missing(self):
        """Test an empty MSH-9."""
        field = parse_field("", DEFAULT_ENCODING)
        self.assertEqual(split_message_type(field), ("", "", ""))


class TestParseMessage(unittest.TestCase):
    """Integration tests for full message parsing."""

    def test_parse_adt_header(self):
        """Test header values of an ADT^A01 message."""
        message = parse_message(ADT_A01)

        self.assertEqual(message.message_type, "ADT")
        self.assertEqual(message.trigger_event, "A01")
        self.assertEqual(message.message_structure, "ADT_A01")
        self.assertEqual(message.message_control_id, "MSG001")
        self.assertEqual(message.sending_application, "SENDING_APP")
        self.assertEqual(message.sending_facility, "SENDING_FACILITY")
        self.assertEqual(message.receiving_application, "RECEIVING_APP")
        self.assertEqual(message.receiving_facility, "RECEIVING_FACILITY")
        self.assertEqual(message.timestamp, datetime(2024, 1, 1, 12, 0, 0))
        self.assertEqual(message.raw_timestamp, "20240101120000")
        self.assertEqual(message.processing_id, "P")
        self.assertEqual(message.version_id, "2.5.1")
        self.assertEqual(message.raw_message, ADT_A01)

    def test_unexpected_error_wrapped(self):
        """Test that a low-level failure surfaces as a StructuralError."""
        with mock.patch(
            "hl7_engine.parser.build_message", side_effect=ValueError("boom")
        ):
            with self.assertRaises(StructuralError) as context:
                parse_message(ADT_A01)

        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertIn("boom", str(context.exception))

    def test_segments_in_order(self):
        """Test that all segments, MSH included, are kept in order."""
        message = parse_message(ADT_A01)

        self.assertEqual(
            [s.segment_type for s in message.segments],
            ["MSH", "EVN", "PID", "PV1"],
        )
        self.assertIs(message.segments[0], message.get_segment("MSH"))

    def test_msh_pid_pv1(self):
        """Test a three-segment message."""
        text = (
            "MSH|^~\\&|A|B|C|D|20240101||ADT^A01|1|P|2.5\r"
            "PID|1||123\r"
            "PV1|1|O"
        )
        message = parse_message(text)

        self.assertEqual(len(message.segments), 3)
        for segment_type in ("MSH", "PID", "PV1"):
            self.assertIsNotNone(message.get_segment(segment_type))

    def test_oru_observations(self):
        """Test that every OBX is kept in order."""
        message = parse_message(ORU_R01)
        observations = message.get_segments("OBX")

        self.assertEqual(message.message_type, "ORU")
        self.assertEqual(message.trigger_event, "R01")
        self.assertIsNotNone(message.get_segment("OBR"))
        self.assertEqual(len(observations), 3)
        self.assertEqual(
            [obx.get_value(3) for obx in observations], ["WBC", "RBC", "HGB"]
        )
        self.assertEqual(observations[0].get_value(6, 2), "3/uL")

    def test_patient_fields(self):
        """Test reading PID values by position."""
        pid = parse_message(ADT_A01).get_segment("PID")

        self.assertEqual(pid.get_value(3), "123456")
        self.assertEqual(pid.get_value(3, 4), "MRN")
        self.assertEqual(pid.get_value(5, 1), "Doe")
        self.assertEqual(pid.get_value(5, 2), "John")
        self.assertEqual(pid.get_value(7), "19800101")
        self.assertEqual(pid.get_value(11, 3), "Anytown")

    def test_unknown_message_type(self):
        """Test that a non-standard type still parses."""
        message = parse_message(
            "MSH|^~\\&|A|B|C|D|20240101||XXX^Y99|1|P|2.5\rZZZ|custom"
        )

        self.assertEqual(message.message_type, "XXX")
        self.assertEqual(message.trigger_event, "Y99")
        self.assertEqual(message.get_segment("ZZZ").get_value(1), "custom")

    def test_custom_encoding_message(self):
        """Test a message declaring its own delimiters."""
        text = (
            "MSH#$%@!#APP#FAC#RAPP#RFAC#20240101##ADT$A01#C1#P#2.5\r"
            "PID#1##ID1##Doe$John@F@Jr"
        )
        message = parse_message(text)

        self.assertEqual(message.encoding.field_separator, "#")
        self.assertEqual(message.message_type, "ADT")
        self.assertEqual(message.trigger_event, "A01")
        self.assertEqual(message.get_segment("PID").get_value(5, 2), "John#Jr")

    def test_bad_timestamp_tolerated(self):
        """Test that an unparseable MSH-7 doesn't stop parsing."""
        message = parse_message("MSH|^~\\&|A|B|C|D|notadate||ADT^A01|1|P|2.5")

        self.assertIsNone(message.timestamp)
        self.assertEqual(message.raw_timestamp, "notadate")
        self.assertEqual(message.message_type, "ADT")

    def test_missing_header_fields(self):
        """Test that a truncated MSH gives empty values."""
        message = parse_message("MSH|^~\\&|APP")

        self.assertEqual(message.sending_application, "APP")
        self.assertEqual(message.message_type, "")
        self.assertEqual(message.message_control_id, "")
        self.assertIsNone(message.timestamp)
        self.assertIsNone(message.sequence_number)

    def test_extended_header_fields(self):
        """Test MSH-13 to MSH-19."""
        message = parse_message(
            "MSH|^~\\&|A|B|C|D|20240101||ADT^A01|1|P|2.5|42||AL|NE|USA|UNICODE UTF-8|en"
        )

        self.assertEqual(message.sequence_number, 42)
        self.assertEqual(message.accept_ack_type, "AL")
        self.assertEqual(message.application_ack_type, "NE")
        self.assertEqual(message.country_code, "USA")
        self.assertEqual(message.character_set, "UNICODE UTF-8")
        self.assertEqual(message.principal_language, "en")

    def test_bare_msh(self):
        """Test that a lone MSH still yields a message."""
        message = parse_message("MSH")

        self.assertEqual(len(message.segments), 1)
        self.assertEqual(message.segments[0].segment_type, "MSH")

    def test_line_ending_variants(self):
        """Test LF and CRLF separated messages."""
        for separator in ("\n", "\r\n"):
            with self.subTest(separator=repr(separator)):
                message = parse_message(ADT_A01.replace("\r", separator) + separator)
                self.assertEqual(len(message.segments), 4)

    def test_mllp_framing_removed(self):
        """Test that MLLP block characters are ignored."""
        message = parse_message("\x0b" + ADT_A01 + "\x1c\r")

        self.assertEqual(message.message_control_id, "MSG001")
        self.assertEqual(len(message.segments), 4)

    def test_mllp_framing_kept_when_disabled(self):
        """Test that disabling MLLP stripping rejects a framed message."""
        with self.assertRaises(StructuralError):
            parse_message(
                "\x0b" + ADT_A01, ParsingOptions(strip_mllp_framing=False)
            )

    def test_leading_blank_lines(self):
        """Test that blank lines before MSH are ignored."""
        message = parse_message("\r\n\r\n" + ADT_A01)
        self.assertEqual(message.message_type, "ADT")

    def test_missing_msh(self):
        """Test that text without MSH first fails."""
        with self.assertRaises(StructuralError) as context:
            parse_message("PID|1||P12345||Test^Patient\rPV1|1|O")

        self.assertIn("First segment must be MSH", str(context.exception))
        self.assertEqual(context.exception.reason, "First segment must be MSH")

    def test_garbage_input(self):
        """Test that non-HL7 text fails with a structural error."""
        for text in ("This is not an HL7 message", "", "{\"json\": true}"):
            with self.subTest(text=text):
                with self.assertRaises(HL7ParserError) as context:
                    parse_message(text)
                self.assertIn("parsing failed", str(context.exception))

    def test_non_text_input(self):
        """Test that None is rejected as a structural error."""
        with self.assertRaises(StructuralError):
            parse_message(None)

    def test_message_is_immutable(self):
        """Test that parsed messages cannot be modified."""
        message = parse_message(ADT_A01)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            message.message_type = "ORU"

    def test_parse_many_segments(self):
        """Test a message with hundreds of segments."""
        lines = ["MSH|^~\\&|A|B|C|D|20240101||ORU^R01|1|P|2.5", "OBR|1"]
        lines.extend(f"OBX|{i}|NM|CODE{i}||{i}" for i in range(1, 301))
        message = parse_message("\r".join(lines))

        self.assertEqual(len(message.get_segments("OBX")), 300)
        self.assertEqual(message.get_segments("OBX")[-1].get_value(5), "300")

    def test_concurrent_parsing(self):
        """Test that parallel parses don't share state."""
        texts = [
            f"MSH|^~\\&|APP{i}|FAC|REC|FAC|20240101120000||ADT^A0{i % 9 + 1}|MSG{i:03d}|P|2.5\r"
            f"PID|1||PAT{i}||Patient^Number{i}"
            for i in range(10)
        ]

        with ThreadPoolExecutor(max_workers=10) as executor:
            messages = list(executor.map(parse_message, texts))

        self.assertEqual(len(messages), 10)
        for i, message in enumerate(messages):
            self.assertEqual(message.message_control_id, f"MSG{i:03d}")
            self.assertEqual(message.sending_application, f"APP{i}")
            self.assertEqual(message.trigger_event, f"A0{i % 9 + 1}")
            self.assertEqual(message.get_segment("PID").get_value(3), f"PAT{i}")


class TestParseHL7File(unittest.TestCase):
    """Tests for reading a message from disk."""

    def test_parse_file(self):
        """Test parsing a file written with newlines."""
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".hl7", delete=False, encoding="utf-8"
        ) as f:
            f.write(ADT_A01.replace("\r", "\n"))
            temp_path = f.name

        try:
            message = parse_hl7_file(temp_path)
            self.assertEqual(message.message_control_id, "MSG001")
            self.assertEqual(len(message.segments), 4)
        finally:
            os.unlink(temp_path)

    def test_missing_file(self):
        """Test that a missing file raises FileNotFoundError."""
        with self.assertRaises(FileNotFoundError):
            parse_hl7_file("/nonexistent/message.hl7")


class TestMessageOutput(unittest.TestCase):
    """Tests for JSON and wire text output."""

    def test_to_json(self):
        """Test JSON output of a parsed message."""
        data = json.loads(parse_message(ADT_A01).to_json())

        self.assertEqual(data["message_type"], "ADT")
        self.assertEqual(data["timestamp"], "2024-01-01T12:00:00")
        self.assertEqual(data["segments"][2]["segment_type"], "PID")
        self.assertEqual(data["segments"][2]["fields"][4], ["Doe", "John", "M"])

    def test_to_json_bad_timestamp(self):
        """Test that an unparsed timestamp is null in JSON."""
        data = parse_message("MSH|^~\\&|A|B|C|D|bad||ADT^A01|1").to_dict()

        self.assertIsNone(data["timestamp"])
        self.assertEqual(data["raw_timestamp"], "bad")

    def test_message_to_string_round_trip(self):
        """Test that rendering a parsed message gives back the text."""
        self.assertEqual(message_to_string(parse_message(ADT_A01)), ADT_A01 + "\r")
        self.assertEqual(message_to_string(parse_message(ORU_R01)), ORU_R01 + "\r")

    def test_message_to_string_keeps_escapes(self):
        """Test that escaped delimiters are written back escaped."""
        text = "MSH|^~\\&|A|B|C|D|20240101||ADT^A01|1\rNTE|1||Smith\\F\\Jones"
        self.assertEqual(message_to_string(parse_message(text)), text + "\r")

    def test_message_to_string_custom_encoding(self):
        """Test rendering with the message's own delimiters."""
        text = "MSH#$%@!#APP#FAC#RAPP#RFAC#20240101##ADT$A01#C1#P#2.5\rPID#1##ID1"
        self.assertEqual(message_to_string(parse_message(text)), text + "\r")


class TestStripMLLPFraming(unittest.TestCase):
    """Tests for MLLP framing removal."""

    def test_full_frame(self):
        """Test removing start block and end block."""
        self.assertEqual(strip_mllp_framing("\x0bMSH|x\x1c\r"), "MSH|x")

    def test_unframed_text_unchanged(self):
        """Test that plain text only loses surrounding line breaks."""
        self.assertEqual(strip_mllp_framing("MSH|x\r"), "MSH|x")


if __name__ == "__main__":
    unittest.main()
