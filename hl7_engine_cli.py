#!/usr/bin/env python3
"""
HL7 v2 Message Engine - Command Line Interface

This script parses one HL7 message file and prints it as JSON, validates
it, or prints the acknowledgment a receiver would send back.

Usage:
    python hl7_engine_cli.py message.hl7
    python hl7_engine_cli.py message.hl7 -o message.json
    python hl7_engine_cli.py message.hl7 --validate --strict
    python hl7_engine_cli.py message.hl7 --ack AA
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from hl7_engine import (
    AckCode,
    HL7ParserError,
    ValidationConfig,
    acknowledge_to_string,
    generate_acknowledgment,
    parse_hl7_file,
    validate_message,
)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser object
    """
    parser = argparse.ArgumentParser(
        description="Parse, validate and acknowledge an HL7 v2 message",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s message.hl7
      Parse the message and print it as JSON

  %(prog)s message.hl7 -o result.json
      Parse the message and save JSON to result.json

  %(prog)s message.hl7 --validate
      Print validation findings (exit code 1 when invalid)

  %(prog)s message.hl7 --validate --strict
      Treat warnings as failures

  %(prog)s message.hl7 --ack AE --text "Unknown patient"
      Print the ACK reply for the message
        """,
    )

    parser.add_argument("input_file", type=str, help="Path to the HL7 file to parse")

    parser.add_argument(
        "-o",
        "--output",
        type=str,
        dest="output_file",
        help="Path to save output (default: print to stdout)",
    )

    parser.add_argument(
        "-c",
        "--compact",
        action="store_true",
        help="Output compact JSON without indentation",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log parsing details to stderr",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the message and print the findings",
    )

    parser.add_argument(
        "--strict",
        action="store_true",
        help="With --validate, count warnings as failures",
    )

    parser.add_argument(
        "--ack",
        type=str,
        dest="ack_code",
        choices=[code.value for code in AckCode],
        help="Print the acknowledgment for the message with this code",
    )

    parser.add_argument(
        "--text",
        type=str,
        dest="ack_text",
        help="With --ack, text for MSA-3",
    )

    return parser


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"[ERROR] {message}", file=sys.stderr)


def write_output(text: str, output_file) -> int:
    """Write text to a file, or stdout when no file is given."""
    if not output_file:
        print(text)
        return 0

    output_path = Path(output_file)
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
    except IOError as e:
        print_error(f"Could not write to file: {e}")
        return 1
    logging.getLogger(__name__).info("Output written to: %s", output_path)
    return 0


def main() -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for error or invalid message)
    """
    parser = create_argument_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    input_path = Path(args.input_file)
    if not input_path.exists():
        print_error(f"File not found: {args.input_file}")
        return 1

    if not input_path.is_file():
        print_error(f"Not a file: {args.input_file}")
        return 1

    try:
        message = parse_hl7_file(str(input_path))
    except HL7ParserError as e:
        print_error(str(e))
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print_error(f"Could not read file: {e}")
        return 1

    indent = None if args.compact else 2

    if args.ack_code:
        ack = generate_acknowledgment(message, args.ack_code, args.ack_text)
        # Segment terminators become newlines so the reply is readable
        reply = acknowledge_to_string(ack).replace("\r", "\n")
        return write_output(reply, args.output_file)

    if args.validate:
        result = validate_message(message, ValidationConfig(strict_mode=args.strict))
        status = write_output(result.to_json(indent=indent), args.output_file)
        return status or (0 if result.valid else 1)

    return write_output(message.to_json(indent=indent), args.output_file)


if __name__ == "__main__":
    sys.exit(main())
