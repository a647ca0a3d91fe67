"""
Parsing and validation options.

Options are passed per call; nothing here is global or read from the
environment.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class ParsingOptions:
    """
    Options for the tokenizer and message builder.

    Attributes:
        strip_mllp_framing: Remove MLLP start (0x0B) and end (0x1C) block
            characters surrounding the message text
        preserve_whitespace: Keep leading/trailing whitespace of values.
            When False every sub-component is stripped.
    """

    strip_mllp_framing: bool = True
    preserve_whitespace: bool = True


@dataclass(frozen=True)
class ValidationConfig:
    """
    Options for the structural validator.

    Attributes:
        strict_mode: Treat warnings as failures when computing ``valid``
        required_segments: Extra or overriding required-segment rules,
            keyed by message type (e.g. {"ZPI": ("PID", "ZPD")})
        validate_timestamp: Report a missing or unparseable MSH-7
    """

    strict_mode: bool = False
    required_segments: Optional[Dict[str, Tuple[str, ...]]] = field(default=None)
    validate_timestamp: bool = True


DEFAULT_PARSING_OPTIONS = ParsingOptions()
DEFAULT_VALIDATION_CONFIG = ValidationConfig()
