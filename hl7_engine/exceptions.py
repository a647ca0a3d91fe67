"""
Custom Exceptions for the HL7 Engine

Only structural problems are raised as exceptions. Content-quality
issues (missing segments, bad dates, unknown message types) are reported
as findings by the validator instead, so a sender that is only partially
conformant can still be parsed and answered.
"""


class HL7ParserError(Exception):
    """
    Base exception for all HL7 engine errors.
    All other exceptions inherit from this one.
    """

    pass


class StructuralError(HL7ParserError):
    """
    Raised when the input is not a parseable HL7 message at all.

    Example: If the text doesn't start with an MSH segment, there is
    no encoding definition and no header to build a message from.
    """

    def __init__(self, reason: str):
        self.reason = reason
        message = f"HL7 message parsing failed: {reason}"
        super().__init__(message)


class InvalidAckCodeError(HL7ParserError):
    """
    Raised when an acknowledgment code is not one of the HL7 table 0008 values.

    Example: "OK" instead of "AA".
    """

    def __init__(self, code: str):
        self.code = code
        message = (
            f"Invalid acknowledgment code '{code}'. "
            "Expected one of AA, AE, AR, CA, CE, CR"
        )
        super().__init__(message)


class MissingSegmentError(HL7ParserError):
    """
    Raised when a required segment is missing from the message.

    Example: An acknowledgment text without an MSA segment cannot be
    read back into an Acknowledgment.
    """

    def __init__(self, segment_name: str):
        self.segment_name = segment_name
        message = f"Required segment '{segment_name}' is missing from the message"
        super().__init__(message)
