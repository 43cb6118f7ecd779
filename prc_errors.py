"""
Param Container Errors
======================

Exceptions raised by the param codec. All derive from ParamError, which is a
ValueError so callers that only care about "bad data" can catch that.

| Exception           | Kind              | Raised by                    |
|---------------------|-------------------|------------------------------|
| FormatMismatchError | format_mismatch   | decode (magic / header)      |
| OutOfBoundsError    | out_of_bounds     | decode, BinaryReader         |
| DecodeError         | decode            | decode (bad reference/tag)   |
| DuplicateKeyError   | duplicate_key     | decode, struct mutations     |
| EncodeError         | encode            | encode                       |
"""

from typing import Optional


class ParamError(ValueError):
    """Base class for param codec failures."""

    kind = "param"

    def __init__(self, message: str, offset: Optional[int] = None):
        self.message = message
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset 0x{offset:X})"
        super().__init__(message)


class DecodeError(ParamError):
    """Malformed reference, unknown type tag or bad string in a param file."""

    kind = "decode"


class FormatMismatchError(DecodeError):
    """Magic signature absent or header sizes inconsistent with the buffer."""

    kind = "format_mismatch"


class OutOfBoundsError(DecodeError):
    """A read or reference would go past the end of the buffer or table."""

    kind = "out_of_bounds"


class DuplicateKeyError(ParamError):
    """A struct would contain the same hash key twice."""

    kind = "duplicate_key"

    def __init__(self, key: int, offset: Optional[int] = None):
        self.key = key
        super().__init__(f"Duplicate struct key 0x{key:X}", offset)


class EncodeError(ParamError):
    """The tree cannot be written in the param format."""

    kind = "encode"
