"""
Binary Cursor - little-endian reader/writer for param files
===========================================================

BinaryReader walks a fully loaded buffer. Every read checks the remaining
length first and raises OutOfBoundsError (with the offset of the failed
read) instead of returning short data.

BinaryWriter appends to a growing bytearray and supports back-patching of
placeholders, which the serializer uses for struct/string reference offsets
and list element offsets.
"""

import struct
from typing import Optional

from prc_errors import OutOfBoundsError


# =============================================================================
# Binary Reader
# =============================================================================

class BinaryReader:
    """Sequential little-endian reader over a byte buffer."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0
        self.size = len(data)

    def _require(self, count: int, limit: Optional[int] = None):
        end = self.size if limit is None else min(limit, self.size)
        if self.pos < 0 or self.pos + count > end:
            raise OutOfBoundsError(
                f"Read of {count} bytes past end (limit 0x{end:X})", self.pos)

    def _unpack(self, fmt: str, count: int):
        self._require(count)
        val = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += count
        return val

    def read_int8(self) -> int:
        return self._unpack('<b', 1)

    def read_uint8(self) -> int:
        return self._unpack('<B', 1)

    def read_int16(self) -> int:
        return self._unpack('<h', 2)

    def read_uint16(self) -> int:
        return self._unpack('<H', 2)

    def read_int32(self) -> int:
        return self._unpack('<i', 4)

    def read_uint32(self) -> int:
        return self._unpack('<I', 4)

    def read_int64(self) -> int:
        return self._unpack('<q', 8)

    def read_uint64(self) -> int:
        return self._unpack('<Q', 8)

    def read_float32(self) -> float:
        return self._unpack('<f', 4)

    def read_bytes(self, count: int) -> bytes:
        """Read N bytes"""
        if count < 0:
            raise OutOfBoundsError(f"Negative read length {count}", self.pos)
        self._require(count)
        val = bytes(self.data[self.pos:self.pos + count])
        self.pos += count
        return val

    def read_cstring(self, limit: Optional[int] = None) -> bytes:
        """
        Read a null-terminated byte string.

        The terminator must appear before `limit` (or the end of the buffer).
        The returned bytes exclude the terminator; the position ends up just
        past it.
        """
        end = self.size if limit is None else min(limit, self.size)
        if self.pos < 0 or self.pos >= end:
            raise OutOfBoundsError("String starts outside readable range", self.pos)
        terminator = self.data.find(b'\x00', self.pos, end)
        if terminator < 0:
            raise OutOfBoundsError("Unterminated string", self.pos)
        val = bytes(self.data[self.pos:terminator])
        self.pos = terminator + 1
        return val

    def read_pstring(self) -> bytes:
        """Read a uint32 length-prefixed byte string."""
        start = self.pos
        length = self.read_uint32()
        try:
            return self.read_bytes(length)
        except OutOfBoundsError:
            self.pos = start
            raise

    def remaining(self) -> int:
        return self.size - self.pos

    def tell(self) -> int:
        return self.pos

    def seek(self, pos: int):
        self.pos = pos


# =============================================================================
# Binary Writer
# =============================================================================

class BinaryWriter:
    """Appending little-endian writer with placeholder back-patching."""

    def __init__(self):
        self.data = bytearray()

    def _pack(self, fmt: str, val):
        try:
            self.data.extend(struct.pack(fmt, val))
        except (struct.error, OverflowError) as e:
            raise ValueError(f"Cannot pack {val!r} as '{fmt}': {e}") from e

    def write_int8(self, val: int):
        self._pack('<b', val)

    def write_uint8(self, val: int):
        self._pack('<B', val)

    def write_int16(self, val: int):
        self._pack('<h', val)

    def write_uint16(self, val: int):
        self._pack('<H', val)

    def write_int32(self, val: int):
        self._pack('<i', val)

    def write_uint32(self, val: int):
        self._pack('<I', val)

    def write_int64(self, val: int):
        self._pack('<q', val)

    def write_uint64(self, val: int):
        self._pack('<Q', val)

    def write_float32(self, val: float):
        self._pack('<f', val)

    def write_bytes(self, data: bytes):
        """Write raw bytes"""
        self.data.extend(data)

    def write_cstring(self, data: bytes):
        """Write bytes followed by a null terminator."""
        if b'\x00' in data:
            raise ValueError("Embedded null byte in string")
        self.data.extend(data)
        self.data.append(0)

    def write_pstring(self, data: bytes):
        """Write bytes preceded by their uint32 length."""
        self.write_uint32(len(data))
        self.data.extend(data)

    def patch_int32(self, pos: int, val: int):
        """Patch an int32 at a specific position"""
        struct.pack_into('<i', self.data, pos, val)

    def patch_uint32(self, pos: int, val: int):
        """Patch a uint32 at a specific position"""
        struct.pack_into('<I', self.data, pos, val)

    def get_bytes(self) -> bytes:
        return bytes(self.data)

    def tell(self) -> int:
        return len(self.data)
