#!/usr/bin/env python3
"""
Param File Parser (paracobn)
============================

Decodes a param container into a ParamStruct tree.

File Structure:
--------------
| Offset          | Size        | Contents                                  |
|-----------------|-------------|-------------------------------------------|
| 0x00            | 8           | Magic "paracobn"                          |
| 0x08            | 4           | Hash table size in bytes (int32)          |
| 0x0C            | 4           | Reference table size in bytes (int32)     |
| 0x10            | hash size   | Hash table: uint64 hashes                 |
| hash end        | ref size    | Reference table: struct entries + strings |
| ref end         | rest        | Param area, root struct first             |

Param Encoding (tag byte, then payload):
---------------------------------------
| Tag | Payload                                                        |
|-----|----------------------------------------------------------------|
| 1-8 | fixed-width scalar (see prc_types)                             |
| 9   | uint32 index into the hash table                               |
| 10  | int32 offset of a null-terminated string in the ref table      |
| 11  | int32 count, count x uint32 element offsets (from the tag)     |
| 12  | int32 count, int32 offset of count x (int32 hash index,        |
|     | int32 param offset from the tag) entries in the ref table      |

Struct and list children always sit after their parent, so every child
offset must be positive. Each param is referenced by exactly one parent.
Struct children are read in reference table order, which is also the
order the tree keeps.

Usage:
------
    python prc_parser.py fighter_param.prc
    python prc_parser.py fighter_param.prc --labels ParamLabels.csv --depth 3
"""

import argparse
import logging
import struct
import sys
from dataclasses import dataclass
from typing import List, Optional, Set

from hash_labels import HashLabels, format_hash
from prc_cursor import BinaryReader
from prc_errors import (
    DecodeError,
    DuplicateKeyError,
    FormatMismatchError,
    OutOfBoundsError,
    ParamError,
)
from prc_types import (
    MAX_DEPTH,
    ParamList,
    ParamNode,
    ParamStruct,
    ParamType,
    ParamValue,
    children,
    type_name,
    value_string,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAGIC = b'paracobn'
HEADER_SIZE = 0x10
HASH_ENTRY_SIZE = 8
STRUCT_ENTRY_SIZE = 8
LIST_OFFSET_SIZE = 4

# Fixed-width scalar readers
SCALAR_READERS = {
    ParamType.I8: BinaryReader.read_int8,
    ParamType.U8: BinaryReader.read_uint8,
    ParamType.I16: BinaryReader.read_int16,
    ParamType.U16: BinaryReader.read_uint16,
    ParamType.I32: BinaryReader.read_int32,
    ParamType.U32: BinaryReader.read_uint32,
    ParamType.I64: BinaryReader.read_int64,
    ParamType.U64: BinaryReader.read_uint64,
    ParamType.FLOAT: BinaryReader.read_float32,
}


# =============================================================================
# Header
# =============================================================================

@dataclass
class PrcHeader:
    """Section sizes from the 16-byte file header."""
    hash_table_size: int
    ref_table_size: int

    @property
    def hash_start(self) -> int:
        return HEADER_SIZE

    @property
    def ref_start(self) -> int:
        return HEADER_SIZE + self.hash_table_size

    @property
    def param_start(self) -> int:
        return HEADER_SIZE + self.hash_table_size + self.ref_table_size

    @property
    def hash_count(self) -> int:
        return self.hash_table_size // HASH_ENTRY_SIZE


def read_header(data: bytes) -> PrcHeader:
    """
    Validate magic and section sizes.

    Raises:
        FormatMismatchError: wrong magic, short header, or sizes that do not
            fit the buffer
    """
    if len(data) < len(MAGIC) or data[:len(MAGIC)] != MAGIC:
        raise FormatMismatchError(
            f"Invalid magic: expected {MAGIC!r}, got {bytes(data[:len(MAGIC)])!r}", 0)
    if len(data) < HEADER_SIZE:
        raise FormatMismatchError(f"Header truncated: {len(data)} bytes", 0)

    hash_table_size, ref_table_size = struct.unpack_from('<ii', data, len(MAGIC))
    if hash_table_size < 0 or hash_table_size % HASH_ENTRY_SIZE:
        raise FormatMismatchError(f"Bad hash table size {hash_table_size}", 0x08)
    if ref_table_size < 0:
        raise FormatMismatchError(f"Bad reference table size {ref_table_size}", 0x0C)

    header = PrcHeader(hash_table_size, ref_table_size)
    if header.param_start > len(data):
        raise FormatMismatchError(
            f"Tables end at 0x{header.param_start:X} but file is 0x{len(data):X} bytes", 0x08)
    return header


# =============================================================================
# Parser
# =============================================================================

class PrcParser:
    """Recursive-descent decoder for one param buffer."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.reader = BinaryReader(self.data)
        self.header: Optional[PrcHeader] = None
        self.hash_table: List[int] = []
        self.decoded: Set[int] = set()

    def parse(self) -> ParamStruct:
        """
        Decode the whole buffer.

        Returns:
            Root struct

        Raises:
            ParamError subclass on any malformed input; no partial tree is
            returned
        """
        self.header = read_header(self.data)
        logger.debug("Hash table: %d bytes at 0x%X", self.header.hash_table_size, self.header.hash_start)
        logger.debug("Ref table: %d bytes at 0x%X", self.header.ref_table_size, self.header.ref_start)
        logger.debug("Param area at 0x%X", self.header.param_start)

        self.hash_table = self._read_hash_table()

        root_pos = self.header.param_start
        self.decoded = {root_pos}
        self.reader.seek(root_pos)
        root_type = self.reader.read_uint8()
        if root_type != ParamType.STRUCT:
            raise DecodeError(f"Root is not a struct (type {root_type})", root_pos)

        root = self._read_param(root_pos, 0)
        logger.debug("Decoded root struct with %d fields", len(root))
        return root

    def _read_hash_table(self) -> List[int]:
        self.reader.seek(self.header.hash_start)
        return [self.reader.read_uint64() for _ in range(self.header.hash_count)]

    def _lookup_hash(self, index: int, at: int) -> int:
        if not 0 <= index < len(self.hash_table):
            raise DecodeError(
                f"Hash index {index} out of range (table has {len(self.hash_table)})", at)
        return self.hash_table[index]

    def _child_pos(self, start: int, offset: int, at: int) -> int:
        if offset <= 0:
            raise DecodeError(f"Child offset {offset} does not point forward", at)
        pos = start + offset
        if pos >= len(self.data):
            raise OutOfBoundsError(f"Child offset 0x{offset:X} past end of file", at)
        if pos in self.decoded:
            raise DecodeError(f"Param at 0x{pos:X} is referenced more than once", at)
        self.decoded.add(pos)
        return pos

    def _read_param(self, pos: int, depth: int) -> ParamNode:
        if depth > MAX_DEPTH:
            raise DecodeError(f"Nesting deeper than {MAX_DEPTH}", pos)

        self.reader.seek(pos)
        tag = self.reader.read_uint8()
        try:
            param_type = ParamType(tag)
        except ValueError:
            raise DecodeError(f"Unknown param type {tag}", pos) from None

        if param_type == ParamType.STRUCT:
            return self._read_struct(pos, depth)
        if param_type == ParamType.LIST:
            return self._read_list(pos, depth)
        if param_type == ParamType.STRING:
            return ParamValue(ParamType.STRING, self._read_string())
        if param_type == ParamType.HASH:
            index = self.reader.read_uint32()
            return ParamValue(ParamType.HASH, self._lookup_hash(index, pos + 1))
        if param_type == ParamType.BOOL:
            return ParamValue(ParamType.BOOL, self.reader.read_uint8() != 0)
        if param_type in SCALAR_READERS:
            return ParamValue(param_type, SCALAR_READERS[param_type](self.reader))

        raise DecodeError(f"Unhandled param type {param_type.name}", pos)

    def _read_string(self) -> str:
        at = self.reader.tell()
        offset = self.reader.read_int32()
        if not 0 <= offset < self.header.ref_table_size:
            raise OutOfBoundsError(f"String offset 0x{offset:X} outside reference table", at)

        self.reader.seek(self.header.ref_start + offset)
        raw = self.reader.read_cstring(limit=self.header.param_start)
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError(f"String is not valid UTF-8: {e.reason}",
                              self.header.ref_start + offset) from None

    def _read_list(self, start: int, depth: int) -> ParamList:
        count = self.reader.read_int32()
        if count < 0:
            raise DecodeError(f"Negative list count {count}", start + 1)
        if count * LIST_OFFSET_SIZE > self.reader.remaining():
            raise OutOfBoundsError(f"List of {count} items past end of file", start + 1)

        offsets = []
        for _ in range(count):
            at = self.reader.tell()
            offsets.append((at, self.reader.read_uint32()))

        values = []
        for at, offset in offsets:
            values.append(self._read_param(self._child_pos(start, offset, at), depth + 1))
        return ParamList(values)

    def _read_struct(self, start: int, depth: int) -> ParamStruct:
        count = self.reader.read_int32()
        ref_offset = self.reader.read_int32()
        if count < 0:
            raise DecodeError(f"Negative struct count {count}", start + 1)
        if ref_offset < 0 or ref_offset + count * STRUCT_ENTRY_SIZE > self.header.ref_table_size:
            raise OutOfBoundsError(
                f"Struct entries at ref offset 0x{ref_offset:X} (count {count}) "
                f"outside reference table", start + 5)

        self.reader.seek(self.header.ref_start + ref_offset)
        entries = []
        for _ in range(count):
            at = self.reader.tell()
            hash_index = self.reader.read_int32()
            param_offset = self.reader.read_int32()
            entries.append((at, hash_index, param_offset))

        result = ParamStruct()
        for at, hash_index, param_offset in entries:
            key = self._lookup_hash(hash_index, at)
            if key in result:
                raise DuplicateKeyError(key, at)
            child = self._read_param(self._child_pos(start, param_offset, at + 4), depth + 1)
            result.insert(key, child)
        return result


def decode(data: bytes) -> ParamStruct:
    """Decode a complete param file buffer into its root struct."""
    return PrcParser(data).parse()


# =============================================================================
# Display
# =============================================================================

def print_tree(node: ParamNode, labels: Optional[HashLabels] = None,
               max_depth: Optional[int] = None, name: str = "root", indent: int = 0):
    """Print a tree view of a node, one line per node."""
    pad = "  " * indent
    print(f"{pad}{name} [{type_name(node)}] {value_string(node, labels)}")

    if max_depth is not None and indent >= max_depth:
        return

    for index, (key, child) in enumerate(children(node)):
        if key is None:
            child_name = f"[{index}]"
        elif labels is not None:
            child_name = labels.display(key)
        else:
            child_name = format_hash(key)
        print_tree(child, labels, max_depth, child_name, indent + 1)


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description='Parse and display a param (paracobn) file')
    parser.add_argument('input', help='Param file to parse')
    parser.add_argument('--labels', '-l', help='Label table CSV for hash names')
    parser.add_argument('--depth', '-d', type=int, help='Maximum tree depth to print')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    labels = HashLabels()
    if args.labels:
        result = labels.load_file(args.labels)
        print(f"Loaded {result.loaded} labels ({result.skipped} skipped)")

    with open(args.input, 'rb') as f:
        data = f.read()

    print(f"File: {args.input} ({len(data)} bytes)")

    try:
        root = decode(data)
    except ParamError as e:
        print(f"ERROR: {e}")
        return 1

    print()
    print_tree(root, labels, args.depth)
    return 0


if __name__ == "__main__":
    sys.exit(main())
