#!/usr/bin/env python3
"""
Param File Serializer (paracobn)
================================

Encodes a ParamStruct tree back into a param container. The layout matches
what prc_parser reads (see its module docstring for the byte format).

Write Order:
-----------
1. Hash table: hash 0 first, then a pre-order walk adding each struct key
   (before its value) and each Hash40 value, first occurrence only.
2. Param area: pre-order. A struct writes its count and a placeholder ref
   offset, claims its reference entry, then writes its children in tree
   order. Lists write count + placeholder offsets, then the elements.
   Strings write a placeholder and add the text to the reference table the
   first time it is seen.
3. Identical struct reference entries are merged (optional).
4. Reference table is laid out in claim order, placeholders are patched.
5. Header + hash table + reference table + param area.

Files decoded by prc_parser re-encode to the same tree; they re-encode to
the same bytes when the original writer followed the order above.

Usage:
------
    python prc_serializer.py fighter_param.prc -o fighter_param_out.prc
    python prc_serializer.py fighter_param.prc -o out.prc --compare
"""

import argparse
import logging
import sys
from typing import Dict, List, Tuple, Union

from prc_cursor import BinaryWriter
from prc_errors import EncodeError, ParamError
from prc_parser import MAGIC, decode
from prc_types import (
    MAX_DEPTH,
    ParamList,
    ParamNode,
    ParamStruct,
    ParamType,
    ParamValue,
    coerce_value,
)

logger = logging.getLogger(__name__)

# Fixed-width scalar writers
SCALAR_WRITERS = {
    ParamType.I8: BinaryWriter.write_int8,
    ParamType.U8: BinaryWriter.write_uint8,
    ParamType.I16: BinaryWriter.write_int16,
    ParamType.U16: BinaryWriter.write_uint16,
    ParamType.I32: BinaryWriter.write_int32,
    ParamType.U32: BinaryWriter.write_uint32,
    ParamType.I64: BinaryWriter.write_int64,
    ParamType.U64: BinaryWriter.write_uint64,
    ParamType.FLOAT: BinaryWriter.write_float32,
}

# Reference table entry: encoded string, or struct (hash index, offset) pairs
RefEntry = Union[bytes, List[Tuple[int, int]]]

# Differing offsets listed by compare_files
MAX_REPORTED_DIFFS = 16


class PrcSerializer:
    """Encoder for one param tree."""

    def __init__(self, root: ParamStruct, merge_struct_refs: bool = True):
        self.root = root
        self.merge_struct_refs = merge_struct_refs

        self.hash_table: List[int] = []
        self.hash_index: Dict[int, int] = {}

        self.params = BinaryWriter()
        self.ref_entries: List[RefEntry] = []
        self.string_entries: Dict[bytes, int] = {}
        self.unresolved_structs: List[Tuple[int, int]] = []   # (param pos, entry index)
        self.unresolved_strings: List[Tuple[int, int]] = []   # (param pos, entry index)

    def serialize(self) -> bytes:
        """
        Encode the tree.

        Returns:
            Complete file bytes

        Raises:
            EncodeError: the tree cannot be written
        """
        if not isinstance(self.root, ParamStruct):
            raise EncodeError(f"Root must be a struct, got {type(self.root).__name__}")

        self._add_hash(0)
        self._collect_hashes(self.root, 0)
        logger.debug("Hash table: %d entries", len(self.hash_table))

        self._write_param(self.root)

        ref_table, entry_offsets = self._build_ref_table()

        for pos, entry_index in self.unresolved_structs:
            self.params.patch_int32(pos, entry_offsets[entry_index])
        for pos, entry_index in self.unresolved_strings:
            self.params.patch_int32(pos, entry_offsets[entry_index])

        output = BinaryWriter()
        output.write_bytes(MAGIC)
        output.write_int32(len(self.hash_table) * 8)
        output.write_int32(len(ref_table))
        for value in self.hash_table:
            output.write_uint64(value)
        output.write_bytes(ref_table)
        output.write_bytes(self.params.get_bytes())

        logger.debug("Ref table: %d bytes, param area: %d bytes", len(ref_table), self.params.tell())
        return output.get_bytes()

    # -------------------------------------------------------------------------
    # Hash table
    # -------------------------------------------------------------------------

    def _add_hash(self, value: int):
        if value not in self.hash_index:
            self.hash_index[value] = len(self.hash_table)
            self.hash_table.append(value)

    def _collect_hashes(self, node: ParamNode, depth: int):
        if depth > MAX_DEPTH:
            raise EncodeError(f"Nesting deeper than {MAX_DEPTH}")
        if isinstance(node, ParamStruct):
            for key, child in node.items():
                self._add_hash(key)
                self._collect_hashes(child, depth + 1)
        elif isinstance(node, ParamList):
            for child in node:
                self._collect_hashes(child, depth + 1)
        elif isinstance(node, ParamValue):
            if node.type == ParamType.HASH:
                self._add_hash(self._checked_value(node))
        else:
            raise EncodeError(f"Not a param node: {type(node).__name__}")

    # -------------------------------------------------------------------------
    # Param area
    # -------------------------------------------------------------------------

    @staticmethod
    def _checked_value(node: ParamValue):
        try:
            return coerce_value(node.type, node.value)
        except ValueError as e:
            raise EncodeError(str(e)) from None

    def _write_param(self, node: ParamNode):
        if isinstance(node, ParamStruct):
            self._write_struct(node)
            return
        if isinstance(node, ParamList):
            self._write_list(node)
            return

        param_type = node.type
        value = self._checked_value(node)
        self.params.write_uint8(param_type)

        if param_type == ParamType.BOOL:
            self.params.write_uint8(1 if value else 0)
        elif param_type == ParamType.HASH:
            self.params.write_uint32(self.hash_index[value])
        elif param_type == ParamType.STRING:
            self._write_string(value)
        elif param_type in SCALAR_WRITERS:
            SCALAR_WRITERS[param_type](self.params, value)
        else:
            raise EncodeError(f"Unhandled param type {param_type.name}")

    def _write_string(self, value: str):
        try:
            encoded = value.encode('utf-8')
        except UnicodeEncodeError as e:
            raise EncodeError(f"String cannot be encoded as UTF-8: {e.reason}") from None
        if b'\x00' in encoded:
            raise EncodeError(f"String contains a null byte: {value!r}")

        entry_index = self.string_entries.get(encoded)
        if entry_index is None:
            entry_index = len(self.ref_entries)
            self.string_entries[encoded] = entry_index
            self.ref_entries.append(encoded)

        self.unresolved_strings.append((self.params.tell(), entry_index))
        self.params.write_int32(0)

    def _write_list(self, node: ParamList):
        start = self.params.tell()
        self.params.write_uint8(ParamType.LIST)
        self.params.write_int32(len(node))

        offset_pos = self.params.tell()
        for _ in range(len(node)):
            self.params.write_uint32(0)

        for index, child in enumerate(node):
            self.params.patch_uint32(offset_pos + index * 4, self.params.tell() - start)
            self._write_param(child)

    def _write_struct(self, node: ParamStruct):
        start = self.params.tell()
        self.params.write_uint8(ParamType.STRUCT)
        self.params.write_int32(len(node))

        entry_index = len(self.ref_entries)
        entries: List[Tuple[int, int]] = []
        self.ref_entries.append(entries)
        self.unresolved_structs.append((self.params.tell(), entry_index))
        self.params.write_int32(0)

        for key, child in node.items():
            entries.append((self.hash_index[key], self.params.tell() - start))
            self._write_param(child)

    # -------------------------------------------------------------------------
    # Reference table
    # -------------------------------------------------------------------------

    def _build_ref_table(self) -> Tuple[bytes, Dict[int, int]]:
        """
        Lay out the reference table.

        Returns:
            (table bytes, entry index -> offset within the table)
        """
        merged: Dict[int, int] = {}
        if self.merge_struct_refs:
            first_seen: Dict[Tuple[Tuple[int, int], ...], int] = {}
            for index, entry in enumerate(self.ref_entries):
                if isinstance(entry, bytes):
                    continue
                signature = tuple(entry)
                if signature in first_seen:
                    merged[index] = first_seen[signature]
                else:
                    first_seen[signature] = index
            if merged:
                logger.debug("Merged %d duplicate struct entries", len(merged))

        table = BinaryWriter()
        offsets: Dict[int, int] = {}
        for index, entry in enumerate(self.ref_entries):
            if index in merged:
                continue
            offsets[index] = table.tell()
            if isinstance(entry, bytes):
                table.write_cstring(entry)
            else:
                for hash_index, param_offset in entry:
                    table.write_int32(hash_index)
                    table.write_int32(param_offset)

        for index, target in merged.items():
            offsets[index] = offsets[target]
        return table.get_bytes(), offsets


def encode(root: ParamStruct, merge_struct_refs: bool = True) -> bytes:
    """Encode a root struct into param file bytes."""
    return PrcSerializer(root, merge_struct_refs).serialize()


# =============================================================================
# Comparison
# =============================================================================

def compare_files(generated: bytes, original: bytes,
                  label1: str = "Generated", label2: str = "Original") -> bool:
    """
    Print a byte comparison of two buffers.

    Returns:
        True when the buffers are identical
    """
    print(f"\n{label1}: {len(generated)} bytes, {label2}: {len(original)} bytes")
    if generated == original:
        print("  Identical")
        return True

    if len(generated) != len(original):
        print(f"  Length differs by {len(generated) - len(original):+d}")
    mismatches = [offset for offset, (a, b) in enumerate(zip(generated, original)) if a != b]
    print(f"  {len(mismatches)} differing bytes in the shared range")
    for offset in mismatches[:MAX_REPORTED_DIFFS]:
        print(f"    0x{offset:06X}: {generated[offset]:02X} != {original[offset]:02X}")
    return False


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description='Re-encode a param (paracobn) file')
    parser.add_argument('input', help='Param file to read')
    parser.add_argument('--output', '-o', required=True, help='Output param file')
    parser.add_argument('--compare', '-c', action='store_true',
                        help='Compare the output against the input bytes')
    parser.add_argument('--no-merge', action='store_true',
                        help='Write every struct reference entry separately')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    with open(args.input, 'rb') as f:
        original = f.read()
    print(f"Read: {args.input} ({len(original)} bytes)")

    try:
        root = decode(original)
        output_data = encode(root, merge_struct_refs=not args.no_merge)
    except ParamError as e:
        print(f"ERROR: {e}")
        return 1

    with open(args.output, 'wb') as f:
        f.write(output_data)
    print(f"Wrote: {args.output} ({len(output_data)} bytes)")

    if args.compare:
        compare_files(output_data, original, "Generated", "Original")

    return 0


if __name__ == "__main__":
    sys.exit(main())
