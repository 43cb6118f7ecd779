#!/usr/bin/env python3
"""
Hash Labels - hash40 <-> label resolution for param files
=========================================================

Param files store no field names, only 64-bit hashes. This module loads an
external label table (ParamLabels.csv style) to turn those hashes back into
readable names, and computes the hash of a new label so it can be stored.

Label Table Format:
------------------
One record per line, two comma-separated fields:

    0x0a3b27a1f2,param_name
    43942126066,param_name           (same record, decimal hash)

Records with a field count other than two, or a hash that does not parse,
are skipped and counted; loading always continues.

Hash40:
------
    hash40(label) = (len(label) << 32) | crc32(label.lower())

Length is the UTF-8 byte length (low 8 bits), CRC-32 is the standard
zlib polynomial.

Usage:
------
    python hash_labels.py --hash param_name
    python hash_labels.py --labels ParamLabels.csv --lookup 0x0a3b27a1f2
"""

import argparse
import csv
import io
import logging
import string
import sys
import zlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LABELS_FILE = "ParamLabels.csv"

HASH_MASK = 0xFFFFFFFFFFFFFFFF


# =============================================================================
# Hash Function
# =============================================================================

def hash40(label: str) -> int:
    """
    Compute the hash40 of a label.

    Args:
        label: Label text (case-insensitive)

    Returns:
        40-bit hash: length in bits 32-39, CRC-32 in bits 0-31
    """
    data = label.lower().encode('utf-8')
    return ((len(data) & 0xFF) << 32) | zlib.crc32(data)


def parse_hash(text: str) -> Optional[int]:
    """
    Parse a hash written as 0x-prefixed hex or decimal.

    Returns:
        Hash value, or None if the text is not a valid 64-bit hash
    """
    text = text.strip()
    if text[:2].lower() == '0x':
        digits, base, allowed = text[2:], 16, string.hexdigits
    else:
        digits, base, allowed = text, 10, string.digits
    if not digits or not all(c in allowed for c in digits):
        return None
    value = int(digits, base)
    if value > HASH_MASK:
        return None
    return value


def format_hash(value: int) -> str:
    """Raw display form of a hash with no label."""
    return f"0x{value:X}"


# =============================================================================
# Label Table
# =============================================================================

@dataclass
class LabelLoadResult:
    """Outcome of one label table load."""
    loaded: int
    skipped: int


class HashLabels:
    """
    Hash -> label table for one editing session.

    Lookups never raise for unknown hashes and never modify the table.
    """

    def __init__(self):
        self.labels: Dict[int, str] = {}
        self.reverse_labels: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.labels)

    def __contains__(self, value: int) -> bool:
        return value in self.labels

    # -------------------------------------------------------------------------
    # Loading / saving
    # -------------------------------------------------------------------------

    def load_csv(self, text: str) -> LabelLoadResult:
        """
        Load label records from CSV text, merging into the table.

        Args:
            text: Table contents, one `hash,label` record per line

        Returns:
            LabelLoadResult with loaded and skipped record counts
        """
        loaded = 0
        skipped = 0

        for line_num, record in enumerate(csv.reader(io.StringIO(text)), 1):
            if not record:
                continue
            if len(record) != 2:
                logger.debug("Skipping line %d: expected 2 fields, got %d", line_num, len(record))
                skipped += 1
                continue

            value = parse_hash(record[0])
            if value is None:
                logger.debug("Skipping line %d: bad hash %r", line_num, record[0])
                skipped += 1
                continue

            self.add_label_for_hash(value, record[1])
            loaded += 1

        logger.info("Loaded %d labels (%d records skipped)", loaded, skipped)
        return LabelLoadResult(loaded, skipped)

    def load_file(self, path: str) -> LabelLoadResult:
        """Load a label table from a file on disk."""
        with open(path, 'r', encoding='utf-8', newline='') as f:
            return self.load_csv(f.read())

    def save_csv(self, path: str):
        """Write the table sorted by hash."""
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, lineterminator='\n')
            for value, label in sorted(self.labels.items()):
                writer.writerow([format_hash(value), label])

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def resolve_label(self, value: int) -> Optional[str]:
        """Label for a hash, or None if the hash is unknown."""
        return self.labels.get(value)

    def display(self, value: int) -> str:
        """Label for a hash, falling back to its hex form."""
        label = self.labels.get(value)
        if label is None:
            return format_hash(value)
        return label

    def get_hash(self, label: str) -> Optional[int]:
        """Hash previously registered for an exact label."""
        return self.reverse_labels.get(label)

    def hash_of(self, label: str) -> int:
        """Hash a label would be stored under."""
        return hash40(label)

    def filter(self, text: str) -> List[Tuple[int, str]]:
        """
        Entries whose label or hex hash contains `text` (case-insensitive),
        sorted by label.
        """
        needle = text.lower()
        matches = [
            (value, label) for value, label in self.labels.items()
            if not needle or needle in label.lower() or needle in f"{value:x}"
        ]
        matches.sort(key=lambda entry: entry[1])
        return matches

    def parse_hash_or_label(self, text: str) -> int:
        """
        Turn user input into a hash.

        Accepts a 0x-prefixed hex literal, a label already in the table, or
        any other label (hashed with hash40).
        """
        if text[:2].lower() == '0x':
            value = parse_hash(text)
            if value is not None:
                return value
        known = self.reverse_labels.get(text)
        if known is not None:
            return known
        return hash40(text)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def add_label(self, label: str) -> int:
        """Register a label under its hash40 and return the hash."""
        value = hash40(label)
        self.add_label_for_hash(value, label)
        return value

    def add_label_for_hash(self, value: int, label: str):
        """Register a label for an existing hash."""
        self.labels[value] = label
        self.reverse_labels[label] = value


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description='Compute and look up param hash40 labels')
    parser.add_argument('--labels', '-l', help=f'Label table (e.g. {DEFAULT_LABELS_FILE})')
    parser.add_argument('--hash', nargs='*', default=[], metavar='LABEL',
                        help='Labels to hash')
    parser.add_argument('--lookup', nargs='*', default=[], metavar='HASH',
                        help='Hashes to resolve (0x-prefixed hex or decimal)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    labels = HashLabels()
    if args.labels:
        result = labels.load_file(args.labels)
        print(f"Loaded {result.loaded} labels from {args.labels} ({result.skipped} skipped)")

    for label in args.hash:
        print(f"{label:<40} {format_hash(hash40(label))}")

    for text in args.lookup:
        value = parse_hash(text)
        if value is None:
            print(f"ERROR: Not a hash: {text}")
            return 1
        label = labels.resolve_label(value)
        print(f"{format_hash(value):<16} {label if label is not None else '(unknown)'}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
