#!/usr/bin/env python3
"""
Param JSON Converter
====================

Converts param (paracobn) files to JSON and back.

Hashes (struct keys and Hash40 values) are written as labels when the label
table knows them and the label reads back as the same hash, and as
0x-prefixed hex otherwise. On the way back, a hex literal is used as-is,
a known label maps to its registered hash, and any other text is hashed
with hash40.

JSON Layout:
-----------
    {
      "format": "paracobn",
      "root": {
        "type": "struct",
        "fields": [
          {"key": "param_name", "value": {"type": "i32", "value": 5}},
          {"key": "0x1234", "value": {"type": "list", "values": [...]}}
        ]
      }
    }

Usage:
    # Convert param file to JSON
    python prc_json.py fighter_param.prc -o fighter_param.json --labels ParamLabels.csv --pretty

    # Convert JSON back to a param file
    python prc_json.py fighter_param.json -o fighter_param.prc --to-binary --labels ParamLabels.csv
"""

import sys
import os
import json
import logging
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hash_labels import HashLabels, format_hash
from prc_errors import ParamError
from prc_parser import decode
from prc_serializer import encode
from prc_types import ParamList, ParamStruct, ParamType, ParamValue


FORMAT_NAME = "paracobn"

# JSON type names
TYPE_KEYS = {param_type: param_type.name.lower() for param_type in ParamType}
TYPE_FROM_KEY = {name: param_type for param_type, name in TYPE_KEYS.items()}


# =============================================================================
# PARAM -> JSON
# =============================================================================

def hash_to_text(value: int, labels: HashLabels) -> str:
    """Label for a hash when it reads back as the same hash, else hex."""
    label = labels.resolve_label(value)
    if label is None or labels.parse_hash_or_label(label) != value:
        return format_hash(value)
    return label


def node_to_json(node, labels: HashLabels) -> dict:
    """Convert a param node to a JSON-ready dictionary."""
    if isinstance(node, ParamStruct):
        return {
            'type': TYPE_KEYS[ParamType.STRUCT],
            'fields': [
                {'key': hash_to_text(key, labels), 'value': node_to_json(child, labels)}
                for key, child in node.items()
            ],
        }
    if isinstance(node, ParamList):
        return {
            'type': TYPE_KEYS[ParamType.LIST],
            'values': [node_to_json(child, labels) for child in node],
        }
    if node.type == ParamType.HASH:
        return {'type': TYPE_KEYS[node.type], 'value': hash_to_text(node.value, labels)}
    return {'type': TYPE_KEYS[node.type], 'value': node.value}


def param_to_json(data: bytes, labels: HashLabels) -> dict:
    """Decode a param file and convert it to JSON."""
    return {
        'format': FORMAT_NAME,
        'root': node_to_json(decode(data), labels),
    }


# =============================================================================
# JSON -> PARAM
# =============================================================================

def json_to_node(obj: dict, labels: HashLabels):
    """
    Convert a JSON dictionary back to a param node.

    Raises:
        ValueError: unknown type name or value that does not fit its type
        DuplicateKeyError: two struct fields resolve to the same hash
    """
    type_key = obj.get('type')
    if type_key not in TYPE_FROM_KEY:
        raise ValueError(f"Unknown param type: {type_key!r}")
    param_type = TYPE_FROM_KEY[type_key]

    if param_type == ParamType.STRUCT:
        node = ParamStruct()
        for field in obj.get('fields', []):
            node.insert(labels.parse_hash_or_label(field['key']),
                        json_to_node(field['value'], labels))
        return node
    if param_type == ParamType.LIST:
        return ParamList(json_to_node(child, labels) for child in obj.get('values', []))
    if param_type == ParamType.HASH:
        return ParamValue(param_type, labels.parse_hash_or_label(obj['value']))
    return ParamValue(param_type, obj['value'])


def json_to_param(json_data: dict, labels: HashLabels, merge_struct_refs: bool = True) -> bytes:
    """Convert a JSON document back to param file bytes."""
    if json_data.get('format', FORMAT_NAME) != FORMAT_NAME:
        raise ValueError(f"Not a {FORMAT_NAME} JSON document: {json_data.get('format')!r}")
    root = json_to_node(json_data['root'], labels)
    if not isinstance(root, ParamStruct):
        raise ValueError("JSON root must be a struct")
    return encode(root, merge_struct_refs)


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description='Convert param (paracobn) files to/from JSON',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert param file to JSON
  python prc_json.py fighter_param.prc -o fighter_param.json --pretty

  # Convert JSON back to binary
  python prc_json.py fighter_param.json --to-binary -o fighter_param_new.prc
        """
    )

    parser.add_argument('input', help='Input file (param binary or JSON)')
    parser.add_argument('-o', '--output', required=True, help='Output file')
    parser.add_argument('--to-binary', action='store_true',
                        help='Convert JSON to binary param file')
    parser.add_argument('--labels', '-l', help='Label table CSV for hash names')
    parser.add_argument('--pretty', action='store_true',
                        help='Pretty-print JSON output with indentation')
    parser.add_argument('--no-merge', action='store_true',
                        help='Write every struct reference entry separately')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    labels = HashLabels()
    if args.labels:
        result = labels.load_file(args.labels)
        print(f"Loaded {result.loaded} labels ({result.skipped} skipped)")

    try:
        if args.to_binary:
            print(f"Converting JSON to param binary")
            print(f"  Input: {args.input}")

            with open(args.input, 'r', encoding='utf-8') as f:
                json_data = json.load(f)

            output_data = json_to_param(json_data, labels, merge_struct_refs=not args.no_merge)
            with open(args.output, 'wb') as f:
                f.write(output_data)

            print(f"  Output: {args.output}")
            print(f"  Size: {len(output_data)} bytes")
        else:
            print(f"Converting param binary to JSON")
            print(f"  Input: {args.input}")

            with open(args.input, 'rb') as f:
                data = f.read()

            json_data = param_to_json(data, labels)
            print(f"  Root fields: {len(json_data['root']['fields'])}")

            with open(args.output, 'w', encoding='utf-8') as f:
                if args.pretty:
                    json.dump(json_data, f, indent=2)
                else:
                    json.dump(json_data, f)

            print(f"  Output: {args.output}")
    except (ParamError, ValueError, KeyError) as e:
        print(f"ERROR: {e}")
        return 1

    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
