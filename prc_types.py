"""
Param Node Model
================

In-memory tree for one param file. A node is one of three classes:

| Class       | Holds                                   |
|-------------|-----------------------------------------|
| ParamValue  | one scalar (bool, ints, float, hash, str) |
| ParamStruct | ordered hash -> node mapping            |
| ParamList   | ordered node sequence                   |

Struct keys keep insertion order; the codec never reorders them. Keys are
unique, and every mutation that would break that raises DuplicateKeyError
without touching the struct.

Type Tags (on-disk values):
--------------------------
| Tag | Type   | Size | Display |
|-----|--------|------|---------|
| 1   | BOOL   | 1    | Bool    |
| 2   | I8     | 1    | SByte   |
| 3   | U8     | 1    | Byte    |
| 4   | I16    | 2    | Short   |
| 5   | U16    | 2    | UShort  |
| 6   | I32    | 4    | Int     |
| 7   | U32    | 4    | UInt    |
| 8   | FLOAT  | 4    | Float   |
| 9   | HASH   | 4    | Hash40  | (index into hash table)
| 10  | STRING | 4    | String  | (offset into reference table)
| 11  | LIST   | var  | List    |
| 12  | STRUCT | 8    | Struct  |
| 13  | I64    | 8    | Long    |
| 14  | U64    | 8    | ULong   |
"""

import math
import struct
from enum import IntEnum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from prc_errors import DuplicateKeyError

HASH_MASK = 0xFFFFFFFFFFFFFFFF

# Nesting limit shared by the parser and serializer
MAX_DEPTH = 256


class ParamType(IntEnum):
    """Param type tags as stored in the file"""
    BOOL = 1
    I8 = 2
    U8 = 3
    I16 = 4
    U16 = 5
    I32 = 6
    U32 = 7
    FLOAT = 8
    HASH = 9
    STRING = 10
    LIST = 11
    STRUCT = 12
    I64 = 13
    U64 = 14


SCALAR_TYPES = frozenset({
    ParamType.BOOL,
    ParamType.I8, ParamType.U8,
    ParamType.I16, ParamType.U16,
    ParamType.I32, ParamType.U32,
    ParamType.I64, ParamType.U64,
    ParamType.FLOAT,
    ParamType.HASH,
    ParamType.STRING,
})

INT_RANGES = {
    ParamType.I8: (-0x80, 0x7F),
    ParamType.U8: (0, 0xFF),
    ParamType.I16: (-0x8000, 0x7FFF),
    ParamType.U16: (0, 0xFFFF),
    ParamType.I32: (-0x80000000, 0x7FFFFFFF),
    ParamType.U32: (0, 0xFFFFFFFF),
    ParamType.I64: (-0x8000000000000000, 0x7FFFFFFFFFFFFFFF),
    ParamType.U64: (0, HASH_MASK),
}

TYPE_NAMES = {
    ParamType.BOOL: "Bool",
    ParamType.I8: "SByte",
    ParamType.U8: "Byte",
    ParamType.I16: "Short",
    ParamType.U16: "UShort",
    ParamType.I32: "Int",
    ParamType.U32: "UInt",
    ParamType.FLOAT: "Float",
    ParamType.HASH: "Hash40",
    ParamType.STRING: "String",
    ParamType.LIST: "List",
    ParamType.STRUCT: "Struct",
    ParamType.I64: "Long",
    ParamType.U64: "ULong",
}


# =============================================================================
# Value Validation
# =============================================================================

def to_float32(value: float) -> float:
    """Round a Python float to the nearest float32."""
    try:
        return struct.unpack('<f', struct.pack('<f', value))[0]
    except OverflowError as e:
        raise ValueError(f"Float out of float32 range: {value!r}") from e


def check_hash(value: Any) -> int:
    """Validate a 64-bit hash (struct key or Hash40 value)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Hash must be an int, got {type(value).__name__}")
    if not 0 <= value <= HASH_MASK:
        raise ValueError(f"Hash out of 64-bit range: {value:#x}")
    return value


def coerce_value(param_type: ParamType, value: Any) -> Any:
    """
    Validate a scalar for its type tag and return the stored form.

    Raises:
        ValueError: value does not fit the type
    """
    if param_type == ParamType.BOOL:
        if not isinstance(value, (bool, int)):
            raise ValueError(f"Bool expects bool, got {type(value).__name__}")
        return bool(value)

    if param_type in INT_RANGES:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{TYPE_NAMES[param_type]} expects int, got {type(value).__name__}")
        low, high = INT_RANGES[param_type]
        if not low <= value <= high:
            raise ValueError(f"{TYPE_NAMES[param_type]} out of range [{low}, {high}]: {value}")
        return value

    if param_type == ParamType.FLOAT:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Float expects a number, got {type(value).__name__}")
        return to_float32(float(value))

    if param_type == ParamType.HASH:
        return check_hash(value)

    if param_type == ParamType.STRING:
        if not isinstance(value, str):
            raise ValueError(f"String expects str, got {type(value).__name__}")
        return value

    raise ValueError(f"Not a scalar type: {param_type!r}")


def _float_bits(value: float) -> bytes:
    return struct.pack('<f', value)


# =============================================================================
# Nodes
# =============================================================================

class ParamValue:
    """Scalar leaf node."""

    __slots__ = ('type', 'value')

    def __init__(self, param_type: ParamType, value: Any):
        param_type = ParamType(param_type)
        if param_type not in SCALAR_TYPES:
            raise ValueError(f"{param_type.name} is not a scalar type")
        self.type = param_type
        self.value = coerce_value(param_type, value)

    def set(self, value: Any):
        """Replace the value, keeping the type."""
        self.value = coerce_value(self.type, value)

    def __eq__(self, other):
        if not isinstance(other, ParamValue):
            return NotImplemented
        if self.type != other.type:
            return False
        if self.type == ParamType.FLOAT:
            # NaN payloads compare by bit pattern
            return _float_bits(self.value) == _float_bits(other.value)
        return self.value == other.value

    def __repr__(self):
        return f"ParamValue({self.type.name}, {self.value!r})"


class ParamList:
    """Ordered sequence of nodes."""

    type = ParamType.LIST

    def __init__(self, values: Optional[Iterable['ParamNode']] = None):
        self.values: List[ParamNode] = []
        for node in values or ():
            self.append(node)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator['ParamNode']:
        return iter(self.values)

    def __getitem__(self, index: int) -> 'ParamNode':
        return self.values[index]

    def __setitem__(self, index: int, node: 'ParamNode'):
        self.values[index] = _check_node(node)

    def __eq__(self, other):
        if not isinstance(other, ParamList):
            return NotImplemented
        return self.values == other.values

    def __repr__(self):
        return f"ParamList({self.values!r})"

    def append(self, node: 'ParamNode'):
        self.values.append(_check_node(node))

    def insert(self, index: int, node: 'ParamNode'):
        self.values.insert(index, _check_node(node))

    def remove(self, index: int) -> 'ParamNode':
        """Remove and return the element at index."""
        return self.values.pop(index)

    def move(self, src: int, dst: int):
        """Move the element at src so it ends up at dst."""
        count = len(self.values)
        if not 0 <= src < count or not 0 <= dst < count:
            raise IndexError(f"List move {src} -> {dst} out of range (len {count})")
        node = self.values.pop(src)
        self.values.insert(dst, node)

    def set_value(self, index: int, value: Any):
        """Replace the scalar value of the element at index."""
        node = self.values[index]
        if not isinstance(node, ParamValue):
            raise ValueError(f"List element {index} is a {TYPE_NAMES[node.type]}, not a scalar")
        node.set(value)


class ParamStruct:
    """Ordered mapping of hash key -> node with unique keys."""

    type = ParamType.STRUCT

    def __init__(self, fields: Union[Mapping[int, 'ParamNode'],
                                     Iterable[Tuple[int, 'ParamNode']], None] = None):
        self._fields: Dict[int, ParamNode] = {}
        if isinstance(fields, Mapping):
            fields = fields.items()
        for key, node in fields or ():
            self.insert(key, node)

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[int]:
        return iter(self._fields)

    def __contains__(self, key: int) -> bool:
        return key in self._fields

    def __getitem__(self, key: int) -> 'ParamNode':
        return self._fields[key]

    def __setitem__(self, key: int, node: 'ParamNode'):
        """Replace the node under key, or append key if it is new."""
        self._fields[check_hash(key)] = _check_node(node)

    def __eq__(self, other):
        if not isinstance(other, ParamStruct):
            return NotImplemented
        return list(self._fields.items()) == list(other._fields.items())

    def __repr__(self):
        inner = ", ".join(f"0x{k:X}: {v!r}" for k, v in self._fields.items())
        return f"ParamStruct({{{inner}}})"

    def get(self, key: int, default=None):
        return self._fields.get(key, default)

    def keys(self):
        return self._fields.keys()

    def values(self):
        return self._fields.values()

    def items(self):
        return self._fields.items()

    def index_of(self, key: int) -> int:
        """Position of key within the struct."""
        for index, existing in enumerate(self._fields):
            if existing == key:
                return index
        raise KeyError(key)

    def key_at(self, index: int) -> int:
        """Key at a position within the struct."""
        return list(self._fields)[index]

    def insert(self, key: int, node: 'ParamNode', index: Optional[int] = None):
        """
        Add a new key.

        Args:
            key: 64-bit hash key (must not already exist)
            node: Child node
            index: Position to insert at; appended when None

        Raises:
            DuplicateKeyError: key already present
        """
        key = check_hash(key)
        node = _check_node(node)
        if key in self._fields:
            raise DuplicateKeyError(key)
        if index is None:
            self._fields[key] = node
            return
        items = list(self._fields.items())
        items.insert(index, (key, node))
        self._fields = dict(items)

    def remove(self, key: int) -> 'ParamNode':
        """Remove key and return its node."""
        return self._fields.pop(key)

    def rekey(self, old_key: int, new_key: int):
        """Rename a key in place, keeping its position."""
        new_key = check_hash(new_key)
        if old_key not in self._fields:
            raise KeyError(old_key)
        if new_key == old_key:
            return
        if new_key in self._fields:
            raise DuplicateKeyError(new_key)
        self._fields = {
            (new_key if key == old_key else key): node
            for key, node in self._fields.items()
        }

    def move(self, key: int, index: int):
        """Move key to a new position."""
        node = self._fields[key]
        if not 0 <= index < len(self._fields):
            raise IndexError(f"Struct move to {index} out of range (len {len(self._fields)})")
        items = [(k, v) for k, v in self._fields.items() if k != key]
        items.insert(index, (key, node))
        self._fields = dict(items)

    def set_value(self, key: int, value: Any):
        """Replace the scalar value stored under key."""
        node = self._fields[key]
        if not isinstance(node, ParamValue):
            raise ValueError(f"Field 0x{key:X} is a {TYPE_NAMES[node.type]}, not a scalar")
        node.set(value)

    def sort_by_hash(self):
        """Reorder keys by numeric hash value."""
        self._fields = dict(sorted(self._fields.items()))


ParamNode = Union[ParamValue, ParamList, ParamStruct]
ParamNodeTypes = (ParamValue, ParamList, ParamStruct)


def _check_node(node: Any) -> ParamNode:
    if not isinstance(node, ParamNodeTypes):
        raise TypeError(f"Expected a param node, got {type(node).__name__}")
    return node


# =============================================================================
# Display Helpers
# =============================================================================

def type_name(node: ParamNode) -> str:
    """Display name of a node's type (Bool, Int, Hash40, Struct...)."""
    return TYPE_NAMES[node.type]


def value_string(node: ParamNode, labels=None) -> str:
    """
    Display string for a node.

    Args:
        node: Node to describe
        labels: Optional HashLabels used to name Hash40 values
    """
    if isinstance(node, ParamStruct):
        return f"Struct ({len(node)} fields)"
    if isinstance(node, ParamList):
        return f"List ({len(node)} items)"
    if node.type == ParamType.HASH:
        if labels is not None:
            return labels.display(node.value)
        return f"0x{node.value:X}"
    if node.type == ParamType.BOOL:
        return "true" if node.value else "false"
    if node.type == ParamType.FLOAT:
        if math.isfinite(node.value):
            return repr(float(f"{node.value:.7g}"))
        return repr(node.value)
    return str(node.value)


def children(node: ParamNode) -> List[Tuple[Union[int, None], ParamNode]]:
    """
    Child entries of a node as (key, child) pairs.

    Struct children carry their hash key, list children carry None and
    scalars have no children.
    """
    if isinstance(node, ParamStruct):
        return list(node.items())
    if isinstance(node, ParamList):
        return [(None, child) for child in node]
    return []
