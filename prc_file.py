"""
Param File Session
==================

ParamFile ties one decoded tree to its label table and source filename.
Editors open and save through it, walk the tree for a view and address
edits by node path.

Node Paths:
----------
    root            the root struct
    root[2]         third child of the root (struct field or list item)
    root[2][0]      first child of that node

Struct children are addressed by position, so a path stays valid across a
rekey but not across an insert/remove before it.
"""

import logging
import re
from typing import Any, Iterator, List, Optional, Tuple

from hash_labels import HashLabels, LabelLoadResult
from prc_parser import decode
from prc_serializer import encode
from prc_types import ParamNode, ParamStruct, ParamValue, children

logger = logging.getLogger(__name__)

ROOT_PATH = "root"
_PATH_INDEX = re.compile(r'\[(\d+)\]')


def parse_node_path(path: str) -> List[int]:
    """
    Split a node path into child indices.

    Raises:
        ValueError: path is not of the form root[i][j]...
    """
    if not path.startswith(ROOT_PATH):
        raise ValueError(f"Node path must start with '{ROOT_PATH}': {path!r}")
    rest = path[len(ROOT_PATH):]
    indices = [int(m) for m in _PATH_INDEX.findall(rest)]
    if ''.join(f"[{i}]" for i in indices) != rest:
        raise ValueError(f"Malformed node path: {path!r}")
    return indices


def format_node_path(indices: List[int]) -> str:
    return ROOT_PATH + ''.join(f"[{i}]" for i in indices)


class ParamFile:
    """One open param file plus the label table used to display it."""

    def __init__(self, labels: Optional[HashLabels] = None):
        self.labels = labels if labels is not None else HashLabels()
        self.root: Optional[ParamStruct] = None
        self.filename = ""

    # -------------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------------

    def load_labels(self, path: str) -> LabelLoadResult:
        return self.labels.load_file(path)

    def load(self, data: bytes, filename: str = ""):
        """Decode a buffer, replacing the current tree only on success."""
        root = decode(data)
        self.root = root
        self.filename = filename
        logger.info("Opened %s: %d root fields", filename or "<buffer>", len(root))

    def open(self, path: str):
        with open(path, 'rb') as f:
            data = f.read()
        self.load(data, path)

    def to_bytes(self, merge_struct_refs: bool = True) -> bytes:
        return encode(self._require_root(), merge_struct_refs)

    def save(self, path: Optional[str] = None, merge_struct_refs: bool = True) -> int:
        """
        Encode and write the tree.

        The tree is fully encoded before the file is opened, so an encode
        failure leaves the destination untouched.

        Returns:
            Number of bytes written
        """
        path = path or self.filename
        if not path:
            raise ValueError("No output path given and file has no name")
        data = self.to_bytes(merge_struct_refs)
        with open(path, 'wb') as f:
            f.write(data)
        self.filename = path
        logger.info("Saved %d bytes to %s", len(data), path)
        return len(data)

    def close(self):
        self.root = None
        self.filename = ""

    def _require_root(self) -> ParamStruct:
        if self.root is None:
            raise ValueError("No param file loaded")
        return self.root

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def get_node(self, path: str) -> ParamNode:
        """Node at a path; raises IndexError if it does not exist."""
        node: ParamNode = self._require_root()
        for index in parse_node_path(path):
            entries = children(node)
            if not 0 <= index < len(entries):
                raise IndexError(f"No child {index} under {path!r}")
            node = entries[index][1]
        return node

    def _parent_of(self, path: str) -> Tuple[ParamNode, int]:
        indices = parse_node_path(path)
        if not indices:
            raise ValueError("The root has no parent")
        parent = self.get_node(format_node_path(indices[:-1]))
        index = indices[-1]
        if not 0 <= index < len(children(parent)):
            raise IndexError(f"No node at {path!r}")
        return parent, index

    def display_name(self, key: Optional[int], index: int = 0) -> str:
        """Display name of a child: label/hex for struct keys, [i] for list items."""
        if key is None:
            return f"[{index}]"
        return self.labels.display(key)

    def walk(self) -> Iterator[Tuple[str, Optional[int], ParamNode]]:
        """Yield (path, key, node) for every node, pre-order, root first."""
        stack = [(ROOT_PATH, None, self._require_root())]
        while stack:
            path, key, node = stack.pop()
            yield path, key, node
            entries = children(node)
            for index in range(len(entries) - 1, -1, -1):
                child_key, child = entries[index]
                stack.append((f"{path}[{index}]", child_key, child))

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def update_value(self, path: str, value: Any):
        """Replace the value of the scalar at path."""
        node = self.get_node(path)
        if not isinstance(node, ParamValue):
            raise ValueError(f"Node at {path!r} is not a scalar")
        node.set(value)

    def update_key(self, path: str, new_key: int):
        """Rename the struct field at path, keeping its position."""
        parent, index = self._parent_of(path)
        if not isinstance(parent, ParamStruct):
            raise ValueError(f"Node at {path!r} is a list item and has no key")
        parent.rekey(parent.key_at(index), new_key)

    def replace_node(self, path: str, node: ParamNode):
        """Put a different node at path (struct key or list slot kept)."""
        if not parse_node_path(path):
            if not isinstance(node, ParamStruct):
                raise ValueError("The root must be a struct")
            self.root = node
            return
        parent, index = self._parent_of(path)
        if isinstance(parent, ParamStruct):
            parent[parent.key_at(index)] = node
        else:
            parent[index] = node

    def remove_node(self, path: str) -> ParamNode:
        """Remove and return the node at path."""
        parent, index = self._parent_of(path)
        if isinstance(parent, ParamStruct):
            return parent.remove(parent.key_at(index))
        return parent.remove(index)
