import math

import pytest

from hash_labels import HashLabels
from prc_errors import DuplicateKeyError
from prc_types import (
    ParamList,
    ParamStruct,
    ParamType,
    ParamValue,
    children,
    coerce_value,
    to_float32,
    type_name,
    value_string,
)


def _struct(*keys):
    return ParamStruct([(key, ParamValue(ParamType.I32, key)) for key in keys])


# -----------------------------------------------------------------------------
# Scalars
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("param_type, low, high", [
    (ParamType.I8, -128, 127),
    (ParamType.U8, 0, 255),
    (ParamType.I16, -32768, 32767),
    (ParamType.U16, 0, 65535),
    (ParamType.I32, -(1 << 31), (1 << 31) - 1),
    (ParamType.U32, 0, (1 << 32) - 1),
    (ParamType.I64, -(1 << 63), (1 << 63) - 1),
    (ParamType.U64, 0, (1 << 64) - 1),
])
def test_integer_ranges(param_type, low, high):
    assert coerce_value(param_type, low) == low
    assert coerce_value(param_type, high) == high
    with pytest.raises(ValueError):
        coerce_value(param_type, low - 1)
    with pytest.raises(ValueError):
        coerce_value(param_type, high + 1)


@pytest.mark.parametrize("param_type, value", [
    (ParamType.I32, True),
    (ParamType.I32, 1.0),
    (ParamType.STRING, 5),
    (ParamType.FLOAT, "1.0"),
    (ParamType.HASH, -1),
    (ParamType.HASH, 1 << 64),
    (ParamType.BOOL, "yes"),
])
def test_wrong_value_types_rejected(param_type, value):
    with pytest.raises(ValueError):
        ParamValue(param_type, value)


def test_container_types_are_not_scalars():
    with pytest.raises(ValueError):
        ParamValue(ParamType.STRUCT, 0)


def test_float_is_rounded_to_float32():
    node = ParamValue(ParamType.FLOAT, 0.1)
    assert node.value == to_float32(0.1)
    assert node.value != 0.1
    assert ParamValue(ParamType.FLOAT, 2).value == 2.0


def test_float_out_of_range_rejected():
    with pytest.raises(ValueError):
        ParamValue(ParamType.FLOAT, 1e300)


def test_nan_values_compare_equal():
    assert ParamValue(ParamType.FLOAT, math.nan) == ParamValue(ParamType.FLOAT, math.nan)


def test_value_equality_includes_type():
    assert ParamValue(ParamType.I32, 1) != ParamValue(ParamType.U32, 1)
    assert ParamValue(ParamType.I32, 1) == ParamValue(ParamType.I32, 1)


def test_set_keeps_type_and_validates():
    node = ParamValue(ParamType.U8, 1)
    node.set(200)
    assert node.value == 200
    with pytest.raises(ValueError):
        node.set(300)
    assert node.value == 200


# -----------------------------------------------------------------------------
# Struct
# -----------------------------------------------------------------------------

def test_struct_keeps_insertion_order():
    node = _struct(3, 1, 2)
    assert list(node.keys()) == [3, 1, 2]
    assert node.index_of(1) == 1
    assert node.key_at(2) == 2


def test_struct_rejects_duplicate_key_on_construction():
    with pytest.raises(DuplicateKeyError) as excinfo:
        ParamStruct([(1, ParamValue(ParamType.BOOL, True)),
                     (1, ParamValue(ParamType.BOOL, False))])
    assert excinfo.value.key == 1
    assert excinfo.value.offset is None


def test_insert_duplicate_leaves_struct_unchanged():
    node = _struct(1, 2)
    with pytest.raises(DuplicateKeyError):
        node.insert(2, ParamValue(ParamType.BOOL, True))
    assert node == _struct(1, 2)


def test_insert_at_position():
    node = _struct(1, 2)
    node.insert(5, ParamValue(ParamType.I32, 5), index=1)
    assert list(node.keys()) == [1, 5, 2]


def test_rekey_keeps_position():
    node = _struct(1, 2, 3)
    node.rekey(2, 20)
    assert list(node.keys()) == [1, 20, 3]
    assert node[20] == ParamValue(ParamType.I32, 2)


def test_rekey_to_existing_key_fails():
    node = _struct(1, 2)
    with pytest.raises(DuplicateKeyError):
        node.rekey(1, 2)
    assert list(node.keys()) == [1, 2]


def test_rekey_missing_key():
    with pytest.raises(KeyError):
        _struct(1).rekey(9, 10)


def test_rekey_to_same_key_is_noop():
    node = _struct(1, 2)
    node.rekey(1, 1)
    assert list(node.keys()) == [1, 2]


def test_struct_move():
    node = _struct(1, 2, 3)
    node.move(3, 0)
    assert list(node.keys()) == [3, 1, 2]
    node.move(3, 2)
    assert list(node.keys()) == [1, 2, 3]
    with pytest.raises(IndexError):
        node.move(1, 3)


def test_struct_setitem_replaces_in_place():
    node = _struct(1, 2)
    node[1] = ParamValue(ParamType.STRING, "x")
    node[7] = ParamList()
    assert list(node.keys()) == [1, 2, 7]
    assert node[1] == ParamValue(ParamType.STRING, "x")


def test_struct_rejects_non_nodes():
    with pytest.raises(TypeError):
        ParamStruct({1: 5})


def test_struct_set_value():
    node = ParamStruct({1: ParamValue(ParamType.I16, 0), 2: ParamList()})
    node.set_value(1, -5)
    assert node[1].value == -5
    with pytest.raises(ValueError):
        node.set_value(2, 1)


def test_struct_equality_is_ordered():
    assert _struct(1, 2) == _struct(1, 2)
    assert _struct(1, 2) != _struct(2, 1)


def test_sort_by_hash():
    node = _struct(30, 10, 20)
    node.sort_by_hash()
    assert list(node.keys()) == [10, 20, 30]


# -----------------------------------------------------------------------------
# List
# -----------------------------------------------------------------------------

def test_list_operations():
    node = ParamList([ParamValue(ParamType.U8, i) for i in range(4)])
    node.move(0, 3)
    assert [v.value for v in node] == [1, 2, 3, 0]

    removed = node.remove(1)
    assert removed.value == 2
    node.insert(0, ParamValue(ParamType.U8, 9))
    assert [v.value for v in node] == [9, 1, 3, 0]

    node.set_value(1, 100)
    assert node[1].value == 100


@pytest.mark.parametrize("src, dst", [(-1, 0), (0, 3), (3, 0)])
def test_list_move_out_of_range(src, dst):
    node = ParamList([ParamValue(ParamType.U8, i) for i in range(3)])
    with pytest.raises(IndexError):
        node.move(src, dst)


def test_list_may_mix_types():
    node = ParamList([ParamValue(ParamType.BOOL, False), ParamStruct(), ParamList()])
    assert [type_name(child) for child in node] == ["Bool", "Struct", "List"]


# -----------------------------------------------------------------------------
# Display
# -----------------------------------------------------------------------------

def test_value_string():
    labels = HashLabels()
    labels.add_label_for_hash(0x55, "named")

    assert value_string(ParamStruct()) == "Struct (0 fields)"
    assert value_string(ParamList([ParamStruct()])) == "List (1 items)"
    assert value_string(ParamValue(ParamType.BOOL, True)) == "true"
    assert value_string(ParamValue(ParamType.HASH, 0x55)) == "0x55"
    assert value_string(ParamValue(ParamType.HASH, 0x55), labels) == "named"
    assert value_string(ParamValue(ParamType.FLOAT, 0.1)) == "0.1"
    assert value_string(ParamValue(ParamType.STRING, "abc")) == "abc"


def test_children():
    node = ParamStruct({1: ParamList([ParamValue(ParamType.I8, 1)])})
    assert children(node) == [(1, node[1])]
    assert children(node[1]) == [(None, node[1][0])]
    assert children(node[1][0]) == []
