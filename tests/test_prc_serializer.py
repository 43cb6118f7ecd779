import struct

import pytest

import prc_serializer
from prc_errors import EncodeError
from prc_parser import decode, read_header
from prc_serializer import compare_files, encode
from prc_types import ParamList, ParamStruct, ParamType, ParamValue


def hash_table_of(data):
    header = read_header(data)
    return list(struct.unpack_from(f'<{header.hash_count}Q', data, header.hash_start))


def ref_table_of(data):
    header = read_header(data)
    return data[header.ref_start:header.param_start]


def test_round_trip(sample_tree):
    data = encode(sample_tree)
    assert decode(data) == sample_tree
    assert encode(decode(data)) == data


def test_round_trip_keeps_struct_order():
    root = ParamStruct([(0x30, ParamValue(ParamType.U8, 1)), (0x10, ParamValue(ParamType.U8, 2))])
    assert list(decode(encode(root)).keys()) == [0x30, 0x10]


def test_empty_containers_round_trip():
    root = ParamStruct({1: ParamStruct(), 2: ParamList(), 3: ParamList([ParamStruct()])})
    assert decode(encode(root)) == root
    assert decode(encode(ParamStruct())) == ParamStruct()


def test_hash_table_order(sample_tree):
    assert hash_table_of(encode(sample_tree)) == [
        0,
        0x1001, 0x1002, 0x1003, 0x1004, 0x1005, 0x1006, 0x1007, 0x1008,
        0x1009, 0xDEADBEEF,
        0x100A, 0x100B, 0x100C, 0x100D,
        0x0A00000001, 0x0A00000002,
        0x100E, 0x100F,
    ]


def test_hash_zero_is_not_duplicated():
    root = ParamStruct({0: ParamValue(ParamType.HASH, 0)})
    assert hash_table_of(encode(root)) == [0]


def test_strings_are_stored_once(sample_tree):
    ref_table = ref_table_of(encode(sample_tree))
    assert ref_table.count(b'shared\x00') == 1
    assert ref_table.count(b'other\x00') == 1


def test_identical_struct_entries_merge(sample_tree):
    merged = encode(sample_tree)
    separate = encode(sample_tree, merge_struct_refs=False)

    assert decode(separate) == decode(merged) == sample_tree
    # one two-field struct entry block fewer
    assert len(separate) - len(merged) == 16


def test_float_written_as_float32():
    root = ParamStruct({1: ParamValue(ParamType.FLOAT, 0.1)})
    data = encode(root)
    assert data[-4:] == struct.pack('<f', 0.1)


def test_unicode_string():
    root = ParamStruct({1: ParamValue(ParamType.STRING, "ファイター")})
    assert decode(encode(root)) == root


# -----------------------------------------------------------------------------
# Failures
# -----------------------------------------------------------------------------

def test_root_must_be_struct():
    with pytest.raises(EncodeError) as excinfo:
        encode(ParamList())
    assert excinfo.value.kind == "encode"


def test_string_with_null_byte():
    with pytest.raises(EncodeError):
        encode(ParamStruct({1: ParamValue(ParamType.STRING, "a\x00b")}))


def test_string_not_encodable():
    with pytest.raises(EncodeError):
        encode(ParamStruct({1: ParamValue(ParamType.STRING, "\ud800")}))


def test_value_changed_out_of_range_after_construction():
    node = ParamValue(ParamType.U8, 1)
    node.value = 300
    with pytest.raises(EncodeError):
        encode(ParamStruct({1: node}))


def test_bad_hash_value():
    node = ParamValue(ParamType.HASH, 1)
    node.value = -1
    with pytest.raises(EncodeError):
        encode(ParamStruct({1: node}))


def test_foreign_object_in_list():
    items = ParamList()
    items.values.append("not a node")
    with pytest.raises(EncodeError):
        encode(ParamStruct({1: items}))


def test_nesting_limit():
    node = ParamList()
    root = ParamStruct({1: node})
    for _ in range(300):
        child = ParamList()
        node.append(child)
        node = child
    with pytest.raises(EncodeError):
        encode(root)


# -----------------------------------------------------------------------------
# Comparison / command line
# -----------------------------------------------------------------------------

def test_compare_files(capsys):
    assert compare_files(b'abc', b'abc') is True
    assert "Identical" in capsys.readouterr().out

    assert compare_files(b'abc', b'abd') is False
    assert "0x000002: 63 != 64" in capsys.readouterr().out

    assert compare_files(b'abcd', b'abc') is False
    out = capsys.readouterr().out
    assert "Length differs by +1" in out
    assert "0 differing bytes in the shared range" in out


def test_main_reencodes_file(tmp_path, capsys, monkeypatch, sample_tree):
    source = tmp_path / "in.prc"
    target = tmp_path / "out.prc"
    source.write_bytes(encode(sample_tree))
    monkeypatch.setattr("sys.argv", ["prc_serializer.py", str(source), "-o", str(target), "--compare"])

    assert prc_serializer.main() == 0
    assert target.read_bytes() == source.read_bytes()
    assert "Identical" in capsys.readouterr().out


def test_main_reports_decode_errors(tmp_path, capsys, monkeypatch):
    source = tmp_path / "in.prc"
    source.write_bytes(b'paracobn')
    monkeypatch.setattr("sys.argv", ["prc_serializer.py", str(source), "-o", str(tmp_path / "out.prc")])

    assert prc_serializer.main() == 1
    assert "ERROR" in capsys.readouterr().out
    assert not (tmp_path / "out.prc").exists()
