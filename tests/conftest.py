import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from prc_types import ParamList, ParamStruct, ParamType, ParamValue  # noqa: E402


@pytest.fixture
def sample_tree() -> ParamStruct:
    """A tree touching every node type, nested lists and structs included."""
    inner = ParamStruct({
        0x0A00000001: ParamValue(ParamType.I32, -5),
        0x0A00000002: ParamValue(ParamType.STRING, "shared"),
    })
    return ParamStruct([
        (0x1001, ParamValue(ParamType.BOOL, True)),
        (0x1002, ParamValue(ParamType.I8, -128)),
        (0x1003, ParamValue(ParamType.U8, 255)),
        (0x1004, ParamValue(ParamType.I16, -300)),
        (0x1005, ParamValue(ParamType.U16, 65535)),
        (0x1006, ParamValue(ParamType.I32, 123456)),
        (0x1007, ParamValue(ParamType.U32, 0xFFFFFFFF)),
        (0x1008, ParamValue(ParamType.FLOAT, 1.5)),
        (0x1009, ParamValue(ParamType.HASH, 0xDEADBEEF)),
        (0x100A, ParamValue(ParamType.STRING, "shared")),
        (0x100B, ParamValue(ParamType.I64, -(1 << 40))),
        (0x100C, ParamValue(ParamType.U64, 1 << 63)),
        (0x100D, ParamList([
            ParamValue(ParamType.STRING, "shared"),
            ParamValue(ParamType.STRING, "other"),
            inner,
            ParamStruct({0x0A00000001: ParamValue(ParamType.I32, -5),
                         0x0A00000002: ParamValue(ParamType.STRING, "shared")}),
        ])),
        (0x100E, ParamStruct()),
        (0x100F, ParamList()),
    ])
