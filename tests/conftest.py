"""Shared fixtures: small WAD images assembled by hand with struct."""

import struct

import pytest

THING = struct.pack("<hhhHH", 32, -64, 90, 1, 7)
LINEDEF = struct.pack("<hhHHHhH", 0, 0, 1, 0, 0, 0, 0xFFFF)
SIDEDEF = struct.pack("<hh8s8s8sh", 0, 0, b"-", b"STARTAN3", b"-", 0)
VERTEX = struct.pack("<hh", 64, -128)
SECTOR = struct.pack("<hh8s8shHH", 0, 128, b"FLOOR4_8", b"CEIL3_5", 160, 0, 0)


def pack_wad(wad_type: bytes, lumps: list) -> bytes:
    """Lay out header, lump data, then directory, as the engine tools do."""
    data = b"".join(content for _, content in lumps)
    header = struct.pack("<4sII", wad_type, len(lumps), 12 + len(data))
    entries = []
    pos = 12
    for name, content in lumps:
        entries.append(struct.pack("<II8s", pos, len(content), name.encode("ascii")))
        pos += len(content)
    return header + data + b"".join(entries)


@pytest.fixture
def make_wad():
    return pack_wad


@pytest.fixture
def map_lumps():
    """MAP01 with one record of each kind, no node builder lumps."""
    return [
        ("MAP01", b""),
        ("THINGS", THING),
        ("LINEDEFS", LINEDEF),
        ("SIDEDEFS", SIDEDEF),
        ("VERTEXES", VERTEX),
        ("SECTORS", SECTOR),
    ]


@pytest.fixture
def built_map_lumps():
    """MAP01 as a node builder leaves it, with every derived lump present."""
    return [
        ("MAP01", b""),
        ("THINGS", THING),
        ("LINEDEFS", LINEDEF),
        ("SIDEDEFS", SIDEDEF),
        ("VERTEXES", VERTEX),
        ("SEGS", b"\x01" * 12),
        ("SSECTORS", b"\x02" * 4),
        ("NODES", b"\x03" * 28),
        ("SECTORS", SECTOR),
        ("REJECT", b"\x00"),
        ("BLOCKMAP", b"\x04" * 8),
    ]


@pytest.fixture
def scenario_bytes(map_lumps):
    return pack_wad(b"IWAD", map_lumps)
