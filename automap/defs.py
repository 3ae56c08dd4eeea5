"""Shared constants, on-disk layouts and map record types for AutoMap."""
import struct
from dataclasses import dataclass, field, replace
from enum import IntFlag
from typing import ClassVar, Optional

from automap.errors import MalformedRecord

# WAD header layout (12 bytes): type tag, lump count, directory offset
HEADER_FMT = "<4sII"
HEADER_SIZE = struct.calcsize(HEADER_FMT)  # 12

# Directory entry (16 bytes): lump offset, lump size, lump name
DIR_ENTRY_FMT = "<II8s"
DIR_ENTRY_SIZE = struct.calcsize(DIR_ENTRY_FMT)  # 16

WAD_TYPES = ("IWAD", "PWAD")

# Lump and texture names live in fixed 8-byte slots
NAME_SIZE = 8
NAME_ENCODING = "latin-1"

# Lumps holding map scripts start with this prefix
SCRIPT_PREFIX = "AML_"

# Map lump ordering after the marker. The flag says whether the lump is part
# of the editable geometry (required) or a node builder artifact (optional).
MAP_LUMP_ACTIONS = (
    ("THINGS",   True),
    ("LINEDEFS", True),
    ("SIDEDEFS", True),
    ("VERTEXES", True),
    ("SEGS",     False),
    ("SSECTORS", False),
    ("NODES",    False),
    ("SECTORS",  True),
    ("REJECT",   False),
    ("BLOCKMAP", False),
)

# Canonical order of a map lump group, marker excluded
MAP_LUMP_NAMES = tuple(name for name, keep in MAP_LUMP_ACTIONS if keep)
BUILT_LUMP_NAMES = frozenset(name for name, keep in MAP_LUMP_ACTIONS if not keep)


def trim_c8(raw: bytes) -> str:
    """Convert a NUL-padded 8-byte name to a string, cut at the first NUL."""
    end = raw.find(b"\x00")
    if end != -1:
        raw = raw[:end]
    return raw.decode(NAME_ENCODING)


def pack_c8(name: str) -> bytes:
    """Encode *name* for an 8-byte slot; struct pads it with NULs."""
    raw = name.encode(NAME_ENCODING)
    if len(raw) > NAME_SIZE:
        raise MalformedRecord(f"Name {name!r} is longer than {NAME_SIZE} bytes")
    return raw


def _pack(fmt: str, kind: str, *values) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as e:
        raise MalformedRecord(f"Cannot encode {kind} {values!r}: {e}") from e


# ─── Flags ───

class ThingFlag(IntFlag):
    EXTRA = 0x1
    FLIP = 0x2
    SPECIAL = 0x4
    AMBUSH = 0x8


class LinedefFlag(IntFlag):
    IMPASSABLE = 0x1
    BLOCK_ENEMIES = 0x2
    DOUBLE_SIDED = 0x4
    UPPER_UNPEGGED = 0x8
    LOWER_UNPEGGED = 0x10
    SLOPE_SKEW = 0x20
    NOT_CLIMBABLE = 0x40
    NO_MIDTEXTURE_SKEW = 0x80
    PEG_MIDTEXTURE = 0x100
    SOLID_MIDTEXTURE = 0x200
    REPEAT_MIDTEXTURE = 0x400
    NETGAME_ONLY = 0x800
    NO_NETGAME = 0x1000
    EFFECT_6 = 0x2000
    BOUNCY_WALL = 0x4000
    TRANSFER_LINE = 0x8000


# ─── Map records ───
#
# References between records are 1-based indices into the owning Map's lists,
# with 0 meaning "none". The files store 0-based indices, so the conversion
# happens in decode()/encode() and nowhere else.

@dataclass
class Thing:
    """Thing placement (10 bytes: x, y, angle, type, flags)."""
    x: int = 0
    y: int = 0
    angle: int = 0
    type: int = 0
    flags: int = 0

    FORMAT: ClassVar[str] = "<hhhHH"
    SIZE: ClassVar[int] = 10

    @classmethod
    def decode(cls, data: bytes) -> "Thing":
        return cls(*struct.unpack(cls.FORMAT, data))

    def encode(self) -> bytes:
        return _pack(self.FORMAT, "thing", self.x, self.y, self.angle,
                     self.type, self.flags)

    def copy(self) -> "Thing":
        return replace(self)

    # type = param (high 4 bits) | base type (low 12 bits)
    @property
    def base_type(self) -> int:
        return self.type & 0x0FFF

    @base_type.setter
    def base_type(self, value: int) -> None:
        self.type = (self.type & 0xF000) | (value & 0x0FFF)

    @property
    def param(self) -> int:
        return (self.type & 0xF000) >> 12

    @param.setter
    def param(self, value: int) -> None:
        self.type = (self.type & 0x0FFF) | ((value << 12) & 0xF000)

    # flags = height (high 12 bits) | flags proper (low 4 bits)
    @property
    def base_flags(self) -> int:
        return self.flags & 0x000F

    @base_flags.setter
    def base_flags(self, value: int) -> None:
        self.flags = (self.flags & 0xFFF0) | (value & 0x000F)

    @property
    def height(self) -> int:
        return (self.flags & 0xFFF0) >> 4

    @height.setter
    def height(self, value: int) -> None:
        self.flags = (self.flags & 0x000F) | ((value << 4) & 0xFFF0)


@dataclass
class Linedef:
    """Linedef (14 bytes: v1, v2, flags, action, tag, front side, back side).

    ``vertices`` and ``sidedefs`` hold two 1-based references each. The back
    side is 0 for one-sided lines; on disk that is 0xFFFF.
    """
    vertices: list = field(default_factory=lambda: [0, 0])
    flags: int = 0
    action: int = 0
    tag: int = 0
    sidedefs: list = field(default_factory=lambda: [0, 0])

    FORMAT: ClassVar[str] = "<hhHHHhH"
    SIZE: ClassVar[int] = 14
    NO_SIDE: ClassVar[int] = 0xFFFF

    @classmethod
    def new(cls, vertices: Optional[list] = None,
            sidedefs: Optional[list] = None) -> "Linedef":
        """Build a linedef whose default flags follow from the sides given."""
        vertices = list(vertices or [])
        sidedefs = list(sidedefs or [])
        vertices += [0] * (2 - len(vertices))
        sidedefs += [0] * (2 - len(sidedefs))

        flags = 0
        if sidedefs[1]:
            flags = LinedefFlag.DOUBLE_SIDED
        elif sidedefs[0]:
            flags = LinedefFlag.IMPASSABLE
        return cls(vertices=vertices, flags=int(flags), sidedefs=sidedefs)

    @classmethod
    def decode(cls, data: bytes) -> "Linedef":
        v1, v2, flags, action, tag, s1, s2 = struct.unpack(cls.FORMAT, data)
        back = 0 if s2 == cls.NO_SIDE else s2 + 1
        return cls(
            vertices=[v1 + 1, v2 + 1],
            flags=flags,
            action=action,
            tag=tag,
            sidedefs=[s1 + 1, back],
        )

    def encode(self) -> bytes:
        back = self.NO_SIDE if self.sidedefs[1] == 0 else self.sidedefs[1] - 1
        return _pack(self.FORMAT, "linedef",
                     self.vertices[0] - 1, self.vertices[1] - 1,
                     self.flags, self.action, self.tag,
                     self.sidedefs[0] - 1, back)

    def copy(self, vertices: Optional[list] = None,
             sidedefs: Optional[list] = None) -> "Linedef":
        """Copy this linedef, optionally pointing it at other vertices/sides."""
        return replace(
            self,
            vertices=list(vertices if vertices is not None else self.vertices),
            sidedefs=list(sidedefs if sidedefs is not None else self.sidedefs),
        )

    def get_vertex(self, level, n: int) -> "Vertex":
        """Return vertex *n* (1 or 2) of this line within *level*."""
        return level.vertices[self.vertices[n - 1] - 1]

    def get_sidedef(self, level, n: int) -> Optional["Sidedef"]:
        """Return side *n* (1 or 2) within *level*, or None if unset."""
        ref = self.sidedefs[n - 1]
        if ref == 0:
            return None
        return level.sidedefs[ref - 1]


@dataclass
class Sidedef:
    """Sidedef (30 bytes: offsets, upper/middle/lower texture, sector)."""
    x_offset: int = 0
    y_offset: int = 0
    upper_pic: str = ""
    middle_pic: str = ""
    lower_pic: str = ""
    sector: int = 0

    FORMAT: ClassVar[str] = "<hh8s8s8sh"
    SIZE: ClassVar[int] = 30

    @classmethod
    def decode(cls, data: bytes) -> "Sidedef":
        x_off, y_off, upper, middle, lower, sector = struct.unpack(cls.FORMAT, data)
        return cls(
            x_offset=x_off,
            y_offset=y_off,
            upper_pic=trim_c8(upper),
            middle_pic=trim_c8(middle),
            lower_pic=trim_c8(lower),
            sector=sector + 1,
        )

    def encode(self) -> bytes:
        return _pack(self.FORMAT, "sidedef", self.x_offset, self.y_offset,
                     pack_c8(self.upper_pic), pack_c8(self.middle_pic),
                     pack_c8(self.lower_pic), self.sector - 1)

    def copy(self, sector: Optional[int] = None) -> "Sidedef":
        return replace(self, sector=self.sector if sector is None else sector)

    def get_sector(self, level) -> "Sector":
        return level.sectors[self.sector - 1]


@dataclass
class Vertex:
    x: int = 0
    y: int = 0

    FORMAT: ClassVar[str] = "<hh"
    SIZE: ClassVar[int] = 4

    @classmethod
    def decode(cls, data: bytes) -> "Vertex":
        return cls(*struct.unpack(cls.FORMAT, data))

    def encode(self) -> bytes:
        return _pack(self.FORMAT, "vertex", self.x, self.y)

    def copy(self) -> "Vertex":
        return replace(self)


@dataclass
class Sector:
    """Sector (26 bytes: heights, flats, brightness, special, tag)."""
    floor: int = 0
    ceiling: int = 0
    floor_pic: str = ""
    ceiling_pic: str = ""
    brightness: int = 255
    special: int = 0
    tag: int = 0

    FORMAT: ClassVar[str] = "<hh8s8shHH"
    SIZE: ClassVar[int] = 26

    @classmethod
    def decode(cls, data: bytes) -> "Sector":
        floor, ceiling, floor_pic, ceiling_pic, brightness, special, tag = \
            struct.unpack(cls.FORMAT, data)
        return cls(
            floor=floor,
            ceiling=ceiling,
            floor_pic=trim_c8(floor_pic),
            ceiling_pic=trim_c8(ceiling_pic),
            brightness=brightness,
            special=special,
            tag=tag,
        )

    def encode(self) -> bytes:
        return _pack(self.FORMAT, "sector", self.floor, self.ceiling,
                     pack_c8(self.floor_pic), pack_c8(self.ceiling_pic),
                     self.brightness, self.special, self.tag)

    def copy(self) -> "Sector":
        return replace(self)

    # special holds four independent 4-bit groups, group 1 in the low nibble
    @staticmethod
    def _special_shift(group: int) -> int:
        if not 1 <= group <= 4:
            raise ValueError(f"Sector special group must be 1-4, got {group}")
        return (group - 1) * 4

    def get_special(self, group: int) -> int:
        shift = self._special_shift(group)
        return (self.special >> shift) & 0xF

    def set_special(self, group: int, value: int) -> None:
        shift = self._special_shift(group)
        mask = 0xF << shift
        self.special = (self.special & ~mask & 0xFFFF) | ((value << shift) & mask)
