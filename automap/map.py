"""
Decoded map geometry.

A Map holds the five record lists of one map lump group. It is also used as
scratch space for copying and pasting geometry between maps with
``Map.copy`` and ``Map.merge``.
"""

import logging
from dataclasses import dataclass, field

from automap.defs import (
    MAP_LUMP_NAMES, Linedef, Sector, Sidedef, Thing, Vertex,
)
from automap.errors import (
    DanglingReference, IncompleteMapGroup, MalformedRecord, MissingMarker,
)
from automap.wad import Lump

_log = logging.getLogger(__name__)

# lump name -> (Map attribute, record type)
_RECORD_LUMPS = {
    "THINGS":   ("things",   Thing),
    "LINEDEFS": ("linedefs", Linedef),
    "SIDEDEFS": ("sidedefs", Sidedef),
    "VERTEXES": ("vertices", Vertex),
    "SECTORS":  ("sectors",  Sector),
}

# Sectors and vertices go before the records that point at them
_DECODE_ORDER = ("THINGS", "SECTORS", "SIDEDEFS", "VERTEXES", "LINEDEFS")


def _decode_records(lump: Lump, record_type) -> list:
    data = lump.content
    size = record_type.SIZE
    if len(data) % size:
        raise MalformedRecord(
            f"{lump.name} is {len(data)} bytes, not a multiple of {size}"
        )
    return [record_type.decode(data[off: off + size])
            for off in range(0, len(data), size)]


@dataclass
class Map:
    """All editable geometry of one map."""
    name: str = ""
    things: list = field(default_factory=list)
    linedefs: list = field(default_factory=list)
    sidedefs: list = field(default_factory=list)
    vertices: list = field(default_factory=list)
    sectors: list = field(default_factory=list)

    @classmethod
    def new(cls, name: str) -> "Map":
        return cls(name=name)

    def copy(self) -> "Map":
        """Return an independent copy of this map, name included."""
        other = Map(name=self.name)
        other.merge(self)
        return other

    # ------------------------------------------------------------------
    # Lump conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_lumps(cls, lumps: list[Lump]) -> "Map":
        """
        Decode a map from its marker plus THINGS, LINEDEFS, SIDEDEFS,
        VERTEXES and SECTORS, as returned by ``Wad.get_map_lumps``.
        """
        if not lumps or not lumps[0].is_marker:
            raise MissingMarker("Invalid map lumps: no map marker")
        level = cls(name=lumps[0].name)

        by_name = {}
        for expected, lump in zip(MAP_LUMP_NAMES, lumps[1:]):
            if lump.name != expected:
                raise IncompleteMapGroup(f"Invalid map lumps: no {expected}")
            by_name[expected] = lump
        if len(lumps) != len(MAP_LUMP_NAMES) + 1:
            raise IncompleteMapGroup(
                f"Invalid map lumps: expected {len(MAP_LUMP_NAMES) + 1}, got {len(lumps)}"
            )

        for name in _DECODE_ORDER:
            attr, record_type = _RECORD_LUMPS[name]
            setattr(level, attr, _decode_records(by_name[name], record_type))

        _log.debug("decoded map %s: %d things, %d linedefs, %d sidedefs, "
                   "%d vertices, %d sectors", level.name, len(level.things),
                   len(level.linedefs), len(level.sidedefs),
                   len(level.vertices), len(level.sectors))
        return level

    def to_lumps(self) -> list[Lump]:
        """Encode as the canonical marker + five lump group."""
        lumps = [Lump(self.name, b"")]
        for name in MAP_LUMP_NAMES:
            attr, _ = _RECORD_LUMPS[name]
            records = getattr(self, attr)
            lumps.append(Lump(name, b"".join(r.encode() for r in records)))
        return lumps

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def merge(self, other: "Map") -> None:
        """
        Append all of *other*'s geometry to this map, renumbering its
        references. Overlapping geometry is not corrected.
        """
        vertex_base = len(self.vertices)
        sidedef_base = len(self.sidedefs)
        sector_base = len(self.sectors)

        # snapshot first so merging a map into itself terminates
        things = list(other.things)
        linedefs = list(other.linedefs)
        sidedefs = list(other.sidedefs)
        vertices = list(other.vertices)
        sectors = list(other.sectors)

        self.things.extend(t.copy() for t in things)
        self.linedefs.extend(
            line.copy(
                vertices=[_offset(v, vertex_base) for v in line.vertices],
                sidedefs=[_offset(s, sidedef_base) for s in line.sidedefs],
            )
            for line in linedefs
        )
        self.sidedefs.extend(s.copy(sector=_offset(s.sector, sector_base))
                             for s in sidedefs)
        self.vertices.extend(v.copy() for v in vertices)
        self.sectors.extend(s.copy() for s in sectors)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise DanglingReference if any record points outside its target list."""
        n_vertices = len(self.vertices)
        n_sidedefs = len(self.sidedefs)
        n_sectors = len(self.sectors)

        for i, line in enumerate(self.linedefs, 1):
            for v in line.vertices:
                if not 1 <= v <= n_vertices:
                    raise DanglingReference(
                        f"{self.name}: linedef {i} uses vertex {v} of {n_vertices}"
                    )
            front, back = line.sidedefs
            if not 1 <= front <= n_sidedefs:
                raise DanglingReference(
                    f"{self.name}: linedef {i} uses front sidedef {front} of {n_sidedefs}"
                )
            if back != 0 and not 1 <= back <= n_sidedefs:
                raise DanglingReference(
                    f"{self.name}: linedef {i} uses back sidedef {back} of {n_sidedefs}"
                )

        for i, side in enumerate(self.sidedefs, 1):
            if not 1 <= side.sector <= n_sectors:
                raise DanglingReference(
                    f"{self.name}: sidedef {i} uses sector {side.sector} of {n_sectors}"
                )


def _offset(ref: int, base: int) -> int:
    # 0 means "no reference" and stays that way
    return ref + base if ref else 0
