"""
WAD container model: lumps, the lump directory and map lump groups.

WAD header layout (12 bytes):
    4s  identification  "IWAD" or "PWAD"
    I   numlumps
    I   infotableofs

Lump directory entry (16 bytes each):
    I   filepos
    I   size
    8s  name  (NUL-padded, not terminated when 8 characters long)

Lookups by name return the *last* lump of that name, since a later lump
overrides earlier ones the same way the engine resolves them.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Iterable, Optional

from automap.defs import (
    DIR_ENTRY_FMT, DIR_ENTRY_SIZE, HEADER_FMT, HEADER_SIZE,
    MAP_LUMP_ACTIONS, MAP_LUMP_NAMES, NAME_ENCODING, NAME_SIZE, WAD_TYPES,
    trim_c8,
)
from automap.errors import (
    BadTag, IncompleteMapGroup, MalformedRecord, MissingMarker, Truncated,
)

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lump:
    """A named blob of bytes. Frozen, so holding one never aliases state."""
    name: str
    content: bytes = b""

    def __post_init__(self) -> None:
        if "\x00" in self.name:
            raise MalformedRecord(f"Lump name {self.name!r} contains NUL")
        try:
            raw = self.name.encode(NAME_ENCODING)
        except UnicodeEncodeError as e:
            raise MalformedRecord(f"Lump name {self.name!r} is not {NAME_ENCODING}") from e
        if len(raw) > NAME_SIZE:
            raise MalformedRecord(f"Lump name {self.name!r} is longer than {NAME_SIZE} bytes")
        if not isinstance(self.content, bytes):
            object.__setattr__(self, "content", bytes(self.content))

    @property
    def is_marker(self) -> bool:
        return len(self.content) == 0

    def copy(self) -> "Lump":
        return Lump(self.name, self.content)


class Wad:
    """An ordered list of lumps plus the IWAD/PWAD type tag."""

    def __init__(self, wad_type: str = "PWAD", lumps: Iterable[Lump] = ()) -> None:
        if wad_type not in WAD_TYPES:
            raise BadTag(f"WAD is not an IWAD or PWAD: {wad_type!r}")
        self.wad_type = wad_type
        self.lumps: list[Lump] = list(lumps)

    def __len__(self) -> int:
        return len(self.lumps)

    def __repr__(self) -> str:
        return f"Wad({self.wad_type!r}, {len(self.lumps)} lumps)"

    # ------------------------------------------------------------------
    # Binary encode / decode
    # ------------------------------------------------------------------

    @classmethod
    def decode(cls, data: bytes) -> "Wad":
        """Parse a complete WAD image."""
        if len(data) < HEADER_SIZE:
            raise Truncated(f"WAD header needs {HEADER_SIZE} bytes, got {len(data)}")

        ident, numlumps, infotableofs = struct.unpack_from(HEADER_FMT, data, 0)
        if ident.decode(NAME_ENCODING) not in WAD_TYPES:
            raise BadTag(f"WAD is not an IWAD or PWAD: identification is {ident!r}")

        dir_end = infotableofs + numlumps * DIR_ENTRY_SIZE
        if dir_end > len(data):
            raise Truncated(
                f"Directory of {numlumps} lumps at offset {infotableofs} "
                f"runs past end of data ({len(data)} bytes)"
            )

        lumps = []
        offset = infotableofs
        for i in range(numlumps):
            filepos, size, raw_name = struct.unpack_from(DIR_ENTRY_FMT, data, offset)
            offset += DIR_ENTRY_SIZE
            name = trim_c8(raw_name)
            if filepos + size > len(data):
                raise Truncated(
                    f"Lump {i} ({name!r}) spans {filepos}..{filepos + size}, "
                    f"past end of data ({len(data)} bytes)"
                )
            lumps.append(Lump(name, data[filepos: filepos + size]))

        _log.debug("decoded %s with %d lumps", ident.decode("ascii"), numlumps)
        return cls(ident.decode("ascii"), lumps)

    def encode(self) -> bytes:
        """Serialize as header, lump contents in order, then the directory."""
        lump_data = b"".join(lump.content for lump in self.lumps)
        header = struct.pack(HEADER_FMT, self.wad_type.encode("ascii"),
                             len(self.lumps), HEADER_SIZE + len(lump_data))

        directory = []
        filepos = HEADER_SIZE
        for lump in self.lumps:
            size = len(lump.content)
            directory.append(struct.pack(DIR_ENTRY_FMT, filepos, size,
                                         lump.name.encode(NAME_ENCODING)))
            filepos += size

        return header + lump_data + b"".join(directory)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_lump_index(self, name: str) -> Optional[int]:
        """Return the index of the last lump named *name*, or None."""
        for i in range(len(self.lumps) - 1, -1, -1):
            if self.lumps[i].name == name:
                return i
        return None

    def get_lump(self, name: str) -> Optional[Lump]:
        """Return the last lump named *name*, or None."""
        index = self.get_lump_index(name)
        if index is None:
            return None
        return self.lumps[index]

    def get_lump_index_before(self, name: str, index: int) -> Optional[int]:
        """Return the index of the last lump named *name* before *index*."""
        for i in range(min(index, len(self.lumps)) - 1, -1, -1):
            if self.lumps[i].name == name:
                return i
        return None

    def iterate(self, allow_duplicates: Iterable[str] = ()) -> list[tuple[int, Lump]]:
        """
        Return (index, lump) pairs from first to last, hiding every lump that
        a later lump of the same name shadows. Names in *allow_duplicates*
        are never hidden.
        """
        allowed = set(allow_duplicates)
        seen: set[str] = set()
        indices = []
        for i in range(len(self.lumps) - 1, -1, -1):
            name = self.lumps[i].name
            if name in allowed or name not in seen:
                seen.add(name)
                indices.append(i)
        return [(i, self.lumps[i]) for i in reversed(indices)]

    def lump_indices_with_prefix(self, prefix: str) -> list[int]:
        return [i for i, lump in self.iterate() if lump.name.startswith(prefix)]

    def lumps_with_prefix(self, prefix: str) -> list[Lump]:
        """Return every non-shadowed lump whose name starts with *prefix*."""
        return [self.lumps[i].copy() for i in self.lump_indices_with_prefix(prefix)]

    def lump_indices_in_markers(self, name: str, alt_name: Optional[str] = None) -> list[int]:
        """
        Return indices of lumps between ``<name>_START`` (or
        ``<alt_name>_START``) and the next ``<name>_END``/``<alt_name>_END``.
        Only zero-length lumps count as markers.
        """
        alt_name = alt_name or name
        starts = {f"{name}_START", f"{alt_name}_START"}
        ends = {f"{name}_END", f"{alt_name}_END"}

        ret = []
        inside = False
        for i, lump in self.iterate(starts | ends):
            if lump.is_marker:
                if lump.name in starts:
                    inside = True
                    continue
                if lump.name in ends:
                    inside = False
                    continue
            if inside:
                ret.append(i)
        return ret

    def lumps_in_markers(self, name: str, alt_name: Optional[str] = None) -> list[Lump]:
        return [self.lumps[i].copy() for i in self.lump_indices_in_markers(name, alt_name)]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert_lump(self, lump: Lump, index: Optional[int] = None) -> None:
        """Insert *lump* before *index*, or append it if no index is given."""
        if index is None:
            self.lumps.append(lump.copy())
        else:
            self.lumps.insert(index, lump.copy())

    def insert_lumps(self, lumps: Iterable[Lump], index: Optional[int] = None) -> None:
        """Insert *lumps* before *index* (or append), keeping their order."""
        for lump in lumps:
            self.insert_lump(lump, index)
            if index is not None:
                index += 1

    def replace_lump(self, lump: Lump) -> bool:
        """Overwrite the last lump named like *lump*. False if there is none."""
        index = self.get_lump_index(lump.name)
        if index is None:
            return False
        self.lumps[index] = lump.copy()
        return True

    def set_lump(self, lump: Lump) -> None:
        if not self.replace_lump(lump):
            self.insert_lump(lump)

    # ------------------------------------------------------------------
    # Map lump groups
    # ------------------------------------------------------------------

    def _walk_map_lumps(self, index: int) -> tuple[list[int], list[int]]:
        """
        Walk the map lump group whose marker sits at *index*.

        Returns (required, built): the indices of the marker plus the five
        required lumps in canonical order, and the indices of any node
        builder lumps present in the group.
        """
        if not 0 <= index < len(self.lumps):
            raise MissingMarker(f"No lump at index {index}")
        marker = self.lumps[index]
        if not marker.is_marker:
            raise MissingMarker(f"Lump {marker.name!r} at index {index} is not a map marker")

        required = [index]
        built = []
        pos = index + 1
        for name, keep in MAP_LUMP_ACTIONS:
            present = pos < len(self.lumps) and self.lumps[pos].name == name
            if present:
                (required if keep else built).append(pos)
                pos += 1
            elif keep:
                found = self.lumps[pos].name if pos < len(self.lumps) else "end of WAD"
                raise IncompleteMapGroup(
                    f"Map {marker.name!r}: expected {name} at index {pos}, found {found}"
                )
        return required, built

    def get_map_lumps(self, index: int) -> Optional[list[Lump]]:
        """
        Return the marker at *index* and its THINGS, LINEDEFS, SIDEDEFS,
        VERTEXES and SECTORS lumps, or None if this is not a complete map.
        Node builder lumps are skipped.
        """
        try:
            required, _ = self._walk_map_lumps(index)
        except (MissingMarker, IncompleteMapGroup) as e:
            _log.debug("no map lumps at %d: %s", index, e)
            return None
        return [self.lumps[i].copy() for i in required]

    def find_map_lumps(self, name: str) -> list[Lump]:
        """Like get_map_lumps() for the last marker named *name*, but raising."""
        index = self.get_lump_index(name)
        if index is None:
            raise MissingMarker(f"No map {name!r} found")
        required, _ = self._walk_map_lumps(index)
        return [self.lumps[i].copy() for i in required]

    def replace_map_lumps(self, lumps: list[Lump]) -> bool:
        """
        Replace the map lump group named by ``lumps[0]`` in place.

        *lumps* must be a marker followed by THINGS, LINEDEFS, SIDEDEFS,
        VERTEXES and SECTORS. Node builder lumps in the old group are
        deleted since they no longer match the geometry. Returns False,
        leaving the WAD untouched, if no complete group is found.
        """
        _check_map_group(lumps)

        index = self.get_lump_index(lumps[0].name)
        if index is None:
            return False
        try:
            required, built = self._walk_map_lumps(index)
        except (MissingMarker, IncompleteMapGroup) as e:
            _log.debug("not replacing map %s: %s", lumps[0].name, e)
            return False

        for pos, lump in zip(required, lumps):
            self.lumps[pos] = lump.copy()
        for pos in reversed(built):
            del self.lumps[pos]

        _log.debug("replaced map %s at %d, removed %d built lumps",
                   lumps[0].name, index, len(built))
        return True

    def set_map_lumps(self, lumps: list[Lump]) -> None:
        """Replace the map group like replace_map_lumps(), else append it."""
        if not self.replace_map_lumps(lumps):
            _log.debug("appending map %s", lumps[0].name)
            self.insert_lumps(lumps)


def _check_map_group(lumps: list[Lump]) -> None:
    """Raise unless *lumps* is a marker plus the five map lumps in order."""
    if not lumps or not lumps[0].is_marker:
        raise MissingMarker("Map lumps must start with an empty map marker")
    names = tuple(lump.name for lump in lumps[1:])
    if names != MAP_LUMP_NAMES:
        raise IncompleteMapGroup(
            f"Map {lumps[0].name!r} lumps are {names}, expected {MAP_LUMP_NAMES}"
        )
