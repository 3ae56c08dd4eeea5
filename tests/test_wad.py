"""Tests for the WAD container, lump queries and map lump groups."""

import struct

import pytest

from automap.errors import (
    BadTag, IncompleteMapGroup, MalformedRecord, MissingMarker, Truncated,
)
from automap.wad import Lump, Wad


def _wad(*names_and_contents, wad_type="PWAD"):
    return Wad(wad_type, [Lump(name, content) for name, content in names_and_contents])


# =============================================================================
# Lump
# =============================================================================

class TestLump:
    def test_name_limit(self):
        Lump("ABCDEFGH", b"")
        with pytest.raises(MalformedRecord):
            Lump("ABCDEFGHI", b"")

    def test_nul_in_name(self):
        with pytest.raises(MalformedRecord):
            Lump("A\x00B", b"")

    def test_name_outside_latin1(self):
        with pytest.raises(MalformedRecord):
            Lump("MAP\u20ac", b"")

    def test_bytearray_is_frozen(self):
        buf = bytearray(b"abc")
        lump = Lump("DATA", buf)
        buf[0] = ord("z")
        assert lump.content == b"abc"
        assert isinstance(lump.content, bytes)

    def test_marker(self):
        assert Lump("MAP01").is_marker
        assert not Lump("THINGS", b"\x00").is_marker


# =============================================================================
# Decode / encode
# =============================================================================

class TestDecodeEncode:
    def test_decode(self, scenario_bytes):
        wad = Wad.decode(scenario_bytes)
        assert wad.wad_type == "IWAD"
        assert [l.name for l in wad.lumps] == [
            "MAP01", "THINGS", "LINEDEFS", "SIDEDEFS", "VERTEXES", "SECTORS"]
        assert [len(l.content) for l in wad.lumps] == [0, 10, 14, 30, 4, 26]

    def test_encode_is_inverse(self, scenario_bytes):
        assert Wad.decode(scenario_bytes).encode() == scenario_bytes

    def test_round_trip_preserves_everything(self, make_wad, built_map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", built_map_lumps))
        again = Wad.decode(wad.encode())
        assert again.wad_type == wad.wad_type
        assert again.lumps == wad.lumps

    def test_directory_placed_after_lump_data(self):
        data = _wad(("A", b"12345"), ("B", b"678")).encode()
        ident, count, dir_offset = struct.unpack_from("<4sII", data)
        assert (ident, count, dir_offset) == (b"PWAD", 2, 20)
        assert struct.unpack_from("<II8s", data, 20) == (12, 5, b"A" + b"\x00" * 7)
        assert struct.unpack_from("<II8s", data, 36) == (17, 3, b"B" + b"\x00" * 7)

    def test_directory_may_precede_data(self):
        # directory at offset 12, lump data after it
        content = b"hello"
        header = struct.pack("<4sII", b"PWAD", 1, 12)
        entry = struct.pack("<II8s", 28, len(content), b"GREETING")
        wad = Wad.decode(header + entry + content)
        assert wad.lumps == [Lump("GREETING", content)]

    def test_bad_tag(self, make_wad):
        with pytest.raises(BadTag):
            Wad.decode(make_wad(b"ZWAD", []))

    def test_non_ascii_tag(self, make_wad):
        with pytest.raises(BadTag):
            Wad.decode(make_wad(b"\xffWAD", []))

    def test_bad_type_in_constructor(self):
        with pytest.raises(BadTag):
            Wad("JWAD")

    def test_short_header(self):
        with pytest.raises(Truncated):
            Wad.decode(b"PWAD\x00\x00")

    def test_directory_past_end(self):
        header = struct.pack("<4sII", b"PWAD", 3, 12)
        with pytest.raises(Truncated):
            Wad.decode(header + b"\x00" * 16)

    def test_lump_past_end(self):
        header = struct.pack("<4sII", b"PWAD", 1, 12)
        entry = struct.pack("<II8s", 12, 100, b"BIG")
        with pytest.raises(Truncated):
            Wad.decode(header + entry)



# =============================================================================
# Lookup and iteration
# =============================================================================

class TestLookup:
    def test_last_lump_wins(self):
        wad = _wad(("A", b"1"), ("B", b"2"), ("A", b"3"))
        assert wad.get_lump_index("A") == 2
        assert wad.get_lump("A").content == b"3"
        assert wad.get_lump_index("C") is None
        assert wad.get_lump("C") is None

    def test_index_before(self):
        wad = _wad(("A", b"1"), ("B", b"2"), ("A", b"3"), ("A", b"4"))
        assert wad.get_lump_index_before("A", 3) == 2
        assert wad.get_lump_index_before("A", 2) == 0
        assert wad.get_lump_index_before("A", 0) is None
        assert wad.get_lump_index_before("B", 1) is None

    def test_iterate_hides_shadowed(self):
        wad = _wad(("A", b"1"), ("A", b"2"), ("B", b"3"))
        assert [(i, l.content) for i, l in wad.iterate()] == [(1, b"2"), (2, b"3")]

    def test_iterate_keeps_allowed_duplicates(self):
        wad = _wad(("A", b"1"), ("B", b"2"), ("A", b"3"))
        assert [i for i, _ in wad.iterate({"A"})] == [0, 1, 2]

    def test_iterate_order_follows_last_occurrence(self):
        wad = _wad(("A", b"1"), ("B", b"2"), ("A", b"3"))
        assert [l.name for _, l in wad.iterate()] == ["B", "A"]

    def test_prefix(self):
        wad = _wad(("AML_ONE", b"1"), ("THINGS", b""), ("AML_TWO", b"2"),
                   ("AML_ONE", b"3"))
        lumps = wad.lumps_with_prefix("AML_")
        assert [(l.name, l.content) for l in lumps] == [("AML_TWO", b"2"), ("AML_ONE", b"3")]
        assert wad.lump_indices_with_prefix("AML_") == [2, 3]

    def test_markers(self):
        wad = _wad(("F_START", b""), ("FLAT1", b"a"), ("FLAT2", b"b"), ("F_END", b""),
                   ("OTHER", b"c"))
        assert [l.name for l in wad.lumps_in_markers("F")] == ["FLAT1", "FLAT2"]

    def test_markers_with_alt_name(self):
        wad = _wad(("FF_START", b""), ("FLAT1", b"a"), ("F_END", b""), ("OUT", b"x"),
                   ("F_START", b""), ("FLAT2", b"b"), ("FF_END", b""), ("OUT2", b"y"))
        assert [l.name for l in wad.lumps_in_markers("F", "FF")] == ["FLAT1", "FLAT2"]

    def test_only_empty_lumps_are_markers(self):
        wad = _wad(("S_START", b"not empty"), ("SPRITE", b"a"), ("S_START", b""),
                   ("TROOA1", b"b"), ("S_END", b"junk"), ("TROOB1", b"c"), ("S_END", b""))
        assert [l.name for l in wad.lumps_in_markers("S")] == ["TROOA1", "S_END", "TROOB1"]

    def test_shadowed_lumps_not_in_markers(self):
        wad = _wad(("P_START", b""), ("WALL", b"old"), ("P_END", b""),
                   ("P_START", b""), ("WALL", b"new"), ("P_END", b""))
        lumps = wad.lumps_in_markers("P")
        assert [(l.name, l.content) for l in lumps] == [("WALL", b"new")]


# =============================================================================
# Insert / replace
# =============================================================================

class TestMutation:
    def test_insert_lump(self):
        wad = _wad(("A", b""), ("C", b""))
        wad.insert_lump(Lump("B"), 1)
        wad.insert_lump(Lump("D"))
        assert [l.name for l in wad.lumps] == ["A", "B", "C", "D"]

    def test_insert_lumps_keeps_order(self):
        wad = _wad(("A", b""), ("D", b""))
        wad.insert_lumps([Lump("B"), Lump("C")], 1)
        wad.insert_lumps([Lump("E"), Lump("F")])
        assert [l.name for l in wad.lumps] == ["A", "B", "C", "D", "E", "F"]

    def test_replace_lump(self):
        wad = _wad(("A", b"1"), ("A", b"2"))
        assert wad.replace_lump(Lump("A", b"3"))
        assert [l.content for l in wad.lumps] == [b"1", b"3"]
        assert not wad.replace_lump(Lump("Z", b""))
        assert len(wad) == 2

    def test_set_lump(self):
        wad = _wad(("A", b"1"))
        wad.set_lump(Lump("A", b"2"))
        wad.set_lump(Lump("B", b"3"))
        assert [(l.name, l.content) for l in wad.lumps] == [("A", b"2"), ("B", b"3")]


# =============================================================================
# Map lump groups
# =============================================================================

class TestGetMapLumps:
    NAMES = ["MAP01", "THINGS", "LINEDEFS", "SIDEDEFS", "VERTEXES", "SECTORS"]

    def test_plain_group(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        lumps = wad.get_map_lumps(0)
        assert [l.name for l in lumps] == self.NAMES

    def test_built_lumps_are_skipped(self, make_wad, map_lumps, built_map_lumps):
        plain = Wad.decode(make_wad(b"PWAD", map_lumps)).get_map_lumps(0)
        built = Wad.decode(make_wad(b"PWAD", built_map_lumps)).get_map_lumps(0)
        assert built == plain

    def test_reject_and_blockmap_optional(self, make_wad, built_map_lumps):
        without = built_map_lumps[:-2]
        wad = Wad.decode(make_wad(b"PWAD", without))
        assert [l.name for l in wad.get_map_lumps(0)] == self.NAMES

    def test_non_empty_marker(self, make_wad, map_lumps):
        map_lumps[0] = ("MAP01", b"x")
        assert Wad.decode(make_wad(b"PWAD", map_lumps)).get_map_lumps(0) is None

    @pytest.mark.parametrize("missing", ["THINGS", "LINEDEFS", "SIDEDEFS", "VERTEXES", "SECTORS"])
    def test_missing_required_lump(self, make_wad, map_lumps, missing):
        lumps = [l for l in map_lumps if l[0] != missing] + [("EXTRA", b"")]
        assert Wad.decode(make_wad(b"PWAD", lumps)).get_map_lumps(0) is None

    def test_misnamed_lump(self, make_wad, map_lumps):
        map_lumps[3] = ("SIDEDEFZ", map_lumps[3][1])
        assert Wad.decode(make_wad(b"PWAD", map_lumps)).get_map_lumps(0) is None

    def test_out_of_order(self, make_wad, map_lumps):
        map_lumps[2], map_lumps[3] = map_lumps[3], map_lumps[2]
        assert Wad.decode(make_wad(b"PWAD", map_lumps)).get_map_lumps(0) is None

    def test_ends_early(self, make_wad, map_lumps):
        assert Wad.decode(make_wad(b"PWAD", map_lumps[:-1])).get_map_lumps(0) is None

    def test_group_after_other_lumps(self, make_wad, map_lumps):
        lumps = [("PLAYPAL", b"\x00" * 3)] + map_lumps + [("ENDOOM", b"")]
        wad = Wad.decode(make_wad(b"PWAD", lumps))
        assert [l.name for l in wad.get_map_lumps(1)] == self.NAMES

    def test_find_map_lumps_raises(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps[:-1]))
        with pytest.raises(MissingMarker):
            wad.find_map_lumps("MAP02")
        with pytest.raises(IncompleteMapGroup):
            wad.find_map_lumps("MAP01")


class TestReplaceMapLumps:
    def _new_group(self, name="MAP01"):
        return [Lump(name, b""), Lump("THINGS", b"T" * 10), Lump("LINEDEFS", b"L" * 14),
                Lump("SIDEDEFS", b"S" * 30), Lump("VERTEXES", b"V" * 4),
                Lump("SECTORS", b"E" * 26)]

    def test_replace_removes_built_lumps(self, make_wad, built_map_lumps):
        lumps = [("PLAYPAL", b"p")] + built_map_lumps + [("MAP02", b"")]
        wad = Wad.decode(make_wad(b"PWAD", lumps))
        group = self._new_group()
        assert wad.replace_map_lumps(group)
        assert wad.lumps == [Lump("PLAYPAL", b"p")] + group + [Lump("MAP02", b"")]

    def test_replace_plain_group(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        group = self._new_group()
        assert wad.replace_map_lumps(group)
        assert wad.lumps == group

    def test_malformed_group_untouched(self, make_wad, built_map_lumps):
        lumps = [l for l in built_map_lumps if l[0] != "SECTORS"]
        data = make_wad(b"PWAD", lumps)
        wad = Wad.decode(data)
        assert not wad.replace_map_lumps(self._new_group())
        assert wad.encode() == data

    def test_non_empty_marker_untouched(self, make_wad, map_lumps):
        map_lumps[0] = ("MAP01", b"x")
        data = make_wad(b"PWAD", map_lumps)
        wad = Wad.decode(data)
        assert not wad.replace_map_lumps(self._new_group())
        assert wad.encode() == data

    def test_absent_map(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        assert not wad.replace_map_lumps(self._new_group("MAP07"))
        assert len(wad) == 6

    def test_bad_replacement_lumps(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        group = self._new_group()
        with pytest.raises(IncompleteMapGroup):
            wad.replace_map_lumps(group[:-1])
        with pytest.raises(MissingMarker):
            wad.replace_map_lumps([Lump("MAP01", b"x")] + group[1:])

    def test_set_map_lumps_appends_new_map(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        group = self._new_group("MAP02")
        wad.set_map_lumps(group)
        assert len(wad) == 12
        assert wad.lumps[6:] == group
        assert wad.get_map_lumps(6) == group

    def test_set_map_lumps_replaces_existing(self, make_wad, map_lumps):
        wad = Wad.decode(make_wad(b"PWAD", map_lumps))
        group = self._new_group()
        wad.set_map_lumps(group)
        assert wad.lumps == group
