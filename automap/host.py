"""
Script host: the API map scripts see, and the code that runs them.

Scripts are stored in the WAD as lumps named ``AML_*`` and run in container
order. Each one executes with a cut-down builtins table and a namespace
holding ``auto`` (a ``ScriptApi`` over the Container), ``Map``, ``Lump`` and
the record types. Source is parsed first and rejected if it names private
attributes or frame internals, so functions cannot be walked back to their
module globals. The runner process (``automap.run``) adds the process
boundary and owns all file I/O.
"""

import ast
import builtins
import logging
from typing import Optional

from automap.defs import (
    SCRIPT_PREFIX, Linedef, LinedefFlag, Sector, Sidedef, Thing, ThingFlag,
    Vertex,
)
from automap.errors import ScriptError
from automap.map import Map
from automap.wad import Lump, Wad

_log = logging.getLogger(__name__)

# Builtins scripts may use: no import, file, eval or getattr-style reflection
_SAFE_BUILTINS = (
    "abs", "all", "any", "bool", "bytes", "dict", "divmod", "enumerate",
    "filter", "float", "frozenset", "int", "isinstance", "len", "list", "map",
    "max", "min", "print", "range", "repr", "reversed", "round", "set",
    "sorted", "str", "sum", "tuple", "zip",
    "ArithmeticError", "AssertionError", "Exception", "IndexError",
    "KeyError", "LookupError", "RuntimeError", "TypeError", "ValueError",
    "ZeroDivisionError",
)

# Reach frames, code objects or globals without a leading underscore
_BLOCKED_ATTRS = frozenset({
    "ag_code", "ag_frame", "cr_code", "cr_frame", "gi_code", "gi_frame",
    "gi_yieldfrom", "cr_await", "f_back", "f_builtins", "f_code", "f_globals",
    "f_locals", "tb_frame", "tb_next", "mro",
})


class Container:
    """
    A WAD plus a memo of the maps scripts have touched.

    Maps are decoded on first access and the same object is returned after
    that. Nothing is written back until ``put_map`` or ``flush`` is called.
    """

    def __init__(self, wad: Wad) -> None:
        self.wad = wad
        self._maps: dict[str, Map] = {}  # insertion order = first touched

    def get_map(self, name: str) -> Map:
        level = self._maps.get(name)
        if level is None:
            level = Map.from_lumps(self.wad.find_map_lumps(name))
            self._maps[name] = level
            _log.debug("loaded map %s", name)
        return level

    def new_map(self, name: str) -> Map:
        """Start a blank map; it is written out with the other touched maps."""
        level = Map.new(name)
        self._maps[name] = level
        return level

    @property
    def touched(self) -> list[str]:
        return list(self._maps)

    def put_map(self, level: Map) -> None:
        self.wad.set_map_lumps(level.to_lumps())

    def flush(self) -> None:
        """Write every touched map back, in the order they were first touched."""
        for level in self._maps.values():
            self.put_map(level)

    def serialize(self) -> bytes:
        self.flush()
        return self.wad.encode()


def load_container(data: bytes) -> Container:
    return Container(Wad.decode(data))


class ScriptApi:
    """
    The ``auto`` object scripts see.

    Map access goes through the container; lump access is read-only. The
    container itself is held privately, and scripts cannot name private
    attributes (see ``_check_script``).
    """
    __slots__ = ("_container",)

    def __init__(self, container: Container) -> None:
        self._container = container

    def get_map(self, name: str) -> Map:
        return self._container.get_map(name)

    def new_map(self, name: str) -> Map:
        return self._container.new_map(name)

    def put_map(self, level: Map) -> None:
        self._container.put_map(level)

    def get_lump(self, name: str) -> Optional[Lump]:
        return self._container.wad.get_lump(name)

    def lumps_with_prefix(self, prefix: str) -> list[Lump]:
        return self._container.wad.lumps_with_prefix(prefix)

    def lumps_in_markers(self, name: str, alt_name: Optional[str] = None) -> list[Lump]:
        return self._container.wad.lumps_in_markers(name, alt_name)


def _check_script(tree: ast.AST) -> None:
    """Reject private/dunder attribute access and frame or code introspection."""
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute):
            if node.attr.startswith("_") or node.attr in _BLOCKED_ATTRS:
                raise ValueError(f"line {node.lineno}: attribute {node.attr!r} is not allowed")
        elif isinstance(node, ast.Name) and node.id.startswith("__"):
            raise ValueError(f"line {node.lineno}: name {node.id!r} is not allowed")


def _script_globals(container: Container) -> dict:
    safe = {name: getattr(builtins, name) for name in _SAFE_BUILTINS}
    return {
        "__builtins__": safe,
        "__name__": "__automap_script__",
        "auto": ScriptApi(container),
        "Map": Map,
        "Lump": Lump,
        "Thing": Thing,
        "Linedef": Linedef,
        "Sidedef": Sidedef,
        "Vertex": Vertex,
        "Sector": Sector,
        "ThingFlag": ThingFlag,
        "LinedefFlag": LinedefFlag,
    }


def run_script(container: Container, name: str, source) -> None:
    """Check, compile and run one script against *container*."""
    _log.debug("running script %s", name)
    try:
        if isinstance(source, bytes):
            source = source.decode("utf-8")
        tree = ast.parse(source, f"<{name}>")
        _check_script(tree)
        exec(compile(tree, f"<{name}>", "exec"), _script_globals(container))
    except Exception as e:
        raise ScriptError(f"Error in lump {name}: {type(e).__name__}: {e}") from e


def run_scripts(container: Container) -> list[str]:
    """Run every AML_ lump in container order. Returns the lump names run."""
    names = []
    for lump in container.wad.lumps_with_prefix(SCRIPT_PREFIX):
        run_script(container, lump.name, lump.content)
        names.append(lump.name)
    return names
