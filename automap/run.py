"""Entry point for the isolated script runner.

Usage:
    python -m automap.run INPUT.wad OUTPUT.wad

Loads INPUT, runs its AML_ script lumps, writes the touched maps back and
saves the result to OUTPUT. Nothing is written if a script fails.
"""
import sys

from automap.config import console, err_console
from automap.errors import ScriptError, WadError
from automap.host import Container, run_scripts
from automap.wad import Wad


def load_wad(path: str) -> Wad:
    with open(path, "rb") as f:
        return Wad.decode(f.read())


def save_wad(data: bytes, path: str) -> None:
    with open(path, "wb") as f:
        f.write(data)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 2:
        err_console.print("Usage: python -m automap.run INPUT OUTPUT", markup=False)
        return 2
    input_path, output_path = argv

    try:
        container = Container(load_wad(input_path))
        names = run_scripts(container)
        data = container.serialize()
        save_wad(data, output_path)
    except (WadError, ScriptError, OSError) as e:
        err_console.print(f"Error: {e}", markup=False)
        return 1

    for name in names:
        console.print(f"  ran {name}", markup=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
