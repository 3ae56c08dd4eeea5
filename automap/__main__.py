"""Entry point for `python -m automap` and the `automap` command.

Usage:
    automap raw_level.wad level.wad
    automap --nodebuild fast raw_level.wad level.wad
"""
import argparse
import logging
import sys

from rich.logging import RichHandler

from automap.build import NODEBUILD_MODES, build
from automap.config import Config, console, err_console
from automap.errors import BuildError, ScriptError, WadError
from automap.perf import perf

VERSION = "1.0.0"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="automap",
        description="Run the map scripts embedded in a WAD and node-build the result.",
    )
    p.add_argument("input", metavar="INPUT", help="WAD to preprocess")
    p.add_argument("output", metavar="OUTPUT", help="Where to write the result")
    p.add_argument("--nodebuild", choices=NODEBUILD_MODES, default="normal",
                   help="Node builder preset (default: normal)")
    p.add_argument("--perf-log", metavar="DIR", help="Save stage timings as JSONL in DIR")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )

    console.print(f"---> AutoMap {VERSION}\n", markup=False)
    perf.start()
    try:
        build(Config.from_env(), args.input, args.output, args.nodebuild)
    except (WadError, ScriptError, BuildError, OSError) as e:
        err_console.print(f"Error: {e}", markup=False)
        sys.exit(1)
    finally:
        if args.perf_log:
            perf.finish()
            path = perf.save(args.perf_log)
            console.print(f"Perf log saved: {path}", markup=False)

    if args.verbose:
        perf.summary()


if __name__ == "__main__":
    main()
