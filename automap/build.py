"""Build driver: run the map scripts in a child process, then the node builder."""

import logging
import shlex
import subprocess
import sys

from automap.config import Config, console
from automap.errors import BuildError
from automap.perf import perf

_log = logging.getLogger(__name__)

NODEBUILD_MODES = ("normal", "fast", "none")


def script_command(input_path: str, output_path: str) -> list[str]:
    return [sys.executable, "-m", "automap.run", input_path, output_path]


def nodebuilder_command(config: Config, mode: str, wad_path: str) -> list[str] | None:
    """Return the node builder argv for *mode*, or None for mode "none".

    The node builder rewrites the WAD in place, so input and output are the
    same file.
    """
    if mode == "none":
        return None
    if mode == "normal":
        template = config.nodebuilder_params_normal
    elif mode == "fast":
        template = config.nodebuilder_params_fast
    else:
        raise ValueError(f"Unknown node build mode {mode!r}, expected one of {NODEBUILD_MODES}")

    args = [arg.replace("{input}", wad_path).replace("{output}", wad_path)
            for arg in shlex.split(template)]
    return [config.nodebuilder_path] + args


def _run(what: str, cmd: list[str]) -> None:
    _log.debug("running %s: %s", what, shlex.join(cmd))
    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        raise BuildError(f"{what} failed with exit status {e.returncode}") from e
    except FileNotFoundError as e:
        raise BuildError(f"{what} not found: {cmd[0]}") from e


def run_scripts(input_path: str, output_path: str) -> None:
    """Run the WAD's scripts in a separate interpreter, writing *output_path*."""
    _run("Map scripts", script_command(input_path, output_path))


def run_nodebuilder(config: Config, mode: str, wad_path: str) -> None:
    cmd = nodebuilder_command(config, mode, wad_path)
    if cmd is None:
        return
    _run("Node builder", cmd)


def build(config: Config, input_path: str, output_path: str, mode: str = "normal") -> None:
    """Preprocess *input_path* into *output_path*."""
    console.print(f"Preprocessing: {input_path}\n", markup=False)

    perf.stage("scripts")
    with perf.timer("run_scripts", wad=input_path):
        run_scripts(input_path, output_path)
    console.print(f"\nPreprocessing saved to {output_path}", markup=False)

    perf.stage("nodebuild")
    with perf.timer("run_nodebuilder", mode=mode):
        run_nodebuilder(config, mode, output_path)
    perf.finish()
