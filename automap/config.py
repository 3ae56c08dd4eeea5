"""Build configuration and the shared console."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from rich.console import Console

console = Console()
err_console = Console(stderr=True)

DEFAULT_NODEBUILDER = "zennode"
DEFAULT_PARAMS_NORMAL = "{input} -o {output}"
DEFAULT_PARAMS_FAST = "-n3 -nq -rz {input} -o {output}"


@dataclass
class Config:
    """Where the node builder lives and how to call it.

    The parameter templates are split like a shell command line; ``{input}``
    and ``{output}`` are replaced with the WAD path after splitting.
    """
    nodebuilder_path: str = DEFAULT_NODEBUILDER
    nodebuilder_params_normal: str = DEFAULT_PARAMS_NORMAL
    nodebuilder_params_fast: str = DEFAULT_PARAMS_FAST

    @classmethod
    def from_env(cls) -> "Config":
        """Read AUTOMAP_* variables from the environment or a .env file."""
        load_dotenv()
        return cls(
            nodebuilder_path=os.environ.get("AUTOMAP_NODEBUILDER", DEFAULT_NODEBUILDER),
            nodebuilder_params_normal=os.environ.get(
                "AUTOMAP_NODEBUILDER_PARAMS_NORMAL", DEFAULT_PARAMS_NORMAL),
            nodebuilder_params_fast=os.environ.get(
                "AUTOMAP_NODEBUILDER_PARAMS_FAST", DEFAULT_PARAMS_FAST),
        )
