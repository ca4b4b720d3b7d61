"""Build and runtime version information."""

from __future__ import annotations

import argparse
import json
import platform
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

__all__ = ["GIT_VERSION", "VersionInfo", "get_version_info", "main"]

# Fallbacks used when the build does not provide version details.
GIT_VERSION = "devel"
GIT_COMMIT = "unknown"
GIT_TREE_STATE = "unknown"
BUILD_DATE = "unknown"

_PADDING = 2


@dataclass(frozen=True)
class VersionInfo:
    """Where and how this build came to be."""

    git_version: str
    git_commit: str
    git_tree_state: str
    build_date: str
    python_version: str
    compiler: str
    platform: str

    def _items(self) -> list[tuple[str, str]]:
        return [
            ("GitVersion", self.git_version),
            ("GitCommit", self.git_commit),
            ("GitTreeState", self.git_tree_state),
            ("BuildDate", self.build_date),
            ("PythonVersion", self.python_version),
            ("Compiler", self.compiler),
            ("Platform", self.platform),
        ]

    def __str__(self) -> str:
        items = [(name + ":", value) for name, value in self._items()]
        width = max(len(label) for label, _ in items) + _PADDING
        return "".join(f"{label.ljust(width)}{value}\n" for label, value in items)

    def to_json(self) -> str:
        """The information as indented JSON."""
        return json.dumps(dict(self._items()), indent=2)


def get_version_info() -> VersionInfo:
    """The version information of the running program."""
    return VersionInfo(
        git_version=GIT_VERSION,
        git_commit=GIT_COMMIT,
        git_tree_state=GIT_TREE_STATE,
        build_date=BUILD_DATE,
        python_version=platform.python_version(),
        compiler=platform.python_implementation(),
        platform=f"{sys.platform}/{platform.machine()}",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the version information, as a table or as JSON."""
    parser = argparse.ArgumentParser(prog="sidekick-version", description="Show version information.")
    parser.add_argument("--json", action="store_true", help="print as JSON")
    args = parser.parse_args(argv)
    info = get_version_info()
    if args.json:
        print(info.to_json())
    else:
        print(info, end="")
    return 0