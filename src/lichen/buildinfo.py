"""Parse the build metadata printed by ``go version -m``.

The dump is a sequence of per-binary blocks. Each block opens with a header
line ``<path>: <version-info>`` followed, for toolchain-versioned builds, by
tab-prefixed record lines::

    /tmp/lichen: go1.14.4
    	path	github.com/vearutop/lichen
    	mod	github.com/vearutop/lichen	(devel)
    	dep	github.com/cpuguy83/go-md2man/v2	v2.0.0-...	h1:...
    	=>	github.com/uw-labs/go-md2man/v2	v0.4.16-...	h1:...

Parsing is a single forward pass over an explicit state machine and fails on
the first malformed line; error messages echo that line verbatim.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional

from .types import BuildInfo, ModuleReference

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = ": "
DEVEL_TOKEN = "devel"
GO_VERSION_RE = re.compile(r"^go\d+(?:\.\d+)*(?:(?:rc|beta)\d+)?(?:\s|$)")

# record kind -> accepted number of tab-delimited fields
RECORD_ARITY = {
    "path": {2},
    "mod": {4},
    "dep": {3, 4},
    "=>": {3, 4},
}


class BuildInfoParseError(ValueError):
    """Raised when the build metadata dump contains a malformed line."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line


class BuildInfoExtractionError(RuntimeError):
    """Raised when ``go version -m`` could not be run successfully."""


class ParserState(enum.Enum):
    AWAITING_HEADER = "awaiting_header"
    IN_DEVEL_BLOCK = "in_devel_block"
    IN_VERSIONED_BLOCK = "in_versioned_block"


@dataclass
class _BlockBuilder:
    path: str
    package_path: str = ""
    module_path: str = ""
    refs: List[ModuleReference] = field(default_factory=list)
    last_kind: Optional[str] = None

    def build(self) -> BuildInfo:
        return BuildInfo(
            path=self.path,
            package_path=self.package_path,
            module_path=self.module_path,
            module_refs=tuple(self.refs),
        )


class BuildInfoParser:
    """State machine over the lines of a ``go version -m`` dump."""

    def __init__(self) -> None:
        self.state = ParserState.AWAITING_HEADER
        self.results: List[BuildInfo] = []
        self._current: Optional[_BlockBuilder] = None

    def feed(self, line: str) -> None:
        if not line:
            return
        if line.startswith("\t"):
            self._record(line)
        else:
            self._header(line)

    def finish(self) -> List[BuildInfo]:
        self._flush()
        self.state = ParserState.AWAITING_HEADER
        return self.results

    def _flush(self) -> None:
        if self._current is not None:
            self.results.append(self._current.build())
            self._current = None

    def _header(self, line: str) -> None:
        path, sep, version_info = line.partition(HEADER_SEPARATOR)
        if not sep:
            raise BuildInfoParseError(f"unrecognised version line: {line}", line)

        tokens = version_info.split(" ", 1)
        if tokens[0] == DEVEL_TOKEN:
            next_state = ParserState.IN_DEVEL_BLOCK
        elif GO_VERSION_RE.match(version_info):
            next_state = ParserState.IN_VERSIONED_BLOCK
        else:
            raise BuildInfoParseError(f"unrecognised version line: {line}", line)

        self._flush()
        self._current = _BlockBuilder(path=path)
        self.state = next_state

    def _record(self, line: str) -> None:
        if self.state is ParserState.AWAITING_HEADER:
            raise BuildInfoParseError(f"unrecognised version line: {line}", line)
        if self.state is ParserState.IN_DEVEL_BLOCK:
            logger.debug("Skipping record line in devel build block: %r", line)
            return

        fields = line[1:].split("\t")
        kind = fields[0]
        arity = RECORD_ARITY.get(kind)
        if arity is None:
            logger.debug("Ignoring unknown record line: %r", line)
            return
        if len(fields) not in arity:
            raise BuildInfoParseError(f"invalid {kind} line: {line}", line)

        block = self._current
        assert block is not None
        if kind == "path":
            block.package_path = fields[1]
        elif kind == "mod":
            block.module_path = fields[1]
        elif kind == "dep":
            block.refs.append(ModuleReference(path=fields[1], version=fields[2]))
        else:
            if block.last_kind not in {"dep", "=>"} or not block.refs:
                raise BuildInfoParseError(
                    f"replace line without preceding dep line: {line}", line
                )
            block.refs[-1] = replace(block.refs[-1], path=fields[1], version=fields[2])
        block.last_kind = kind


def parse(text: str) -> List[BuildInfo]:
    """Parse a (possibly concatenated) ``go version -m`` dump.

    Returns one ``BuildInfo`` per header line in input order. Raises
    ``BuildInfoParseError`` on the first malformed line; no partial result is
    returned.
    """

    parser = BuildInfoParser()
    for line in text.splitlines():
        parser.feed(line)
    return parser.finish()


def extract_build_info(paths: Iterable[str], go_bin: str | None = None) -> List[BuildInfo]:
    """Run ``go version -m`` over ``paths`` and parse its output."""

    targets = [str(p) for p in paths]
    if not targets:
        return []

    executable = go_bin or os.environ.get("LICHEN_GO_BIN") or "go"
    command = [executable, "version", "-m", *targets]
    logger.debug("Running %s", " ".join(command))
    try:
        completed = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise BuildInfoExtractionError(f"unable to run {executable}: {exc}") from exc

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        raise BuildInfoExtractionError(
            f"{executable} version -m exited with status {completed.returncode}: {stderr}"
        )
    return parse(completed.stdout)
