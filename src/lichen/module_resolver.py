from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Protocol

from .types import Module, ModuleReference

logger = logging.getLogger(__name__)


class ModuleResolutionError(RuntimeError):
    """Raised when a module's source cannot be located."""

    def __init__(self, message: str, reference: ModuleReference | None = None) -> None:
        super().__init__(message)
        self.reference = reference


class ModuleResolver(Protocol):
    def fetch(self, refs: Iterable[ModuleReference]) -> List[Module]:
        ...


def escape_module_path(value: str) -> str:
    """Apply the module cache case-encoding (``Foo`` -> ``!foo``)."""

    escaped = []
    for char in value:
        if "A" <= char <= "Z":
            escaped.append("!" + char.lower())
        else:
            escaped.append(char)
    return "".join(escaped)


def default_cache_dir() -> Path:
    env_cache = os.environ.get("GOMODCACHE")
    if env_cache:
        return Path(env_cache)
    gopath = os.environ.get("GOPATH")
    if gopath:
        # GOPATH may be a list; the module cache lives under the first entry
        return Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod"
    return Path.home() / "go" / "pkg" / "mod"


class ModuleCacheResolver:
    """Resolve module sources from an already-populated Go module cache.

    Modules are never downloaded; a module missing from the cache is a
    resolution failure the caller has to surface.
    """

    def __init__(self, cache_dir: Path | str | None = None) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir else default_cache_dir()

    def module_dir(self, ref: ModuleReference) -> Path:
        return self.cache_dir / f"{escape_module_path(ref.path)}@{escape_module_path(ref.version)}"

    def fetch(self, refs: Iterable[ModuleReference]) -> List[Module]:
        modules: List[Module] = []
        seen: set[ModuleReference] = set()
        for ref in refs:
            if ref in seen:
                continue
            seen.add(ref)
            directory = self.module_dir(ref)
            if not directory.is_dir():
                raise ModuleResolutionError(
                    f"module {ref} not found in module cache {self.cache_dir}", reference=ref
                )
            logger.debug("Resolved %s to %s", ref, directory)
            modules.append(Module(path=ref.path, version=ref.version, dir=directory))
        return modules
