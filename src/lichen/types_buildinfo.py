from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ModuleReference:
    """A single dependency edge: module path and resolved version."""

    path: str
    version: str

    def __str__(self) -> str:
        return f"{self.path}@{self.version}"


@dataclass(frozen=True)
class BuildInfo:
    """Build metadata for one scanned binary.

    Development builds carry only ``path``; every other field stays empty.
    """

    path: str
    package_path: str = ""
    module_path: str = ""
    module_refs: tuple[ModuleReference, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "package_path": self.package_path,
            "module_path": self.module_path,
            "module_refs": [{"path": ref.path, "version": ref.version} for ref in self.module_refs],
        }
