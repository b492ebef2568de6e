from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .types_buildinfo import ModuleReference


@dataclass
class License:
    name: str
    path: str = ""
    confidence: float = 1.0


@dataclass
class Module:
    path: str
    version: str
    dir: Optional[Path] = None
    licenses: List[License] = field(default_factory=list)

    @property
    def reference(self) -> ModuleReference:
        return ModuleReference(self.path, self.version)

    @property
    def license_names(self) -> list[str]:
        """Distinct license identifiers, in the order they were found."""

        names: list[str] = []
        for lic in self.licenses:
            if lic.name not in names:
                names.append(lic.name)
        return names
