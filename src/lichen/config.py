from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from .types import License, Module

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a policy file is structurally invalid."""


@dataclass
class ModuleMatcher:
    path: str
    version: Optional[str] = None

    def matches(self, module: Module) -> bool:
        if module.path != self.path:
            return False
        return self.version is None or self.version == module.version


@dataclass
class Override(ModuleMatcher):
    """Replace the detected licenses of a module with an explicit list."""

    licenses: List[str] = field(default_factory=list)


@dataclass
class LicenseNotPermittedException(ModuleMatcher):
    """Permit licenses for one module; an empty list permits all of them."""

    licenses: List[str] = field(default_factory=list)

    def permits(self, license_name: str) -> bool:
        return not self.licenses or license_name in self.licenses


@dataclass
class UnresolvableLicenseException(ModuleMatcher):
    pass


@dataclass
class Exceptions:
    license_not_permitted: List[LicenseNotPermittedException] = field(default_factory=list)
    unresolvable_license: List[UnresolvableLicenseException] = field(default_factory=list)


@dataclass
class Config:
    allow: Optional[List[str]] = None
    overrides: List[Override] = field(default_factory=list)
    exceptions: Exceptions = field(default_factory=Exceptions)

    def policy(self) -> frozenset[str] | None:
        """Permitted license identifiers, or None when no allow-list is set."""

        if self.allow is None:
            return None
        return frozenset(self.allow)


def _string_list(raw: object, where: str) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: expected a list, got {type(raw).__name__}")
    return [str(item) for item in raw]


def _matcher_fields(entry: object, where: str) -> tuple[str, Optional[str]]:
    if not isinstance(entry, dict):
        raise ConfigError(f"{where}: expected a mapping, got {type(entry).__name__}")
    path = entry.get("path")
    if not path:
        raise ConfigError(f"{where}: missing module path")
    version = entry.get("version")
    return str(path), str(version) if version is not None else None


def parse_config(raw: object) -> Config:
    if raw is None:
        return Config()
    if not isinstance(raw, dict):
        raise ConfigError(f"config: expected a mapping, got {type(raw).__name__}")

    allow = _string_list(raw["allow"], "allow") if raw.get("allow") is not None else None

    overrides: list[Override] = []
    for index, entry in enumerate(_entries(raw.get("override"), "override")):
        where = f"override[{index}]"
        path, version = _matcher_fields(entry, where)
        overrides.append(
            Override(path=path, version=version, licenses=_string_list(entry.get("licenses"), where))
        )

    raw_exceptions = raw.get("exceptions") or {}
    if not isinstance(raw_exceptions, dict):
        raise ConfigError("exceptions: expected a mapping")

    not_permitted: list[LicenseNotPermittedException] = []
    for index, entry in enumerate(
        _entries(raw_exceptions.get("licenseNotPermitted"), "exceptions.licenseNotPermitted")
    ):
        where = f"exceptions.licenseNotPermitted[{index}]"
        path, version = _matcher_fields(entry, where)
        not_permitted.append(
            LicenseNotPermittedException(
                path=path, version=version, licenses=_string_list(entry.get("licenses"), where)
            )
        )

    unresolvable: list[UnresolvableLicenseException] = []
    for index, entry in enumerate(
        _entries(raw_exceptions.get("unresolvableLicense"), "exceptions.unresolvableLicense")
    ):
        path, version = _matcher_fields(entry, f"exceptions.unresolvableLicense[{index}]")
        unresolvable.append(UnresolvableLicenseException(path=path, version=version))

    return Config(
        allow=allow,
        overrides=overrides,
        exceptions=Exceptions(license_not_permitted=not_permitted, unresolvable_license=unresolvable),
    )


def _entries(raw: object, where: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: expected a list, got {type(raw).__name__}")
    return raw


def load_config(path: Path) -> Config:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    config = parse_config(raw)
    logger.debug(
        "Loaded config %s: %d allowed licenses, %d overrides",
        path,
        len(config.allow or []),
        len(config.overrides),
    )
    return config


def apply_overrides(modules: Iterable[Module], overrides: Iterable[Override]) -> List[Module]:
    """Replace classifier findings for modules an override matches.

    The first matching override wins.
    """

    override_list = list(overrides)
    updated: List[Module] = []
    for module in modules:
        for override in override_list:
            if override.matches(module):
                logger.debug("Overriding licenses of %s with %s", module.reference, override.licenses)
                module.licenses = [License(name=name) for name in override.licenses]
                break
        updated.append(module)
    return updated
