"""Turn license findings and a policy into per-module decisions.

Every detected license must be permitted for a module to be allowed; a module
without any detected license is unresolvable. Modules are keyed by
``(path, version)`` so a dependency shared by several binaries is evaluated
once, with every importer recorded in ``used_by``.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping

from .config import Config, Exceptions
from .types import BuildInfo, Decision, EvaluatedModule, Module, ModuleReference

logger = logging.getLogger(__name__)


def decide(licenses: Iterable[str], permitted: frozenset[str] | None) -> tuple[Decision, set[str]]:
    found = set(licenses)
    if not found:
        return Decision.NOT_ALLOWED_UNRESOLVABLE_LICENSE, set()
    if permitted is None:
        return Decision.ALLOWED, set()

    rejected = found - permitted
    if rejected:
        return Decision.NOT_ALLOWED_LICENSE_NOT_PERMITTED, rejected
    return Decision.ALLOWED, set()


def merge_importers(
    target: dict[ModuleReference, set[str]], ref: ModuleReference, importers: Iterable[str]
) -> None:
    target.setdefault(ref, set()).update(importers)


def collect_references(build_infos: Iterable[BuildInfo]) -> dict[ModuleReference, set[str]]:
    """Map each distinct module reference to the binaries that link it."""

    references: dict[ModuleReference, set[str]] = {}
    for info in build_infos:
        for ref in info.module_refs:
            merge_importers(references, ref, [info.path])
    return references


def _exempt_unresolvable(module: Module, exceptions: Exceptions) -> bool:
    return any(exc.matches(module) for exc in exceptions.unresolvable_license)


def _exempt_licenses(module: Module, rejected: set[str], exceptions: Exceptions) -> set[str]:
    matching = [exc for exc in exceptions.license_not_permitted if exc.matches(module)]
    return {name for name in rejected if not any(exc.permits(name) for exc in matching)}


def evaluate_module(module: Module, used_by: Iterable[str], config: Config) -> EvaluatedModule:
    decision, rejected = decide(module.license_names, config.policy())

    if decision is Decision.NOT_ALLOWED_UNRESOLVABLE_LICENSE and _exempt_unresolvable(
        module, config.exceptions
    ):
        logger.debug("%s: unresolvable license exempted by config", module.reference)
        decision = Decision.ALLOWED
    elif decision is Decision.NOT_ALLOWED_LICENSE_NOT_PERMITTED:
        rejected = _exempt_licenses(module, rejected, config.exceptions)
        if not rejected:
            logger.debug("%s: non-permitted licenses exempted by config", module.reference)
            decision = Decision.ALLOWED

    return EvaluatedModule(
        module=module,
        decision=decision,
        not_permitted=rejected,
        used_by=set(used_by),
    )


def evaluate(
    modules: Iterable[Module],
    importers: Mapping[ModuleReference, set[str]],
    config: Config,
) -> List[EvaluatedModule]:
    evaluated: dict[ModuleReference, EvaluatedModule] = {}
    for module in modules:
        ref = module.reference
        used_by = importers.get(ref, set())
        existing = evaluated.get(ref)
        if existing is not None:
            existing.used_by.update(used_by)
            continue
        evaluated[ref] = evaluate_module(module, used_by, config)
    return list(evaluated.values())
