from __future__ import annotations

import logging
from typing import Iterable

from .config import Config, apply_overrides
from .decision import collect_references, evaluate
from .license_classifier import LicenseClassifier
from .module_resolver import ModuleResolver
from .types import BuildInfo, Summary

logger = logging.getLogger(__name__)


def run(
    build_infos: Iterable[BuildInfo],
    config: Config,
    resolver: ModuleResolver,
    classifier: LicenseClassifier,
) -> Summary:
    """Resolve, classify and evaluate every module linked into the binaries.

    Resolver failures propagate unchanged; only modules whose source was found
    but yielded no license are reported as unresolvable.
    """

    binaries = list(build_infos)
    references = collect_references(binaries)
    if not references:
        logger.info("No dependency modules found in %d binaries", len(binaries))
        return Summary(binaries=binaries, modules=[])

    modules = resolver.fetch(references.keys())
    for module in modules:
        if module.dir is not None:
            module.licenses = classifier.classify(module.dir)
    modules = apply_overrides(modules, config.overrides)

    evaluated = evaluate(modules, references, config)
    evaluated.sort(key=lambda item: (item.path, item.version))

    summary = Summary(binaries=binaries, modules=evaluated)
    logger.info(
        "Evaluated %d modules across %d binaries: %d not allowed",
        len(evaluated),
        len(binaries),
        len(summary.failures),
    )
    return summary
