"""Recognise licenses from the license files at a module's root.

Recognition is exact. ``SPDX-License-Identifier`` headers win, and every
identifier named by their expressions is reported. Without a header, every
anchor set whose phrases all appear in the whitespace-normalised, lower-cased
file text is reported, except sets contained in a more specific match (the
BSD-2-Clause clause inside BSD-3-Clause text, for example). A file can
therefore carry several licenses; a file that matches nothing contributes no
identifier.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Protocol

from .types import License

logger = logging.getLogger(__name__)

MAX_LICENSE_BYTES = 128 * 1024

LICENSE_FILE_PREFIXES = ("license", "licence", "copying", "unlicense")

SPDX_HEADER_RE = re.compile(r"SPDX-License-Identifier:[ \t]*([^\r\n]*)", re.IGNORECASE)
SPDX_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+\-]*$")
SPDX_OPERATORS = frozenset({"AND", "OR"})

# Reported in this order when a file matches several sets.
ANCHOR_PHRASES: list[tuple[str, tuple[str, ...]]] = [
    (
        "AGPL-3.0",
        ("gnu affero general public license version 3, 19 november 2007",),
    ),
    (
        "LGPL-3.0",
        ("gnu lesser general public license version 3, 29 june 2007",),
    ),
    (
        "LGPL-2.1",
        ("gnu lesser general public license version 2.1, february 1999",),
    ),
    (
        "GPL-3.0",
        ("gnu general public license version 3, 29 june 2007",),
    ),
    (
        "GPL-2.0",
        ("gnu general public license version 2, june 1991",),
    ),
    (
        "MPL-2.0",
        ("mozilla public license version 2.0",),
    ),
    (
        "Apache-2.0",
        ("apache license", "version 2.0, january 2004"),
    ),
    (
        "BSL-1.0",
        ("boost software license",),
    ),
    (
        "MIT",
        ("permission is hereby granted, free of charge", "the software is provided \"as is\""),
    ),
    (
        "BSD-4-Clause",
        (
            "redistribution and use in source and binary forms, with or without modification",
            "all advertising materials mentioning features or use of this software",
        ),
    ),
    (
        "BSD-3-Clause",
        (
            "redistribution and use in source and binary forms, with or without modification",
            "neither the name of",
        ),
    ),
    (
        "BSD-2-Clause",
        ("redistribution and use in source and binary forms, with or without modification",),
    ),
    (
        "ISC",
        ("permission to use, copy, modify, and/or distribute this software for any purpose",),
    ),
    (
        "Unlicense",
        ("this is free and unencumbered software released into the public domain",),
    ),
    (
        "CC0-1.0",
        ("cc0 1.0 universal",),
    ),
]

# Texts that embed the phrases of another set without containing that license.
SUPERSEDES: dict[str, tuple[str, ...]] = {
    "BSL-1.0": ("MIT",),
    "BSD-4-Clause": ("BSD-3-Clause", "BSD-2-Clause"),
}


class LicenseClassifier(Protocol):
    def classify(self, source_dir: Path) -> List[License]:
        ...


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def parse_spdx_expression(expression: str) -> List[str]:
    """License identifiers named by an SPDX expression.

    Operators and parentheses are dropped, as is the exception id that
    follows ``WITH``.
    """

    identifiers: List[str] = []
    tokens = expression.replace("(", " ").replace(")", " ").split()
    skip_next = False
    for token in tokens:
        if skip_next:
            skip_next = False
            continue
        upper = token.upper()
        if upper == "WITH":
            skip_next = True
            continue
        if upper in SPDX_OPERATORS or not SPDX_ID_RE.match(token):
            continue
        if token not in identifiers:
            identifiers.append(token)
    return identifiers


def _contained(inner: tuple[str, ...], outer: tuple[str, ...]) -> bool:
    return all(any(phrase in other for other in outer) for phrase in inner)


def _anchor_matches(normalized: str) -> List[str]:
    matched = [
        (license_id, phrases)
        for license_id, phrases in ANCHOR_PHRASES
        if all(phrase in normalized for phrase in phrases)
    ]
    names = {license_id for license_id, _ in matched}
    result: List[str] = []
    for license_id, phrases in matched:
        if any(license_id in SUPERSEDES.get(other, ()) for other in names):
            continue
        if any(
            other_id != license_id and phrases != other_phrases and _contained(phrases, other_phrases)
            for other_id, other_phrases in matched
        ):
            continue
        result.append(license_id)
    return result


def identify_license_text(text: str) -> List[str]:
    """Every license identifier recognised in ``text``, in a stable order."""

    identifiers: List[str] = []
    for expression in SPDX_HEADER_RE.findall(text):
        for license_id in parse_spdx_expression(expression):
            if license_id not in identifiers:
                identifiers.append(license_id)
    if identifiers:
        return identifiers
    return _anchor_matches(_normalize(text))


def is_license_file(path: Path) -> bool:
    return path.is_file() and path.name.lower().startswith(LICENSE_FILE_PREFIXES)


class LicenseFileClassifier:
    def __init__(self, max_bytes: int = MAX_LICENSE_BYTES) -> None:
        self.max_bytes = max_bytes

    def _read(self, path: Path) -> str:
        with path.open("rb") as handle:
            raw = handle.read(self.max_bytes)
        return raw.decode("utf-8", errors="replace")

    def classify(self, source_dir: Path) -> List[License]:
        if not source_dir.is_dir():
            return []

        licenses: List[License] = []
        for candidate in sorted(source_dir.iterdir(), key=lambda p: p.name):
            if not is_license_file(candidate):
                continue
            license_ids = identify_license_text(self._read(candidate))
            if not license_ids:
                logger.debug("No license recognised in %s", candidate)
                continue
            logger.debug("Recognised %s in %s", ", ".join(license_ids), candidate)
            for license_id in license_ids:
                if any(existing.name == license_id for existing in licenses):
                    continue
                licenses.append(License(name=license_id, path=candidate.name))
        return licenses
