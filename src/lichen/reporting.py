from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, select_autoescape

from .types import EvaluatedModule, Summary


env = Environment(
    autoescape=select_autoescape(["html", "xml"], default_for_string=False),
    trim_blocks=True,
    keep_trailing_newline=True,
)

DEFAULT_TEXT_TEMPLATE = """\
{% for module in modules %}
{{ module.path }}@{{ module.version }}: {{ module.module.license_names | join(", ") or "no license found" }} ({{ module.explain_decision() }})
{% endfor %}
"""


def _module_rows(modules: Iterable[EvaluatedModule]) -> Iterable[dict]:
    for evaluated in modules:
        module = evaluated.module
        row = {
            "path": module.path,
            "version": module.version,
            "dir": str(module.dir) if module.dir else None,
            "licenses": [
                {"name": lic.name, "path": lic.path, "confidence": lic.confidence}
                for lic in module.licenses
            ],
            "decision": evaluated.decision.token,
            "explanation": evaluated.explain_decision(),
            "used_by": sorted(evaluated.used_by),
        }
        if evaluated.not_permitted:
            row["not_permitted"] = sorted(evaluated.not_permitted)
        yield row


def render_json(summary: Summary) -> str:
    payload = {
        "passed": summary.passed,
        "binaries": [info.as_dict() for info in summary.binaries],
        "modules": list(_module_rows(summary.modules)),
    }
    return json.dumps(payload, indent=2)


def render_text(summary: Summary, template: str | None = None) -> str:
    compiled = env.from_string(template if template is not None else DEFAULT_TEXT_TEMPLATE)
    return compiled.render(
        summary=summary,
        binaries=summary.binaries,
        modules=summary.modules,
        passed=summary.passed,
    )


def render_report(summary: Summary, fmt: str, template: str | None = None) -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return render_json(summary)
    if fmt == "text":
        return render_text(summary, template)
    raise ValueError(f"Unknown report format: {fmt}")


def write_report(summary: Summary, fmt: str, destination: Path | None, template: str | None = None) -> str:
    output = render_report(summary, fmt, template)
    if destination:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(output)
    return output
