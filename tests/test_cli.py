import json
from pathlib import Path

from click.testing import CliRunner

from lichen.cli import main

MIT_TEXT = (
    "Permission is hereby granted, free of charge, to any person obtaining a copy.\n"
    'THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND.\n'
)
GPL_TEXT = "GNU GENERAL PUBLIC LICENSE\nVersion 3, 29 June 2007\n"

BUILD_INFO = (
    "/tmp/app: go1.21.5\n"
    "\tpath\texample.com/app\n"
    "\tmod\texample.com/app\t(devel)\t\n"
    "\tdep\texample.com/mit\tv1.0.0\th1:abc=\n"
    "\tdep\texample.com/gpl\tv2.0.0\th1:def=\n"
    "\tbuild\t-compiler=gc\n"
)


def _populate_cache(root: Path) -> Path:
    cache = root / "modcache"
    for name, text in [("mit@v1.0.0", MIT_TEXT), ("gpl@v2.0.0", GPL_TEXT)]:
        module_dir = cache / "example.com" / name
        module_dir.mkdir(parents=True)
        (module_dir / "LICENSE").write_text(text)
    return cache


def test_scan_fails_on_non_permitted_license():
    runner = CliRunner()
    with runner.isolated_filesystem():
        cache = _populate_cache(Path.cwd())
        Path("buildinfo.txt").write_text(BUILD_INFO)
        Path("lichen.yaml").write_text("allow: [MIT]\n")

        result = runner.invoke(
            main,
            [
                "scan",
                "--buildinfo",
                "buildinfo.txt",
                "--config",
                "lichen.yaml",
                "--mod-cache",
                str(cache),
            ],
        )

    assert result.exit_code == 1
    assert "example.com/gpl@v2.0.0: GPL-3.0 (not allowed - non-permitted licenses: GPL-3.0)" in result.output
    assert "example.com/mit@v1.0.0: MIT (allowed)" in result.output


def test_scan_passes_with_exception_and_writes_json():
    runner = CliRunner()
    with runner.isolated_filesystem():
        cache = _populate_cache(Path.cwd())
        Path("buildinfo.txt").write_text(BUILD_INFO)
        Path("lichen.yaml").write_text(
            """
allow: [MIT]
exceptions:
  licenseNotPermitted:
    - path: example.com/gpl
      licenses: [GPL-3.0]
"""
        )

        result = runner.invoke(
            main,
            [
                "scan",
                "--buildinfo",
                "buildinfo.txt",
                "--config",
                "lichen.yaml",
                "--mod-cache",
                str(cache),
                "--format",
                "json",
                "--json",
                "out/summary.json",
            ],
        )

        assert result.exit_code == 0
        payload = json.loads(result.output)
        written = json.loads(Path("out/summary.json").read_text())

    assert payload == written
    assert payload["passed"] is True
    assert {module["decision"] for module in payload["modules"]} == {"allowed"}
    assert payload["modules"][0]["used_by"] == ["/tmp/app"]


def test_scan_reads_build_info_from_stdin():
    runner = CliRunner()
    with runner.isolated_filesystem():
        cache = _populate_cache(Path.cwd())
        result = runner.invoke(
            main,
            ["scan", "--buildinfo", "-", "--mod-cache", str(cache), "--format", "json"],
            input=BUILD_INFO,
        )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert [module["path"] for module in payload["modules"]] == ["example.com/gpl", "example.com/mit"]


def test_scan_reports_parse_errors():
    runner = CliRunner()
    with runner.isolated_filesystem():
        Path("buildinfo.txt").write_text("lichen: go1.14.4\n\tdep\tfoo\n")

        result = runner.invoke(main, ["scan", "--buildinfo", "buildinfo.txt"])

    assert result.exit_code == 1
    assert "invalid dep line: \tdep\tfoo" in result.output


def test_scan_reports_missing_modules():
    runner = CliRunner()
    with runner.isolated_filesystem():
        Path("buildinfo.txt").write_text(BUILD_INFO)
        Path("empty-cache").mkdir()

        result = runner.invoke(
            main, ["scan", "--buildinfo", "buildinfo.txt", "--mod-cache", "empty-cache"]
        )

    assert result.exit_code == 1
    assert "Unable to resolve modules" in result.output


def test_scan_requires_input():
    runner = CliRunner()
    result = runner.invoke(main, ["scan"])

    assert result.exit_code == 1
    assert "nothing to scan" in result.output


def test_scan_with_custom_template():
    runner = CliRunner()
    with runner.isolated_filesystem():
        cache = _populate_cache(Path.cwd())
        Path("buildinfo.txt").write_text(BUILD_INFO)
        Path("report.j2").write_text("{% for m in modules %}{{ m.path }}={{ m.decision.token }};{% endfor %}")

        result = runner.invoke(
            main,
            [
                "scan",
                "--buildinfo",
                "buildinfo.txt",
                "--mod-cache",
                str(cache),
                "--template",
                "report.j2",
                "--output",
                "report.txt",
            ],
        )

        assert result.exit_code == 0
        assert Path("report.txt").read_text() == "example.com/gpl=allowed;example.com/mit=allowed;"


def test_buildinfo_command_prints_parsed_records():
    runner = CliRunner()
    with runner.isolated_filesystem():
        Path("buildinfo.txt").write_text(BUILD_INFO + "/tmp/dev: devel +b7a85e0003 linux/amd64\n")

        result = runner.invoke(main, ["buildinfo", "--buildinfo", "buildinfo.txt"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload[0]["module_refs"][1] == {"path": "example.com/gpl", "version": "v2.0.0"}
    assert payload[1] == {"path": "/tmp/dev", "package_path": "", "module_path": "", "module_refs": []}
