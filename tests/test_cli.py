"""CLI parser and entrypoint tests."""

from __future__ import annotations

import json
import logging

import pytest
import yaml

from codescan.cli import _build_parser, main

from tests._fixtures.petstore import PETSTORE_DOCUMENT, PETSTORE_FILES


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "generate"])
    assert args.verbose is True
    assert args.command == "generate"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["generate", "--verbose"])
    assert args.verbose is True
    assert args.command == "generate"


def test_cli_generate_defaults_leave_config_in_charge() -> None:
    args = _build_parser().parse_args(["generate"])

    assert args.packages == []
    assert args.scan_models is None
    assert args.compact is None
    assert args.include is None
    assert args.format is None


def test_cli_collects_repeatable_filters() -> None:
    args = _build_parser().parse_args(
        [
            "generate",
            "./api/...",
            "./models",
            "--include-tags",
            "pets,store",
            "--include-tags",
            "users",
            "--exclude",
            "internal",
            "--scan-models",
            "--ref-aliases",
            "--format",
            "yaml",
        ]
    )

    assert args.packages == ["./api/...", "./models"]
    assert args.include_tags == ["pets,store", "users"]
    assert args.exclude == ["internal"]
    assert args.scan_models is True
    assert args.ref_aliases is True
    assert args.format == "yaml"


def test_cli_rejects_unknown_format() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["generate", "--format", "xml"])


def test_cli_switches_accept_negated_forms() -> None:
    args = _build_parser().parse_args(
        ["generate", "--no-scan-models", "--no-desc-with-ref", "--no-compact", "--format", "yml"]
    )

    assert args.scan_models is False
    assert args.desc_with_ref is False
    assert args.compact is False
    assert args.ref_aliases is None
    assert args.format == "yml"


def test_version_command(capsys: pytest.CaptureFixture[str]) -> None:
    main(["version"])

    assert capsys.readouterr().out.strip() == "codescan 0.1.0"


def test_generate_writes_json_to_stdout(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)

    main(["generate", "-w", str(go_repo.path())])

    assert json.loads(capsys.readouterr().out) == PETSTORE_DOCUMENT


def test_generate_writes_yaml_file_and_applies_filters(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)
    output = go_repo.path() / "out" / "swagger.yml"

    main(["generate", "-w", str(go_repo.path()), "-o", str(output), "--include-tags", "store"])

    captured = capsys.readouterr()
    assert "Swagger document written to" in captured.err
    spec = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert list(spec["paths"]) == ["/store/orders"]


def test_generate_reads_config_and_base_document(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)
    go_repo.write(
        {
            "base.json": '{"swagger": "2.0", "info": {"title": "Base"}, "paths": {"/users": {}}}',
            ".codescan.yml": """
                scan_models: true
                input: base.json
                output:
                  compact: true
            """,
        }
    )

    main(["generate", "-w", str(go_repo.path())])

    out = capsys.readouterr().out
    spec = json.loads(out)
    assert out.count("\n") == 1
    assert "Unused" in spec["definitions"]
    assert "/users" in spec["paths"]
    assert spec["info"]["title"] == "Petstore API."


def test_generate_reports_failures(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write({"api/api.go": "package api\n\n// swagger:route FETCH /x x opX\nfunc X() {}\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["generate", "-w", str(go_repo.path())])

    assert excinfo.value.code == 1
    assert "codescan generate failed: api/api.go:3: swagger:route has unknown HTTP method" in capsys.readouterr().err


def test_generate_configures_codescan_logger(go_repo) -> None:
    go_repo.write({"main.go": "package main\n"})

    main(["generate", "-w", str(go_repo.path()), "--verbose"])

    logger = logging.getLogger("codescan")
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_generate_negated_flag_overrides_config(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)
    go_repo.write(
        {
            ".codescan.yml": """
                scan_models: true
                output:
                  compact: true
            """,
        }
    )

    main(["generate", "-w", str(go_repo.path()), "--no-scan-models", "--no-compact"])

    out = capsys.readouterr().out
    spec = json.loads(out)
    assert "Unused" not in spec["definitions"]
    assert spec == PETSTORE_DOCUMENT
    assert out.count("\n") > 1


def test_generate_treats_yml_as_yaml(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)

    main(["generate", "-w", str(go_repo.path()), "--format", "yml"])

    out = capsys.readouterr().out
    assert not out.lstrip().startswith("{")
    assert yaml.safe_load(out)["paths"].keys() == PETSTORE_DOCUMENT["paths"].keys()


def test_generate_quiet_with_log_file(go_repo, capsys: pytest.CaptureFixture[str]) -> None:
    go_repo.write(PETSTORE_FILES)
    log_file = go_repo.path() / "codescan.log"

    main(["generate", "-w", str(go_repo.path()), "--quiet", "--log-file", str(log_file)])

    captured = capsys.readouterr()
    assert json.loads(captured.out) == PETSTORE_DOCUMENT
    assert "INFO" not in captured.err
    for handler in logging.getLogger("codescan").handlers:
        handler.flush()
    assert "INFO codescan.loader: Loaded" in log_file.read_text(encoding="utf-8")
