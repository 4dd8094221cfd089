"""CLI entrypoints for codescan commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import OUTPUT_FORMATS, CodescanConfig, load_config, normalize_format
from .errors import CodescanError
from .logging import configure_logging
from .orchestrator import Orchestrator, read_base_document
from .spec.document import Document


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_list_option(parser: argparse.ArgumentParser, flag: str, help_text: str) -> None:
    parser.add_argument(flag, action="append", default=None, metavar="PATTERN", help=help_text)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codescan",
        description="Generate a Swagger 2.0 document from swagger: annotations in Go sources.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate",
        help="Scan Go packages and write the Swagger document.",
    )
    _add_verbose_option(generate, suppress_default=True)
    generate.add_argument(
        "packages",
        nargs="*",
        help="Package patterns to scan (defaults to ./...).",
    )
    generate.add_argument("-o", "--output", help="Write the document to this file instead of stdout.")
    generate.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format: json, yaml or yml.")
    generate.add_argument(
        "--compact", action=argparse.BooleanOptionalAction, default=None, help="Emit compact JSON without indentation."
    )
    generate.add_argument("-w", "--work-dir", help="Working directory for package resolution.")
    generate.add_argument("--tags", help="Build tags, comma or space separated.")
    generate.add_argument(
        "--scan-models",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include models that no operation references.",
    )
    generate.add_argument(
        "--exclude-deps",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Do not load packages outside the main module.",
    )
    _add_list_option(generate, "--include", "Only scan packages or files matching this pattern.")
    _add_list_option(generate, "--exclude", "Skip packages or files matching this pattern.")
    _add_list_option(generate, "--include-tags", "Only keep operations carrying one of these tags.")
    _add_list_option(generate, "--exclude-tags", "Drop operations carrying one of these tags.")
    generate.add_argument("-i", "--input", help="Base document (JSON or YAML) to merge into.")
    generate.add_argument(
        "--x-nullable-pointers",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Mark pointer-derived schemas with x-nullable.",
    )
    generate.add_argument(
        "--ref-aliases",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Emit alias types as referenced definitions.",
    )
    generate.add_argument(
        "--transparent-aliases",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Always inline alias types (wins over --ref-aliases).",
    )
    generate.add_argument(
        "--desc-with-ref",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow a description next to a $ref.",
    )
    generate.add_argument("--config", help="Path to .codescan.yml (defaults to the working directory).")
    generate.add_argument("-q", "--quiet", action="store_true", help="Only report warnings and errors.")
    generate.add_argument("--log-file", help="Also write DEBUG logs to this file.")

    subparsers.add_parser("version", help="Print the codescan version.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codescan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print(f"codescan {__version__}")
        return

    configure_logging(
        verbose=bool(args.verbose),
        quiet=args.quiet,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    if args.command == "generate":
        try:
            config = load_config(Path(args.config or args.work_dir or "."))
            document = _generate(args, config)
            output = args.output or (str(config.output.file) if config.output.file else None)
            fmt = normalize_format(args.format) or config.output.format or _format_for(output)
            compact = args.compact if args.compact is not None else config.output.compact
            text = document.to_yaml() if fmt == "yaml" else document.to_json(compact=compact)
            if output:
                _write(Path(output), text)
                print(f"Swagger document written to {_relativize(Path(output))}", file=sys.stderr)
            else:
                sys.stdout.write(text if text.endswith("\n") else text + "\n")
        except CodescanError as exc:
            parser.exit(1, f"codescan generate failed: {exc}\n")
        except OSError as exc:
            parser.exit(1, f"codescan generate failed: {exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _generate(args: argparse.Namespace, config: CodescanConfig) -> Document:
    input_path = args.input or (str(config.input) if config.input else None)
    options = config.to_options(
        packages=tuple(args.packages) or None,
        work_dir=args.work_dir,
        build_tags=args.tags,
        scan_models=args.scan_models,
        exclude_deps=args.exclude_deps,
        include=_split(args.include),
        exclude=_split(args.exclude),
        include_tags=_split(args.include_tags),
        exclude_tags=_split(args.exclude_tags),
        input_spec=read_base_document(Path(input_path)) if input_path else None,
        set_x_nullable_for_pointers=args.x_nullable_pointers,
        ref_aliases=args.ref_aliases,
        transparent_aliases=args.transparent_aliases,
        desc_with_ref=args.desc_with_ref,
    )
    return Orchestrator().run(options)


def _split(values: Optional[List[str]]) -> Optional[tuple]:
    if values is None:
        return None
    return tuple(part.strip() for value in values for part in value.split(",") if part.strip())


def _format_for(output: Optional[str]) -> str:
    if output and Path(output).suffix.lower() in {".yml", ".yaml"}:
        return "yaml"
    return "json"


def _write(path: Path, text: str) -> None:
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
