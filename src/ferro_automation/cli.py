from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG, OUTPUT_FORMATS, FerroConfig, load_config
from .loader import PlaybookLoader, PlaybookLoadError
from .plugins import load_plugins
from .runner import ResultSink, print_json
from .types import TaskResult


class Ansi:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    RESET = "\033[0m"


def colorize(text: str, color: Optional[str]) -> str:
    if not color:
        return text
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{color}{text}{Ansi.RESET}"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ferro playbook runner")
    parser.add_argument(
        "playbook",
        nargs="?",
        default=None,
        type=Path,
        help="Path to a playbook file (default from config or /etc/ferro/playbook.toml)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to ferro config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set or override a playbook variable (repeatable)",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Result format (default from config, else json)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Python logging level (default: WARNING)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s - %(message)s",
        stream=sys.stderr,
    )


def parse_overrides(pairs: Sequence[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--var expects KEY=VALUE, got '{pair}'")
        overrides[key] = value
    return overrides


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        cfg = load_config(args.config)
        overrides = parse_overrides(args.var)
    except ValueError as exc:
        print(colorize(f"Configuration error: {exc}", Ansi.RED), file=sys.stderr)
        return 1
    _apply_aws_env(cfg)

    try:
        load_plugins(cfg)
    except Exception as exc:  # noqa: BLE001
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            raise
        print(colorize(f"Plugin loading failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    output = args.output or cfg.output
    sink: ResultSink = print_json if output == "json" else print_text
    loader = PlaybookLoader(module_defaults=cfg.module_defaults)
    playbook_path = args.playbook or cfg.playbook
    try:
        playbook = loader.load(playbook_path, overrides, sink=sink)
    except PlaybookLoadError as exc:
        print(colorize(f"Playbook validation failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    results = playbook.run()

    summary = Summary()
    for result in results:
        summary.add(result)
    not_run = len(playbook.tasks) - len(results)
    print(summary.render(not_run=not_run), file=sys.stderr if output == "json" else sys.stdout)

    return 0 if summary.failures == 0 else 1


def format_result(result: TaskResult) -> str:
    if not result.succeeded:
        status, color = "failed", Ansi.RED
    elif result.skipped:
        status, color = "skipped", Ansi.BLUE
    elif result.changed:
        status, color = "changed", Ansi.GREEN
    else:
        status, color = "ok", Ansi.BLUE
    label = f"[{result.description}]" if result.description else ""
    line = f"{result.module}{label} {status}"
    detail = _detail(result)
    if detail:
        line = f"{line} - {detail}"
    return colorize(line, color)


def print_text(result: TaskResult) -> None:
    print(format_result(result))


def _detail(result: TaskResult) -> Optional[str]:
    if result.error:
        line = result.error.strip().splitlines()[0] if result.error.strip() else ""
        return (line[:157] + "...") if len(line) > 160 else line
    return None


def _apply_aws_env(cfg: FerroConfig) -> None:
    if cfg.aws_profile and "AWS_PROFILE" not in os.environ:
        os.environ["AWS_PROFILE"] = cfg.aws_profile
    if cfg.aws_region:
        if "AWS_REGION" not in os.environ:
            os.environ["AWS_REGION"] = cfg.aws_region
        if "AWS_DEFAULT_REGION" not in os.environ:
            os.environ["AWS_DEFAULT_REGION"] = cfg.aws_region


class Summary:
    def __init__(self) -> None:
        self.tasks = 0
        self.changes = 0
        self.skipped = 0
        self.failures = 0

    def add(self, result: TaskResult) -> None:
        self.tasks += 1
        if not result.succeeded:
            self.failures += 1
        elif result.skipped:
            self.skipped += 1
        elif result.changed:
            self.changes += 1

    def render(self, not_run: int = 0) -> str:
        parts = [
            f"Tasks: {self.tasks}",
            f"Changed: {self.changes}",
            f"Skipped: {self.skipped}",
            f"Failed: {self.failures}",
        ]
        if not_run:
            parts.append(f"Not run: {not_run}")
        text = " | ".join(parts)
        color = Ansi.GREEN if self.failures == 0 else Ansi.RED
        return colorize(text, color)


if __name__ == "__main__":
    raise SystemExit(main())
