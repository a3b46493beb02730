import argparse
from dataclasses import dataclass
from typing import List, Optional

COMMANDS = ("full", "quick", "plan", "review", "security", "performance", "seo", "config")


class CLIParseError(Exception):
    def __init__(self, message: str, *, code: int = 2, usage: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.usage = usage


class CodeVibeArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CLIParseError(message, usage=self.format_usage())


@dataclass(frozen=True)
class ParsedCLIArgs:
    namespace: argparse.Namespace
    command: str

    @property
    def json(self) -> bool:
        return bool(getattr(self.namespace, "json", False))


def _common_flags() -> argparse.ArgumentParser:
    common = CodeVibeArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Print the outcome as JSON.")
    common.add_argument("--config", dest="config_file", default="codevibe.config.json",
                        help="Path to the JSON config file.")
    common.add_argument("--model", dest="model_name", default=None, help="Override the model name.")
    common.add_argument("--root", default=".", help="Project root that file paths are relative to.")
    return common


def _file_flags(parser: argparse.ArgumentParser, *, required: bool = False) -> None:
    parser.add_argument("--file", "-f", dest="files", action="append", default=[],
                        required=required, metavar="PATH",
                        help="Project file to include (repeatable).")


def _request_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("request", help="Natural-language description of the change.")
    _file_flags(parser)
    parser.add_argument("--active", default=None, metavar="PATH",
                        help="File currently being edited.")


def _apply_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--apply", action="store_true",
                        help="Write the proposed operations under --root.")


def build_parser() -> argparse.ArgumentParser:
    common = _common_flags()
    parser = CodeVibeArgumentParser(
        prog="codevibe",
        description="Plan, write and review code changes with cooperating AI agents.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND", parser_class=CodeVibeArgumentParser)
    sub.required = True

    full = sub.add_parser("full", parents=[common], help="Plan, code, review and iterate.")
    _request_flags(full)
    full.add_argument("--max-iterations", type=int, default=None)
    full.add_argument("--project-type", default=None)
    full.add_argument("--strict", action="store_true", default=None)
    _apply_flag(full)

    quick = sub.add_parser("quick", parents=[common], help="Code and review once.")
    _request_flags(quick)
    quick.add_argument("--strict", action="store_true", default=None)
    _apply_flag(quick)

    plan = sub.add_parser("plan", parents=[common], help="Create an implementation plan only.")
    _request_flags(plan)
    plan.add_argument("--project-type", default=None)

    review = sub.add_parser("review", parents=[common], help="Review existing files.")
    _file_flags(review, required=True)
    review.add_argument("--focus", dest="focus_areas", action="append", default=[],
                        help="Area to focus the review on (repeatable).")
    review.add_argument("--strict", action="store_true", default=None)

    for name, text in (("security", "Run a security audit."),
                       ("performance", "Run a performance analysis.")):
        p = sub.add_parser(name, parents=[common], help=text)
        _file_flags(p, required=True)

    seo = sub.add_parser("seo", parents=[common], help="Optimize an HTML page for search engines.")
    seo.add_argument("html", metavar="HTML_PATH")
    seo.add_argument("--keywords", default="", help="Comma-separated keywords.")
    seo.add_argument("--key-phrase", default="")
    seo.add_argument("--title", default="")
    seo.add_argument("--description", default="")
    seo.add_argument("--author", default="")
    seo.add_argument("--site-name", default="")
    seo.add_argument("--image-url", default="")
    seo.add_argument("--url", default="")
    seo.add_argument("--twitter-handle", default="")
    seo.add_argument("--output", "-o", default=None, help="Write the optimized HTML here.")

    sub.add_parser("config", parents=[common], help="Show the effective configuration.")
    return parser


def parse_cli_args(argv: List[str]) -> ParsedCLIArgs:
    parser = build_parser()
    namespace = parser.parse_args(argv)
    if getattr(namespace, "max_iterations", None) is not None and namespace.max_iterations < 0:
        raise CLIParseError("--max-iterations must be >= 0", usage=parser.format_usage())
    return ParsedCLIArgs(namespace=namespace, command=namespace.command)
