# Shim: canonical entry point lives in codevibe_cli/cli_main.py.
# Keep this wrapper lazy so --help does not import the agent stack.
import sys


def main(*args, **kwargs):  # noqa: D401
    """Proxy to the canonical CLI entry point."""
    from codevibe_cli.cli_main import main as _main
    return _main(*args, **kwargs)


if __name__ == "__main__":
    raise SystemExit(main(argv=sys.argv[1:]))
