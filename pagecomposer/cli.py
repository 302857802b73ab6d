from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagecomposer", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    compose = sub.add_parser("compose", help="Compose the page for a request path")
    compose.add_argument("path", help="Request path, e.g. /blog/1")
    compose.add_argument("--config", dest="config_path", default=None, help="Load exactly this config file")
    compose.add_argument("--output", default=None, help="Write the composed bytes here instead of stdout")

    sub.add_parser("list-units", help="List available units")

    translate = sub.add_parser("translate", help="Print the XPath a CSS selector translates to")
    translate.add_argument("selector")

    return parser


def _write_output(content: bytes, output: str | None) -> None:
    if output:
        with open(output, "wb") as handle:
            handle.write(content)
        return
    stream = getattr(sys.stdout, "buffer", None)
    if stream is not None:
        sys.stdout.flush()
        stream.write(content)
        stream.flush()
    else:
        sys.stdout.write(content.decode("utf-8", errors="replace"))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "compose":
        from .app.compose import main as compose_main

        result = compose_main(args.path, config_path=args.config_path)
        _write_output(result.content, args.output)
        return 0

    if args.command == "list-units":
        from .units.registry import list_units

        list_units()
        return 0

    if args.command == "translate":
        from composekit.selectors import translate

        print(translate(args.selector))
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
