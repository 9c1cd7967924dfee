from __future__ import annotations

import sys
from pathlib import Path


def _bootstrap_src() -> None:
    src = Path(__file__).resolve().parent / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _utf8_streams() -> None:
    # agent mode reads JSON lines from stdin, so all three streams need UTF-8
    for stream in (sys.stdin, sys.stdout, sys.stderr):
        reconf = getattr(stream, "reconfigure", None)
        if callable(reconf):
            try:
                reconf(encoding="utf-8")
            except (OSError, ValueError):
                pass


def main() -> int:
    _bootstrap_src()
    _utf8_streams()

    from storesim.cli import main as cli_main

    return cli_main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
