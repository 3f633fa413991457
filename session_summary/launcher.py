"""Console entry point for the session-end hook.

Imports the runtime lazily so a broken install prints a diagnostic instead
of failing the host's session shutdown.
"""
from __future__ import annotations

import importlib
import sys


def main() -> int:
    try:
        hook = importlib.import_module("session_summary.hook")
    except ImportError as exc:
        missing = getattr(exc, "name", None) or str(exc)
        print(f"session-summary: required dependency unavailable ({missing})", file=sys.stderr)
        print("Install: pip install session-summary", file=sys.stderr)
        return 0
    return hook.main()


if __name__ == "__main__":
    raise SystemExit(main())
