"""Repository-level CLI entrypoint for the nuclear cascade engine.

This wrapper preserves the documented invocation style:

    python runner.py <config.json> [--output-dir results/]

It delegates execution to :mod:`nuclear_cascade.runner`.
"""

from __future__ import annotations

import sys
from pathlib import Path

from nuclear_cascade.runner import main


def _rewrite_config_path_arg(argv: list[str]) -> list[str]:
    """Rewrite config argument to ``nuclear_cascade/<name>`` when needed.

    Example configs such as ``config_lithium.json`` are invoked from the
    repository root, while the files live under ``nuclear_cascade/``.
    """
    if len(argv) < 2:
        return argv

    candidate = Path(argv[1])
    if candidate.exists():
        return argv

    alt = Path("nuclear_cascade") / candidate
    if alt.exists():
        out = list(argv)
        out[1] = str(alt)
        return out

    return argv


if __name__ == "__main__":
    sys.argv = _rewrite_config_path_arg(sys.argv)
    main()
