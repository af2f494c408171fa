"""Generate wire-format fixtures, re-check them, and emit YAML vectors.

    python tools/fill.py                 # fixtures/ + vectors/
    python tools/fill.py --no-vectors    # fixtures only
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
TOOLS = ROOT / "tools"


def _run(cmd: list[str], env: dict[str, str]) -> int:
    print("Running:", " ".join(cmd))
    return subprocess.call(cmd, env=env, cwd=str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate escrow wire fixtures")
    parser.add_argument("--output", default=str(ROOT / "fixtures"))
    parser.add_argument("--no-vectors", action="store_true", help="Skip YAML vector export")
    args = parser.parse_args()

    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT / "tests")])

    steps = [
        [sys.executable, "-m", "pytest", str(ROOT / "tests" / "test_wire_format.py"),
         "-q", "--output", args.output],
        [sys.executable, str(TOOLS / "consume.py"), "--fixtures", args.output],
    ]
    if not args.no_vectors:
        steps.append(
            [sys.executable, str(TOOLS / "fixtures_to_vectors.py"), "--fixtures", args.output]
        )

    for cmd in steps:
        code = _run(cmd, env)
        if code != 0:
            return code
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
