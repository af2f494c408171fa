#!/usr/bin/env python3
"""Convert wire-format fixtures into client-consumable YAML vectors.

Each vector carries the input (instruction args or escrow record), the
expected hex, and its byte length. Account vectors also carry the padded
account hex as it appears on chain.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from nescrow.codec_adapter import escrow_from_json  # noqa: E402
from nescrow.encoding import encode_escrow  # noqa: E402


def _convert(vec: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {"name": vec["name"]}
    if "instruction" in vec:
        out["kind"] = "instruction"
        out["input"] = vec["instruction"]
    else:
        out["kind"] = "account"
        out["input"] = vec["escrow"]
        out["account_hex"] = encode_escrow(escrow_from_json(vec["escrow"]), pad=True).hex()
    out["expected_hex"] = vec["expected_hex"]
    out["length"] = len(vec["expected_hex"]) // 2
    return out


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert fixtures to vectors")
    parser.add_argument("--fixtures", default=str(ROOT / "fixtures"))
    parser.add_argument("--vectors", default=str(ROOT / "vectors"))
    args = parser.parse_args()

    source = Path(args.fixtures).resolve() / "wire_format.json"
    vectors = Path(args.vectors).resolve()
    if not source.exists():
        raise SystemExit(f"fixtures not found: {source}")

    data = json.loads(source.read_text())
    converted = [_convert(v) for v in data.get("vectors", [])]

    vectors.mkdir(parents=True, exist_ok=True)
    dest = vectors / "wire_format.yaml"
    dest.write_text(
        yaml.safe_dump({"test_vectors": converted}, sort_keys=False, width=4096)
    )
    print(f"Written {len(converted)} vectors into {dest}")


if __name__ == "__main__":
    main()
