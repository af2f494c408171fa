"""Replay wire-format fixtures against the encoders and decoders."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from nescrow.codec_adapter import escrow_from_json, instruction_from_json  # noqa: E402
from nescrow.encoding import (  # noqa: E402
    decode_escrow,
    decode_instruction,
    encode_escrow,
    encode_instruction,
)
from nescrow.errors import NescrowError  # noqa: E402


def _check_vector(vec: dict) -> str | None:
    expected = bytes.fromhex(vec["expected_hex"])
    if "instruction" in vec:
        payload = instruction_from_json(vec["instruction"])
        if encode_instruction(payload) != expected:
            return "wire_mismatch"
        if decode_instruction(expected) != payload:
            return "decode_mismatch"
        return None
    if "escrow" in vec:
        escrow = escrow_from_json(vec["escrow"])
        if encode_escrow(escrow) != expected:
            return "wire_mismatch"
        if decode_escrow(expected) != escrow:
            return "decode_mismatch"
        return None
    return "unknown_vector_kind"


def _check_wire_vectors(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for vec in data.get("vectors", []):
        try:
            reason = _check_vector(vec)
        except NescrowError as e:
            reason = f"error {e.code.name}"
        if reason:
            failures.append(f"{vec['name']}: {reason}")
    return failures


def main() -> None:
    parser = argparse.ArgumentParser(description="Check wire fixtures against the codec")
    parser.add_argument("--fixtures", default=str(ROOT / "fixtures"))
    args = parser.parse_args()

    wire = Path(args.fixtures) / "wire_format.json"
    if not wire.exists():
        raise SystemExit(f"no fixtures at {wire}; run tools/fill.py first")

    failures = _check_wire_vectors(wire)
    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print("All fixtures passed")


if __name__ == "__main__":
    main()
