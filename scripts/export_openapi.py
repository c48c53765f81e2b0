#!/usr/bin/env python3
"""
export_openapi.py: export the rxauth OpenAPI schema to contracts/openapi.json.

Usage:
    python scripts/export_openapi.py              # write to contracts/openapi.json
    python scripts/export_openapi.py --check      # exit 1 if file diverges (CI gate)

Requires the rxauth package to be importable (pip install -e .).
"""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path

# Placeholder settings so rxauth.settings imports without a real project
os.environ.setdefault("SUPABASE_URL", "https://stub.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "stub-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "stub-service-role-key")

from rxauth.main import app  # noqa: E402

CONTRACTS_DIR = Path(__file__).resolve().parent.parent / "contracts"
OUTPUT_PATH = CONTRACTS_DIR / "openapi.json"


def _canonical(schema: dict[str, object]) -> str:
    return json.dumps(schema, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def main() -> int:
    rendered = _canonical(app.openapi())

    if "--check" in sys.argv:
        if not OUTPUT_PATH.exists() or OUTPUT_PATH.read_text(encoding="utf-8") != rendered:
            print(f"FAIL: {OUTPUT_PATH} is missing or out of date. Run: python scripts/export_openapi.py")
            return 1
        print(f"OK: {OUTPUT_PATH} is up to date.")
        return 0

    CONTRACTS_DIR.mkdir(parents=True, exist_ok=True)
    OUTPUT_PATH.write_text(rendered, encoding="utf-8")
    print(f"Wrote {OUTPUT_PATH} ({len(rendered)} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
