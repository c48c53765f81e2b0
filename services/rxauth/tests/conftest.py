"""conftest.py - pytest auto-loaded configuration.

Puts src/ and tests/ on sys.path so that `import rxauth` works without an
install and `from helpers import ...` resolves the shared test helpers.
Required settings get harmless defaults before anything imports them.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
SRC = TESTS_DIR.parent / "src"

for _p in (str(SRC), str(TESTS_DIR)):
    if _p not in sys.path:
        sys.path.insert(0, _p)

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("RXAUTH_DISABLE_AUDIT", "1")
