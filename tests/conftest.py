"""Pytest configuration for root-level integration tests.

Adds the finance API src directory and the shared services package to sys.path.
"""

import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SERVICES_ROOT = REPO_ROOT / "services"

SERVICE_PATHS = [
    SERVICES_ROOT,
    SERVICES_ROOT / "finance-api" / "src",
    REPO_ROOT / "scripts",
]

for path in SERVICE_PATHS:
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

os.environ.setdefault("FINANCE_DB_URL", "sqlite:///:memory:")
