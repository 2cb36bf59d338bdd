"""
Pytest configuration and shared fixtures.
Run from project root: python -m pytest tests/ -v
"""

import os
import sys
from pathlib import Path

# Set env vars before any app imports (ensures deterministic test behavior)
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ["ENVIRONMENT"] = "test"
os.environ["AI_PROVIDER"] = "openai"
os.environ["SUPABASE_JWT_SECRET"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

# Ensure project root is on path when running tests
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
