import os
import sys
import warnings
from pathlib import Path

# Ignore warnings from app.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="app.shared.*")

# Set test environment variables before any app module reads the config
os.environ.update(
    {
        "APP_ENV": "test",
        "DEMO_MODE": "false",
        "SUPABASE_URL": "http://supabase.test",
        "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
        "SUPABASE_JWT_SECRET": "test-jwt-secret-with-at-least-32-bytes!!",
        "SUPABASE_JWT_AUDIENCE": "authenticated",
    }
)

# Ensure the project root is on sys.path so `app` packages resolve
PROJECT_ROOT = Path(__file__).resolve().parents[1]
root_str = str(PROJECT_ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

# Import store fixtures so they are available to all tests
from tests.fixtures.store_fixtures import *  # noqa: E402, F403
