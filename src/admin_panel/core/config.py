"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the admin panel.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    possible_paths = [
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # repository root
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _get_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes", "on")."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "sqlite:///./admin_panel.db"
    )


DATABASE_URL = get_database_url()

# Create missing tables (models on Base plus admin_resource_versions) on startup
CREATE_TABLES_ON_STARTUP = _get_bool("CREATE_TABLES_ON_STARTUP", True)

# Panel
ADMIN_PANEL_NAME = os.getenv("ADMIN_PANEL_NAME", "Admin Panel")
ADMIN_PANEL_PATH = os.getenv("ADMIN_PANEL_PATH", "/admin").rstrip("/") or "/admin"
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Resource listing
RESOURCES_PER_PAGE = int(os.getenv("RESOURCES_PER_PAGE", "25"))
RESOURCES_MAX_PER_PAGE = int(os.getenv("RESOURCES_MAX_PER_PAGE", "100"))

# Authorization
POLICY_MODULE = os.getenv("POLICY_MODULE", "app.policies")
POLICY_ALLOW_MISSING_ABILITIES = _get_bool("POLICY_ALLOW_MISSING_ABILITIES", False)

# Observers
OBSERVER_MODULE = os.getenv("OBSERVER_MODULE", "app.observers")

# Caching
CACHE_DEFAULT_TTL_SECONDS = int(os.getenv("CACHE_DEFAULT_TTL_SECONDS", "3600"))

# Trash cleanup
TRASH_CLEANUP_ENABLED = _get_bool("TRASH_CLEANUP_ENABLED", True)
TRASH_CLEANUP_HOUR = int(os.getenv("TRASH_CLEANUP_HOUR", "3"))
