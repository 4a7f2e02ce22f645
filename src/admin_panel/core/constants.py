"""Application constants and configuration values."""

from admin_panel.core.config import FRONTEND_URL

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # Vite dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Cache keys are namespaced as "admin_panel:<uri-key>:<kind>:..."
CACHE_KEY_PREFIX = "admin_panel"

# Policy abilities, in the order they are documented for policy authors
POLICY_ABILITIES = (
    "viewAny",
    "view",
    "create",
    "update",
    "delete",
    "restore",
    "forceDelete",
    "attach",
    "detach",
    "runAction",
    "export",
    "import",
)

# Entity lifecycle events an observer may implement
OBSERVER_EVENTS = (
    "creating",
    "created",
    "updating",
    "updated",
    "saving",
    "saved",
    "deleting",
    "deleted",
    "trashed",
    "restoring",
    "restored",
    "force_deleting",
    "force_deleted",
)

# Export formats: key -> (label, media type)
EXPORT_FORMATS = {
    "csv": ("CSV", "text/csv"),
    "xlsx": ("Excel", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "json": ("JSON", "application/json"),
    "xml": ("XML", "application/xml"),
    "pdf": ("PDF", "application/pdf"),
}
DEFAULT_EXPORT_FORMAT = "csv"
DEFAULT_MAX_EXPORT_RECORDS = 10000
DEFAULT_EXPORT_EXCLUSIONS = ("password", "remember_token")
TIMESTAMP_COLUMNS = ("created_at", "updated_at", "deleted_at")

# Versioning
DEFAULT_MAX_VERSIONS = 50
DEFAULT_VERSION_EXCLUSIONS = ("created_at", "updated_at", "deleted_at")

# Soft deletes
DEFAULT_TRASH_RETENTION_DAYS = 30

# Bulk operations: key -> label
BULK_OPERATIONS = {
    "delete": "Delete Selected",
    "update": "Update Selected",
    "export": "Export Selected",
}
DEFAULT_BULK_BATCH_SIZE = 100
# A single request may select at most this many batches worth of keys
BULK_MAX_BATCHES = 10

DEFAULT_NESTING_MAX_DEPTH = 10
