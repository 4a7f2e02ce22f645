"""
Admin panel resource core for FastAPI + SQLAlchemy.

Host applications declare Resource subclasses, register them with an
AdminPanel and mount the resource router (see admin_panel.main).
"""

__version__ = "1.0.0"
