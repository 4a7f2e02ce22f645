"""
Utility modules for the admin panel.

This package contains shared helpers used across the panel, including
datetime utilities, naming inflection and JSON-safe serialization.
"""
