"""
Authentication dependencies and authorization policies.
"""
