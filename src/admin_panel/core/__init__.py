"""
Core configuration, constants, database session management and exceptions.
"""
