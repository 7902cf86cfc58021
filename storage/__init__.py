"""
Storage Package.

This package manages all analytics persistence.

Modules:
- models/: SQLAlchemy ORM models
- repositories/: Data access layer
"""
