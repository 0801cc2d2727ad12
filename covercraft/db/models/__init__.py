"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from covercraft.db.models.profile import Profile
from covercraft.db.models.generation_log import GenerationLog

# Explicitly export all models for clarity
__all__ = [
    "Profile",
    "GenerationLog",
]
