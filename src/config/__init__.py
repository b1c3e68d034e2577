"""
Settings for the API, read from the environment (or a .env file).

MONGO_MOCK_MODE and R2_MOCK_MODE switch the database and object storage
to in-memory stand-ins for local runs and tests.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
