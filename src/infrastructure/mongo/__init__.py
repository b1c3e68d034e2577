"""
Document database integration (MongoDB via pymongo).

Includes an in-memory mock database for local development and tests.
"""

from .client import MockMongoDatabase, MongoConfig, create_database

__all__ = ["MockMongoDatabase", "MongoConfig", "create_database"]
