"""
Shared test fixtures.

The environment is set before anything imports the application so the
cached settings point at in-memory backends and a known signing secret.
"""

import os

os.environ["JWT_SECRET"] = "test-signing-secret"
os.environ["MONGO_MOCK_MODE"] = "true"
os.environ["R2_MOCK_MODE"] = "true"

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_database, get_storage_client
from src.config.settings import get_settings
from src.core.auth.credentials import TokenService
from src.core.media.policy import UploadPolicy
from src.infrastructure.mongo.client import MockMongoDatabase
from src.infrastructure.storage.client import MockStorageClient

get_settings.cache_clear()

TEST_SECRET = "test-signing-secret"


@pytest.fixture
def database() -> MockMongoDatabase:
    return MockMongoDatabase()


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient(UploadPolicy())


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def app(database, storage):
    """A fresh application wired to per-test in-memory backends."""
    from src.main import create_app

    application = create_app()
    application.dependency_overrides[get_database] = lambda: database
    application.dependency_overrides[get_storage_client] = lambda: storage
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
