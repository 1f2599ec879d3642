"""
tests/conftest.py -- Shared test fixtures for KeyGate.

This module provides:
  - registry:    a PermissionRegistry holding the reference "defaultAdmin" role
  - credentials: a CredentialService with a fixed secret and the minimum bcrypt cost
  - api_client:  a TestClient running the real lifespan, so every test gets a
                 freshly built registry, directory and signing secret

BCRYPT_ROUNDS must be set before any core/auth/api import so get_settings()
picks up the cheap cost factor; at the default cost every registration in the
HTTP tests would take tens of milliseconds.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# CRITICAL: set before any core/auth/api import (get_settings() is cached).
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.registry import PermissionRegistry
from auth.tokens import CredentialService
from core.models import ActionType, Permission, ResourceType, Role, RoleType

TEST_SECRET = b"k" * 32


@pytest.fixture
def registry() -> PermissionRegistry:
    """Registry initialized with defaultAdmin -> [(product, write), (user, write)]."""
    reg = PermissionRegistry()
    reg.add_role(
        Role(
            name="defaultAdmin",
            type=RoleType.ADMIN,
            permissions=[
                Permission(ResourceType.PRODUCT, ActionType.WRITE),
                Permission(ResourceType.USER, ActionType.WRITE),
            ],
        )
    )
    return reg


@pytest.fixture
def credentials() -> CredentialService:
    return CredentialService(TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient whose app.state was built by the real lifespan.

    Function-scoped on purpose: the first registration on a fresh directory
    becomes the bootstrap admin, so tests must not share a directory.
    The shared rate limiter is reset so login counts do not leak between tests.
    """
    limiter.reset()
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
