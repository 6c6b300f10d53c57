"""
Shared fixtures for record store tests.
"""

import pytest

from pixframe import create_app
from pixframe.config import WorkspaceConfig
from pixframe.folders import FolderManager
from pixframe.guard import StoreGuard
from pixframe.models import CUSTOMER, PROJECT
from pixframe.store import DurableStore


@pytest.fixture
def config(tmp_path):
    return WorkspaceConfig(workspace_path=tmp_path / 'workspace')


@pytest.fixture
def customer_store(config):
    return DurableStore(config.customer_db_path, CUSTOMER)


@pytest.fixture
def project_store(config):
    return DurableStore(config.project_db_path, PROJECT)


@pytest.fixture
def customers(config, customer_store):
    guard = StoreGuard(customer_store, FolderManager(config, CUSTOMER))
    guard.initialize()
    return guard


@pytest.fixture
def projects(config, project_store):
    guard = StoreGuard(project_store, FolderManager(config, PROJECT))
    guard.initialize()
    return guard


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c
