"""Shared fixtures for the Foundry test suite."""

import pytest

from foundry.backends.linear.backend import LinearBackend
from foundry.backends.local import LocalBackend
from foundry.config import LinearConfig
from foundry.operations import Foundry

from tests.fake_linear import FakeLinearSession
from tests.samples import FIXED_NOW, NOTES, SPEC, SUMMARY, TASKS, TECH_STACK, VISION


@pytest.fixture
def foundry_home(tmp_path, monkeypatch):
    """Point FOUNDRY_HOME at a temporary directory."""
    home = tmp_path / "foundry-home"
    monkeypatch.setenv("FOUNDRY_HOME", str(home))
    monkeypatch.delenv("FOUNDRY_BACKEND", raising=False)
    return home


@pytest.fixture
def backend(tmp_path):
    return LocalBackend(tmp_path / "store")


@pytest.fixture
def project(backend):
    backend.create_project("demo-app", VISION, TECH_STACK, SUMMARY)
    return "demo-app"


@pytest.fixture
def spec_id(backend, project):
    return backend.create_spec(project, "user_auth", SPEC, TASKS, NOTES, now=FIXED_NOW).spec_id


@pytest.fixture
def foundry(backend):
    return Foundry(backend)


@pytest.fixture
def linear_session():
    return FakeLinearSession()


@pytest.fixture
def linear_backend(linear_session):
    """Linear backend wired to an in-memory workspace."""
    return LinearBackend(LinearConfig(api_token="lin_test", team_id="team-1"), session=linear_session)
