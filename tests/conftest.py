"""Shared test fixtures."""

import sys

import pytest
from fakes import RecordingBackend
from loguru import logger

from dotsecrets.core.credentials import StaticPassphrase
from dotsecrets.core.registry import Registry
from dotsecrets.core.sync import SyncOrchestrator

# Keeps tests fast; production uses cipher.KDF_ITERATIONS
TEST_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def _reset_logging():
    """Point loguru at the current stderr so sinks from CliRunner never linger."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")
    yield
    logger.remove()


@pytest.fixture
def home(tmp_path):
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def registry(tmp_path, home):
    return Registry(tmp_path / "config" / "tracked", home=home)


@pytest.fixture
def secret_files(home, registry):
    """The two-file example: ~/.ssh/id_rsa and ~/.env, both tracked."""
    ssh_dir = home / ".ssh"
    ssh_dir.mkdir()
    (ssh_dir / "id_rsa").write_text("KEY-A")
    (home / ".env").write_text("X=1")
    registry.add(ssh_dir / "id_rsa")
    registry.add(home / ".env")
    return {".ssh/id_rsa": "KEY-A", ".env": "X=1"}


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def make_orchestrator(registry, home):
    def _make(backend, passphrase="hunter2"):
        return SyncOrchestrator(
            backend,
            registry,
            StaticPassphrase(passphrase),
            home=home,
            kdf_iterations=TEST_ITERATIONS,
        )

    return _make
