"""Integration tests for CLI commands."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from dotsecrets import __version__
from dotsecrets.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_env(registry, backend, monkeypatch):
    """Wire the CLI to the test registry and an in-memory backend."""
    monkeypatch.setenv("SECRETS_PASSPHRASE", "hunter2")
    with (
        patch("dotsecrets.cli.get_registry", return_value=registry),
        patch("dotsecrets.cli.get_backend", return_value=backend),
        patch("dotsecrets.cli.get_config", return_value={"backend": "memory"}),
    ):
        yield backend


def test_version(runner):
    """Test --version prints the package version."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestAddRemove:
    def test_add_tracks_path(self, runner, cli_env, home, registry):
        """Test adding a new path."""
        (home / ".netrc").write_text("machine x")

        result = runner.invoke(cli, ["add", str(home / ".netrc")])

        assert result.exit_code == 0
        assert "Tracking" in result.output
        assert list(registry) == [".netrc"]

    def test_add_twice_is_noop(self, runner, cli_env, home, registry):
        """Test adding an already tracked path."""
        (home / ".netrc").write_text("machine x")
        runner.invoke(cli, ["add", str(home / ".netrc")])

        result = runner.invoke(cli, ["add", str(home / ".netrc")])

        assert result.exit_code == 0
        assert "Already tracked" in result.output
        assert list(registry) == [".netrc"]

    def test_add_missing_path_fails(self, runner, cli_env, home):
        """Test adding a path that does not exist."""
        result = runner.invoke(cli, ["add", str(home / "nope")])

        assert result.exit_code == 1
        assert "local error" in result.output

    def test_remove_tracked_path(self, runner, cli_env, secret_files, home, registry):
        """Test removing a tracked path."""
        result = runner.invoke(cli, ["remove", str(home / ".env")])

        assert result.exit_code == 0
        assert "Stopped tracking" in result.output
        assert list(registry) == [".ssh/id_rsa"]

    def test_remove_untracked_path_is_not_an_error(self, runner, cli_env, home):
        """Test removing an untracked path exits cleanly."""
        result = runner.invoke(cli, ["remove", str(home / ".env")])

        assert result.exit_code == 0
        assert "Not tracked" in result.output


class TestListStatus:
    def test_list_empty(self, runner, cli_env):
        """Test listing with nothing tracked."""
        result = runner.invoke(cli, ["list"])

        assert result.exit_code == 0
        assert "No paths tracked yet" in result.output

    def test_list_rich(self, runner, cli_env, secret_files):
        """Test the rich list table."""
        result = runner.invoke(cli, ["list"])

        assert result.exit_code == 0
        assert "Tracked Paths" in result.output
        assert "~/.ssh/id_rsa" in result.output
        assert "present" in result.output

    def test_list_plain_marks_missing(self, runner, cli_env, secret_files, home):
        """Test plain output flags missing paths."""
        (home / ".env").unlink()

        result = runner.invoke(cli, ["list", "--format", "plain"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert any("~/.env" in line and "missing" in line for line in lines)
        assert any("~/.ssh/id_rsa" in line and "present" in line for line in lines)

    def test_status_all_present(self, runner, cli_env, secret_files):
        """Test status with every path present."""
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Tracked: 2" in result.output

    def test_status_exits_nonzero_when_missing(
        self, runner, cli_env, secret_files, home
    ):
        """Test status exits 1 when a path is missing."""
        (home / ".env").unlink()

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 1
        assert "missing: 1" in result.output
        assert "~/.env" in result.output


class TestPushPull:
    def test_push_then_pull(self, runner, cli_env, secret_files, tmp_path):
        """Test pushing and pulling the default group."""
        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 0, result.output
        assert "Pushed group default" in result.output
        assert "Files: 2" in result.output

        dest = tmp_path / "restore"
        result = runner.invoke(cli, ["pull", "--dest", str(dest)])

        assert result.exit_code == 0, result.output
        assert "Restored 2 file(s)" in result.output
        assert (dest / ".ssh" / "id_rsa").read_text() == "KEY-A"
        assert (dest / ".env").read_text() == "X=1"

    def test_push_prompts_for_passphrase_twice(
        self, runner, cli_env, secret_files, monkeypatch
    ):
        """Test push asks for the passphrase with confirmation."""
        monkeypatch.delenv("SECRETS_PASSPHRASE")

        result = runner.invoke(cli, ["push", "work"], input="hunter2\nhunter2\n")

        assert result.exit_code == 0, result.output
        assert "work" in cli_env.metadata

    def test_push_with_missing_file_never_reaches_backend(
        self, runner, cli_env, secret_files, home
    ):
        """Test push fails locally when a tracked file is missing."""
        (home / ".env").unlink()

        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 1
        assert "local error" in result.output
        assert ".env" in result.output
        assert cli_env.calls == []

    def test_push_invalid_group(self, runner, cli_env, secret_files):
        """Test push rejects an invalid group name."""
        result = runner.invoke(cli, ["push", "../etc"])

        assert result.exit_code == 1
        assert "Invalid group name" in result.output

    def test_pull_wrong_passphrase(
        self, runner, cli_env, secret_files, tmp_path, monkeypatch
    ):
        """Test pull with the wrong passphrase writes nothing."""
        runner.invoke(cli, ["push"])
        monkeypatch.setenv("SECRETS_PASSPHRASE", "wrong")
        dest = tmp_path / "restore"

        result = runner.invoke(cli, ["pull", "--dest", str(dest)])

        assert result.exit_code == 1
        assert "Decryption failed" in result.output
        assert not dest.exists()

    def test_pull_unknown_group_is_remote_error(self, runner, cli_env):
        """Test pulling an unknown group."""
        result = runner.invoke(cli, ["pull", "nope"])

        assert result.exit_code == 1
        assert "remote error" in result.output
        assert "No secrets found for group 'nope'" in result.output


class TestRemoteCommands:
    def test_groups_empty(self, runner, cli_env):
        """Test listing groups before any push."""
        result = runner.invoke(cli, ["groups"])

        assert result.exit_code == 0
        assert "No groups stored yet" in result.output

    def test_groups_lists_pushed_groups(self, runner, cli_env, secret_files):
        """Test listing pushed groups."""
        runner.invoke(cli, ["push", "default"])
        runner.invoke(cli, ["push", "laptop"])

        result = runner.invoke(cli, ["groups", "--format", "simple"])

        assert result.exit_code == 0
        assert "default" in result.output
        assert "laptop" in result.output

    def test_groups_backend_failure(self, runner, cli_env):
        """Test a backend failure is reported as a remote error."""
        cli_env.fail_on = "list_groups"

        result = runner.invoke(cli, ["groups"])

        assert result.exit_code == 1
        assert "remote error" in result.output

    def test_show(self, runner, cli_env, secret_files):
        """Test showing group metadata."""
        runner.invoke(cli, ["push"])

        result = runner.invoke(cli, ["show"])

        assert result.exit_code == 0
        assert "Files: 2" in result.output
        assert ".ssh/id_rsa" in result.output

    def test_delete_with_yes(self, runner, cli_env, secret_files):
        """Test deleting a group without a prompt."""
        runner.invoke(cli, ["push"])

        result = runner.invoke(cli, ["delete", "default", "--yes"])

        assert result.exit_code == 0
        assert "Deleted group default" in result.output
        assert cli_env.metadata == {}

    def test_delete_declined_keeps_group(self, runner, cli_env, secret_files):
        """Test declining the confirmation keeps the group."""
        runner.invoke(cli, ["push"])

        result = runner.invoke(cli, ["delete", "default"], input="n\n")

        assert result.exit_code == 1
        assert "default" in cli_env.metadata

    def test_delete_unknown_group(self, runner, cli_env):
        """Test deleting an unknown group."""
        result = runner.invoke(cli, ["delete", "nope", "--yes"])

        assert result.exit_code == 1
        assert "No secrets found" in result.output


class TestBackendCommands:
    def test_backend_show_kv(self, runner):
        """Test showing the kv backend configuration."""
        config = {
            "backend": "kv",
            "kv": {"url": "https://worker.test", "token": ""},
            "registry_file": "~/.config/dotsecrets/tracked",
            "home": "~",
        }
        with patch("dotsecrets.cli.get_config", return_value=config):
            result = runner.invoke(cli, ["backend", "show"])

        assert result.exit_code == 0
        assert "Current backend: kv" in result.output
        assert "https://worker.test" in result.output
        assert "Bearer token: passphrase" in result.output

    def test_backend_set_notes(self, runner):
        """Test setting the notes backend with options."""
        with (
            patch("dotsecrets.cli.get_config", return_value={"backend": "kv"}) as get,
            patch("dotsecrets.cli.save_config") as save,
        ):
            result = runner.invoke(
                cli,
                ["backend", "set", "notes", "--label-prefix", "dots/", "--max-chunks", "20"],
            )

        assert result.exit_code == 0
        assert "Backend set to: notes" in result.output
        get.assert_called_once_with(include_env=False)
        saved = save.call_args[0][0]
        assert saved["backend"] == "notes"
        assert saved["notes"] == {"label_prefix": "dots/", "max_chunks": 20}

    def test_backend_set_rejects_unknown_type(self, runner):
        """Test setting an invalid backend type."""
        result = runner.invoke(cli, ["backend", "set", "s3"])

        assert result.exit_code == 2
