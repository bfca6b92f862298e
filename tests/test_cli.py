"""CLI tests: real subprocesses through a fake npm client."""

from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import write_package
from monorun.cli import cli

FAKE_CLIENT = """#!/bin/sh
# `<client> run <script>`: print the package name, fail for "fail"
echo "$MONORUN_PACKAGE_NAME"
if [ "$2" = "fail" ]; then
  exit 42
fi
"""


@pytest.fixture
def fake_client(tmp_path: Path) -> str:
    path = tmp_path / "bin" / "fake-npm"
    path.parent.mkdir()
    path.write_text(FAKE_CLIENT)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


def _invoke(*args):
    return CliRunner().invoke(cli, list(args), obj={})


class TestRun:
    def test_runs_in_dependency_order(self, basic_workspace, fake_client):
        result = _invoke("run", "env", "--cwd", str(basic_workspace), "--npm-client", fake_client,
                         "--concurrency", "1")

        assert result.exit_code == 0, result.output
        lines = [l for l in result.output.splitlines() if l.startswith("package-")]
        assert lines == ["package-1", "package-4", "package-2", "package-3"]

    def test_missing_script(self, basic_workspace):
        result = _invoke("run", "--cwd", str(basic_workspace))

        assert result.exit_code == 1
        assert "You must specify a lifecycle script to run" in result.output

    def test_missing_script_checked_before_workspace(self, tmp_path):
        broken = tmp_path / "packages" / "broken"
        broken.mkdir(parents=True)
        (broken / "package.json").write_text("{not json")

        for cwd in (tmp_path, tmp_path / "does-not-exist"):
            result = _invoke("run", "--cwd", str(cwd))

            assert result.exit_code == 1
            assert "You must specify a lifecycle script to run" in result.output

    def test_no_matching_script(self, basic_workspace, fake_client):
        result = _invoke("run", "nope", "--cwd", str(basic_workspace), "--npm-client", fake_client)

        assert result.exit_code == 0
        assert 'No packages found with the lifecycle script "nope"' in result.output

    def test_bail_exit_code(self, basic_workspace, fake_client):
        result = _invoke("run", "fail", "--cwd", str(basic_workspace), "--npm-client", fake_client)

        assert result.exit_code == 42
        assert "package-1" in result.output

    def test_no_bail_exit_code(self, basic_workspace, fake_client):
        write_package(basic_workspace, "package-5", scripts={"fail": "exit 1"})

        result = _invoke("run", "fail", "--no-bail", "--cwd", str(basic_workspace),
                         "--npm-client", fake_client, "--concurrency", "1")

        assert result.exit_code == 42
        assert "Received non-zero exit code 42 during execution" in result.output

    def test_scope(self, basic_workspace, fake_client):
        result = _invoke("run", "my-script", "--scope", "package-3", "--cwd", str(basic_workspace),
                         "--npm-client", fake_client)

        assert result.exit_code == 0
        lines = [l for l in result.output.splitlines() if l.startswith("package-")]
        assert lines == ["package-3"]

    def test_stream_prefixes_lines(self, basic_workspace, fake_client):
        result = _invoke("run", "my-script", "--stream", "--concurrency", "1", "--cwd", str(basic_workspace),
                         "--npm-client", fake_client)

        assert result.exit_code == 0
        assert "package-1: package-1" in result.output
        assert "package-3: package-3" in result.output

    def test_later_separators_reach_the_script(self, basic_workspace, tmp_path):
        client = tmp_path / "bin" / "args-npm"
        client.parent.mkdir()
        client.write_text('#!/bin/sh\nshift 2\necho "args: $*"\n')
        client.chmod(client.stat().st_mode | stat.S_IEXEC)

        result = _invoke("run", "my-script", "--scope", "package-1", "--cwd", str(basic_workspace),
                         "--npm-client", str(client), "--", "--", "x")

        assert result.exit_code == 0, result.output
        assert "args: -- x" in result.output

    def test_unstartable_client_fails_each_package_under_no_bail(self, basic_workspace, tmp_path):
        client = tmp_path / "plain-npm"
        client.write_text(FAKE_CLIENT)
        client.chmod(0o644)

        result = _invoke("run", "my-script", "--no-bail", "--concurrency", "1", "--cwd", str(basic_workspace),
                         "--npm-client", str(client))

        assert result.exit_code == 126
        assert result.output.count("could not start") == 2
        assert "Received non-zero exit code 126 during execution" in result.output

    def test_reject_cycles(self, tmp_path, fake_client):
        write_package(tmp_path, "a", scripts={"build": "x"}, dependencies={"b": "*"})
        write_package(tmp_path, "b", scripts={"build": "x"}, dependencies={"a": "*"})

        result = _invoke("run", "build", "--reject-cycles", "--cwd", str(tmp_path), "--npm-client", fake_client)

        assert result.exit_code == 1
        assert "Dependency cycles detected, you should fix these!" in result.output
        assert "a -> b -> a" in result.output

    def test_profile(self, basic_workspace, fake_client):
        result = _invoke("run", "my-script", "--profile", "--profile-location", "profiles",
                         "--cwd", str(basic_workspace), "--npm-client", fake_client)

        assert result.exit_code == 0, result.output
        [profile] = list((basic_workspace / "profiles").glob("Monorun-Profile-*.json"))
        assert sorted(e["name"] for e in json.loads(profile.read_text())) == ["package-1", "package-3"]

    def test_invalid_concurrency(self, basic_workspace):
        result = _invoke("run", "env", "--concurrency", "0", "--cwd", str(basic_workspace))

        assert result.exit_code == 1
        assert "Invalid run configuration" in result.output

    def test_workspace_file_defaults(self, basic_workspace, fake_client):
        (basic_workspace / "monorun.json").write_text(json.dumps({
            "npmClient": fake_client,
            "command": {"run": {"stream": True, "concurrency": 1}},
        }))

        result = _invoke("run", "my-script", "--cwd", str(basic_workspace))

        assert result.exit_code == 0, result.output
        assert "package-1: package-1" in result.output
