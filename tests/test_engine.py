"""
Tests for the session builder and the command runner.
"""

import io

import pytest

from provisioner.adapters.mock import MockPackageManager
from provisioner.core.engine.runner import CommandRunner
from provisioner.core.models.config import ProvisionConfig, SearchPaths
from provisioner.core.models.credential import CredentialSpec
from provisioner.core.models.event import COMMAND_NOT_FOUND, DispatchResult, InstallationEvent, Outcome
from provisioner.core.models.recipe import PackageRecipe
from provisioner.core.services.host import HostProfile
from provisioner.core.session import Session

from helpers import FakePrompt, RecordingExecutor, make_executable


@pytest.fixture
def config() -> ProvisionConfig:
    return ProvisionConfig(
        shell="bash",
        search_paths=SearchPaths(prepend=[], append_globs=[]),
        credentials=[CredentialSpec(name="TOKEN", resolver="printf x")],
        recipes=[
            PackageRecipe(name="ripgrep", provides=["rg"], packages={"default": "ripgrep"}),
            PackageRecipe(name="pbcopy", platforms={"macos"}),
        ],
    )


@pytest.fixture
def session(config, env, bin_dir) -> Session:
    def on_install(packages):
        make_executable(bin_dir, "rg")

    return Session.from_config(
        config,
        env=env,
        host=HostProfile("debian"),
        managers=[MockPackageManager("apt", on_install=on_install)],
        prompt=FakePrompt(True),
        executor=RecordingExecutor(),
        stderr=io.StringIO(),
    )


class TestSession:
    def test_registries_populated(self, session):
        assert session.credentials.names() == ["TOKEN"]
        assert session.catalog.lookup("rg") == "ripgrep"
        assert session.catalog.lookup("pbcopy") is None
        assert session.managers.primary == "apt"

    def test_installer_sees_catalog_recipes(self, session):
        assert session.installer.recipe_for("ripgrep").provides == ["rg"]

    def test_shell_name_used(self, session):
        assert session.dispatcher.shell_name == "bash"

    def test_end_to_end_install(self, session, bin_dir):
        report = session.runner.run(["rg", "--version"])
        assert report.intercepted
        assert report.dispatch.outcome == Outcome.INSTALLED
        assert report.exit_code == 0
        assert session.managers.get("apt").installs == [["ripgrep"]]

    def test_default_config(self, env):
        s = Session.from_config(env=env, host=HostProfile("unsupported"), managers=[])
        assert len(s.catalog) == 0
        assert s.managers.primary is None


class TestCommandRunner:
    @pytest.fixture
    def runner(self, path_cache, env):
        return CommandRunner(path_cache, env, executor=RecordingExecutor(), stderr=io.StringIO())

    def test_resolved_command_runs(self, runner, bin_dir):
        tool = make_executable(bin_dir, "zz-tool")
        report = runner.run(["zz-tool", "a b"])
        assert report.path == str(tool)
        assert runner.executor.calls[0][1] == ["zz-tool", "a b"]
        assert not report.intercepted

    def test_no_interceptor(self, runner):
        report = runner.run(["zz-missing"])
        assert report.exit_code == COMMAND_NOT_FOUND
        assert "zsh: command not found: zz-missing" in runner._stderr.getvalue()

    def test_first_handled_interceptor_wins(self, runner):
        seen = []

        def declining(argv):
            seen.append("declining")
            return DispatchResult(
                outcome=Outcome.DECLINED_OR_FAILED, event=InstallationEvent(command=argv[0])
            )

        def handling(argv):
            seen.append("handling")
            return DispatchResult(
                outcome=Outcome.RECOVERED, exit_code=3, event=InstallationEvent(command=argv[0])
            )

        def never(argv):
            seen.append("never")
            raise AssertionError("should not run")

        for i in (declining, handling, never):
            runner.add_interceptor(i)

        report = runner.run(["zz-missing"])

        assert seen == ["declining", "handling"]
        assert report.exit_code == 3
        assert report.dispatch.outcome == Outcome.RECOVERED

    def test_empty_argv(self, runner):
        with pytest.raises(ValueError):
            runner.run([])

    def test_to_dict(self, runner):
        data = runner.run(["zz-missing"]).to_dict()
        assert data["exit_code"] == COMMAND_NOT_FOUND
        assert data["dispatch"] is None
