"""
Tests for the command dispatcher — recovery, confirmation, install, retry.
"""

import io
from pathlib import Path

import pytest

from provisioner.core.models.event import COMMAND_NOT_FOUND, Decision, FailureKind, Outcome
from provisioner.core.models.recipe import PackageRecipe
from provisioner.core.services.catalog import RecipeCatalog
from provisioner.core.services.dispatcher import CommandDispatcher
from provisioner.core.services.executor import CommandExecutor
from provisioner.core.services.installer import PackageInstaller
from provisioner.core.services.search_path import SearchPathCache

from helpers import FakePrompt, RecordingExecutor, make_executable

# ── Terminal failure paths ───────────────────────────────────────────


class TestDispatcherFailures:
    def test_decline_returns_127_and_installs_nothing(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep", tags=["default"])
        dispatcher, prompt, executor, stderr = make_dispatcher(answer=False)

        result = dispatcher.dispatch(["rg", "pattern"])

        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.outcome == Outcome.DECLINED_OR_FAILED
        assert result.event.decision == Decision.DECLINED
        assert result.event.failure == FailureKind.DECLINED
        assert result.event.install_attempts == 0
        assert mock_manager.call_count == 0
        assert executor.calls == []
        assert len(prompt.questions) == 1
        assert "ripgrep" in prompt.questions[0]
        assert "zsh: command not found: rg" in stderr.getvalue()

    def test_offer_message_names_command_and_package(self, catalog, make_dispatcher):
        catalog.register("rg", "ripgrep")
        dispatcher, _, _, stderr = make_dispatcher(answer=False)
        dispatcher.dispatch(["rg"])
        assert "Command 'rg' not found, but can be installed via package 'ripgrep'" in stderr.getvalue()

    def test_no_recipe(self, make_dispatcher):
        dispatcher, prompt, _, stderr = make_dispatcher(answer=True)
        result = dispatcher.dispatch(["zz-unknown"])
        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.event.failure == FailureKind.RECIPE_NOT_FOUND
        assert prompt.questions == []
        assert stderr.getvalue().strip().endswith("zsh: command not found: zz-unknown")

    def test_no_terminal_counts_as_decline(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        dispatcher, _, _, _ = make_dispatcher(answer=None)
        result = dispatcher.dispatch(["rg"])
        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.event.decision == Decision.NO_TERMINAL
        assert mock_manager.call_count == 0

    def test_non_interactive_never_prompts(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        dispatcher, prompt, _, stderr = make_dispatcher(answer=True, interactive=False)
        result = dispatcher.dispatch(["rg"])
        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.event.failure == FailureKind.NON_INTERACTIVE
        assert prompt.questions == []
        assert mock_manager.call_count == 0
        assert "zsh: command not found: rg" in stderr.getvalue()

    def test_interactive_callable_is_evaluated_per_dispatch(self, catalog, path_cache, env):
        flags = iter([False, True])
        prompt = FakePrompt(False)
        dispatcher = CommandDispatcher(
            catalog, path_cache, env, prompt=prompt, interactive=lambda: next(flags),
        )
        catalog.register("rg", "ripgrep")
        dispatcher.dispatch(["rg"])
        assert prompt.questions == []
        dispatcher.dispatch(["rg"])
        assert len(prompt.questions) == 1

    def test_empty_argv_rejected(self, make_dispatcher):
        dispatcher, _, _, _ = make_dispatcher()
        with pytest.raises(ValueError):
            dispatcher.dispatch([])


# ── Non-looping ──────────────────────────────────────────────────────


class TestDispatcherSingleAttempt:
    def test_failing_install_attempted_once(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.set_failure("ripgrep", "E: Unable to locate package ripgrep")
        dispatcher, _, executor, stderr = make_dispatcher(answer=True)

        result = dispatcher.dispatch(["rg", "x"])

        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.event.install_attempts == 1
        assert result.event.failure == FailureKind.INSTALLATION_FAILED
        assert mock_manager.call_count == 1
        assert executor.calls == []
        assert "still not found after installation" in stderr.getvalue()

    def test_second_invocation_tries_again(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.set_failure("ripgrep")
        dispatcher, _, _, _ = make_dispatcher(answer=True)
        dispatcher.dispatch(["rg"])
        dispatcher.dispatch(["rg"])
        assert mock_manager.call_count == 2

    def test_reported_failure_still_retries_lookup(self, catalog, mock_manager, bin_dir, make_dispatcher):
        # Installer exits non-zero but the binary did land.
        catalog.register("rg", "ripgrep")
        mock_manager.set_failure("ripgrep", "post-install script failed")
        original_install = mock_manager.install

        def partial_install(packages, env=None):
            make_executable(bin_dir, "rg")
            return original_install(packages, env)

        mock_manager.install = partial_install
        dispatcher, _, executor, _ = make_dispatcher(answer=True)

        result = dispatcher.dispatch(["rg"])

        assert result.outcome == Outcome.INSTALLED
        assert result.exit_code == 0
        assert len(executor.calls) == 1

    def test_install_raising_is_a_failure_and_still_retries(self, catalog, mock_manager, bin_dir, make_dispatcher):
        catalog.register("rg", "ripgrep")

        def exploding_install(packages, env=None):
            make_executable(bin_dir, "rg")
            raise RuntimeError("manager crashed")

        mock_manager.install = exploding_install
        dispatcher, _, executor, stderr = make_dispatcher(answer=True)

        result = dispatcher.dispatch(["rg", "x"])

        assert result.outcome == Outcome.INSTALLED
        assert result.event.install_attempts == 1
        assert executor.calls[0][1] == ["rg", "x"]
        assert "Traceback" not in stderr.getvalue()

    def test_install_raising_without_binary_fails_cleanly(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")

        def exploding_install(packages, env=None):
            raise RuntimeError("manager crashed")

        mock_manager.install = exploding_install
        dispatcher, _, executor, stderr = make_dispatcher(answer=True)

        result = dispatcher.dispatch(["rg"])

        assert result.exit_code == COMMAND_NOT_FOUND
        assert result.event.failure == FailureKind.INSTALLATION_FAILED
        assert executor.calls == []
        assert stderr.getvalue().strip().endswith("zsh: command not found: rg")


# ── Success paths ────────────────────────────────────────────────────


class TestDispatcherSuccess:
    def test_install_and_rerun(self, catalog, mock_manager, bin_dir, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.binaries["ripgrep"] = "rg"
        dispatcher, prompt, executor, stderr = make_dispatcher(answer=True)

        result = dispatcher.dispatch(["rg", "TODO", "src"])

        assert result.outcome == Outcome.INSTALLED
        assert result.handled
        assert result.event.decision == Decision.ACCEPTED
        assert result.event.install_attempts == 1
        assert mock_manager.installs == [["ripgrep"]]
        assert executor.calls[0][0] == str(bin_dir / "rg")
        assert executor.calls[0][1] == ["rg", "TODO", "src"]
        assert "Reloading paths" in stderr.getvalue()

    def test_exit_code_of_rerun_is_returned(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.binaries["ripgrep"] = "rg"
        dispatcher, _, _, _ = make_dispatcher(answer=True, executor=RecordingExecutor(exit_code=1))
        result = dispatcher.dispatch(["rg", "missing-pattern"])
        assert result.exit_code == 1
        assert result.outcome == Outcome.INSTALLED

    def test_recovery_without_prompt(self, catalog, mock_manager, bin_dir, path_cache, make_dispatcher):
        catalog.register("rg", "ripgrep")
        assert path_cache.which("rg") is None   # table built without rg
        make_executable(bin_dir, "rg")          # installed by another session

        dispatcher, prompt, executor, _ = make_dispatcher(answer=False)
        result = dispatcher.dispatch(["rg", "-n"])

        assert result.outcome == Outcome.RECOVERED
        assert result.exit_code == 0
        assert prompt.questions == []
        assert mock_manager.call_count == 0
        assert executor.calls[0][1] == ["rg", "-n"]

    def test_recovery_picks_up_new_search_dir(self, catalog, env, tmp_path, make_dispatcher):
        from provisioner.core.models.config import SearchPaths
        from provisioner.core.services.search_path import SearchPathCache

        opt_bin = tmp_path / "opt" / "tool" / "bin"
        make_executable(opt_bin, "zz-tool")
        cache = SearchPathCache(
            env, SearchPaths(prepend=[], append_globs=[str(tmp_path / "opt" / "*" / "bin")])
        )
        dispatcher, _, executor, _ = make_dispatcher(answer=False)
        dispatcher.path_cache = cache

        result = dispatcher.dispatch(["zz-tool"])

        assert result.outcome == Outcome.RECOVERED
        assert executor.calls[0][0] == str(opt_bin / "zz-tool")
        assert str(opt_bin) in env.get("PATH")

    def test_child_sees_session_environment(self, catalog, mock_manager, env, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.binaries["ripgrep"] = "rg"
        env.set("OPENAI_API_KEY", "sk-test")
        dispatcher, _, executor, _ = make_dispatcher(answer=True)
        dispatcher.dispatch(["rg"])
        assert executor.calls[0][2]["OPENAI_API_KEY"] == "sk-test"


# ── Transparency ─────────────────────────────────────────────────────


class TestDispatcherTransparency:
    ARGS = ["foo bar", "--glob=*.py", "it's", '"quoted"', "$HOME", "a\tb", "", "ünï", ";|&>"]

    def test_installer_output_stays_off_stdout(self, managers, shell_env, bin_dir, no_search_paths, capfd):
        cache = SearchPathCache(shell_env, no_search_paths)
        catalog = RecipeCatalog(
            platform="debian", installer=PackageInstaller(managers, cache, shell_env)
        )
        target = bin_dir / "zz-noisy"
        catalog.register_recipe(
            PackageRecipe(
                name="zz-noisy",
                pre_install="echo PRE-NOISE",
                install_cmd=f"echo INSTALL-NOISE; printf '#!/bin/sh\\n' > {target}; chmod +x {target}",
                post_install="echo POST-NOISE",
            )
        )
        executor = RecordingExecutor()
        dispatcher = CommandDispatcher(
            catalog, cache, shell_env,
            prompt=FakePrompt(True), executor=executor, stderr=io.StringIO(),
        )

        result = dispatcher.dispatch(["zz-noisy", "foo"])

        assert result.outcome == Outcome.INSTALLED
        assert executor.calls[0][1] == ["zz-noisy", "foo"]
        captured = capfd.readouterr()
        assert captured.out == ""
        for noise in ("PRE-NOISE", "INSTALL-NOISE", "POST-NOISE"):
            assert noise in captured.err

    def test_argv_passed_unchanged(self, catalog, mock_manager, make_dispatcher):
        catalog.register("rg", "ripgrep")
        mock_manager.binaries["ripgrep"] = "rg"
        dispatcher, _, executor, _ = make_dispatcher(answer=True)

        argv = ["rg", *self.ARGS]
        result = dispatcher.dispatch(argv)

        assert executor.calls[0][1] == argv
        assert result.argv == argv

    def test_real_child_receives_identical_bytes(self, catalog, mock_manager, bin_dir, env, tmp_path, make_dispatcher):
        out = tmp_path / "args.out"
        catalog.register("zz-echo", "zz-echo-pkg")
        env.set("ARGS_OUT", str(out))

        def on_install(packages):
            make_executable(bin_dir, "zz-echo", 'for a in "$@"; do printf "%s\\0" "$a"; done > "$ARGS_OUT"\n')

        mock_manager._on_install = on_install
        dispatcher, _, _, _ = make_dispatcher(answer=True, executor=CommandExecutor())

        result = dispatcher.dispatch(["zz-echo", *self.ARGS])

        assert result.exit_code == 0
        received = out.read_bytes().split(b"\0")[:-1]
        assert received == [a.encode() for a in self.ARGS]


class TestExecutor:
    def test_missing_path_is_127(self, tmp_path: Path):
        code = CommandExecutor().run(str(tmp_path / "nope"), ["nope"], {})
        assert code == 127

    def test_not_executable_is_126(self, tmp_path: Path):
        f = tmp_path / "plain"
        f.write_text("data")
        f.chmod(0o644)
        assert CommandExecutor().run(str(f), ["plain"], {}) == 126

    def test_exit_status_passthrough(self, bin_dir: Path):
        script = make_executable(bin_dir, "zz-exit", "exit 7\n")
        assert CommandExecutor().run(str(script), ["zz-exit"], {}) == 7
