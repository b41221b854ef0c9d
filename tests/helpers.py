"""
Test doubles and helpers shared across test modules.
"""

from __future__ import annotations

from pathlib import Path


def make_executable(directory: Path, name: str, body: str = "exit 0\n") -> Path:
    """Create an executable shell script."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}")
    path.chmod(0o755)
    return path


class FakePrompt:
    """Confirmation prompt with a scripted answer."""

    def __init__(self, answer: bool | None):
        self.answer = answer
        self.questions: list[str] = []

    def confirm(self, question: str) -> bool | None:
        self.questions.append(question)
        return self.answer


class RecordingExecutor:
    """Executor that records what it would have run."""

    def __init__(self, exit_code: int = 0):
        self.exit_code = exit_code
        self.calls: list[tuple[str, list[str], dict[str, str]]] = []

    def run(self, path: str, argv: list[str], env) -> int:
        self.calls.append((path, list(argv), dict(env)))
        return self.exit_code
