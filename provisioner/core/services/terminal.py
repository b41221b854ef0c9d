"""
Terminal prompt — yes/no questions on the controlling terminal.

The answer is read from the terminal device itself, never from the
command's stdin, which may be a pipe unrelated to the question. There
is no timeout: only an explicit yes counts as consent.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_TTY = "/dev/tty"

_YES = frozenset({"y", "yes"})


class TerminalPrompt:
    """Asks confirmation questions on a terminal device."""

    def __init__(self, device: str = DEFAULT_TTY):
        self.device = device

    def confirm(self, question: str) -> bool | None:
        """Ask a yes/no question.

        Returns:
            True for an explicit yes, False for anything else (including
            an empty answer or EOF), None when the terminal cannot be
            opened.
        """
        try:
            tty = open(self.device, "r+", encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Cannot open %s: %s", self.device, e)
            return None

        with tty:
            tty.write(question)
            tty.flush()
            answer = tty.readline()
            if not answer.endswith("\n"):
                tty.write("\n")
                tty.flush()
        return answer.strip().lower() in _YES
