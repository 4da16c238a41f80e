"""Confirmation gate checked before every mutating directory call."""
from __future__ import annotations
import logging
import sys
from typing import Callable, Optional, TextIO

ConfirmCallback = Callable[[str, str], bool]

_logger = logging.getLogger(__name__)


class ConfirmationGate:
    """Decide whether a mutating step may run.

    In dry-run mode every mutating step is reported and suppressed. When a
    ``confirm`` callback is supplied (interactive runs) it is asked before
    each step; declining skips that step only.
    """

    def __init__(
        self,
        dry_run: bool = False,
        confirm: Optional[ConfirmCallback] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.dry_run = dry_run
        self.confirm = confirm
        self.logger = logger or _logger
        self.suppressed = 0

    def should_process(self, target: str, action: str) -> bool:
        """Return True if ``action`` on ``target`` may be performed."""
        if self.dry_run:
            self.suppressed += 1
            self.logger.info('What if: Performing the operation "%s" on target "%s".', action, target)
            return False
        if self.confirm is not None and not self.confirm(target, action):
            self.suppressed += 1
            self.logger.info('Declined: "%s" on target "%s".', action, target)
            return False
        return True

    def allows_row(self, target: str, action: str) -> bool:
        """Row-level check used by the batch processor.

        Dry runs still enter the operation so lookups are exercised; only an
        interactive decline keeps the row from running at all.
        """
        if self.dry_run:
            return True
        return self.should_process(target, action)


class ConsolePrompt:
    """Interactive yes/no/all prompt usable as a ``confirm`` callback."""

    CHOICES = "[Y] Yes  [A] Yes to All  [N] No  [L] No to All"

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._all: Optional[bool] = None

    def __call__(self, target: str, action: str) -> bool:
        if self._all is not None:
            return self._all
        while True:
            self.stdout.write(f'Confirm: Performing "{action}" on target "{target}".\n{self.CHOICES} (default is "Y"): ')
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                return False
            answer = line.strip().lower()
            if answer in ("", "y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer == "a":
                self._all = True
                return True
            if answer == "l":
                self._all = False
                return False
