"""Unit tests for the confirmation gate and console prompt."""
import io
import logging

from lifecycle.core.gate import ConfirmationGate, ConsolePrompt


def test_default_gate_allows_everything():
    gate = ConfirmationGate()
    assert gate.should_process("alice@contoso.com", "Create user")
    assert gate.allows_row("alice@contoso.com", "Onboard user")
    assert gate.suppressed == 0


def test_dry_run_suppresses_and_reports(caplog):
    gate = ConfirmationGate(dry_run=True)
    with caplog.at_level(logging.INFO, logger="lifecycle.core.gate"):
        assert not gate.should_process("alice@contoso.com", "Delete user")
    assert gate.suppressed == 1
    assert 'What if: Performing the operation "Delete user" on target "alice@contoso.com".' in caplog.text


def test_dry_run_still_enters_rows():
    gate = ConfirmationGate(dry_run=True)
    assert gate.allows_row("alice@contoso.com", "Onboard user")
    assert gate.suppressed == 0


def test_confirm_callback_decides():
    answers = iter([True, False])
    asked = []

    def confirm(target, action):
        asked.append((target, action))
        return next(answers)

    gate = ConfirmationGate(confirm=confirm)
    assert gate.should_process("a@contoso.com", "Disable account")
    assert not gate.should_process("a@contoso.com", "Delete user")
    assert asked == [("a@contoso.com", "Disable account"), ("a@contoso.com", "Delete user")]
    assert gate.suppressed == 1


def test_dry_run_never_prompts():
    gate = ConfirmationGate(dry_run=True, confirm=lambda target, action: True)
    assert not gate.should_process("a@contoso.com", "Create user")


class TestConsolePrompt:
    def _prompt(self, text):
        return ConsolePrompt(stdin=io.StringIO(text), stdout=io.StringIO())

    def test_yes_and_no(self):
        prompt = self._prompt("y\nn\n")
        assert prompt("a", "x") is True
        assert prompt("a", "x") is False

    def test_empty_answer_defaults_to_yes(self):
        assert self._prompt("\n")("a", "x") is True

    def test_yes_to_all_stops_asking(self):
        prompt = self._prompt("a\n")
        assert prompt("a", "x") is True
        assert prompt("b", "y") is True

    def test_no_to_all_stops_asking(self):
        prompt = self._prompt("l\n")
        assert prompt("a", "x") is False
        assert prompt("b", "y") is False

    def test_unrecognised_answer_asks_again(self):
        prompt = self._prompt("what\nn\n")
        assert prompt("a", "x") is False
        assert prompt.stdout.getvalue().count("Confirm:") == 2

    def test_eof_declines(self):
        assert self._prompt("")("a", "x") is False
