"""Bulk processing: apply one lifecycle operation to every row of a CSV file.

Rows are processed one at a time, in file order. A bad row is recorded in
the run summary and the loop moves on; only an unreadable input file, a
missing operation or a missing directory session stop the batch, and those
stop it before the first row.
"""
from __future__ import annotations
import csv
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from .directory import DirectoryClient
from .gate import ConfirmationGate
from .logger import verbose
from .mapper import OVERFLOW_KEY, RowMappingError, best_effort_identifier
from .models import Failed, OperationResult, RowOutcome, RowStatus, RunSummary, Skipped, Success

_logger = logging.getLogger(__name__)


def read_rows(path: str | Path) -> list[dict[str, Any]]:
    """Read a CSV file (header + rows, optional UTF-8 BOM) into dictionaries."""
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        return list(csv.DictReader(f))


class BatchProcessor:
    """Drive a lifecycle operation across the rows of a CSV file."""

    def __init__(
        self,
        directory: DirectoryClient,
        operation,
        gate: Optional[ConfirmationGate] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.directory = directory
        self.operation = operation
        self.gate = gate or getattr(operation, "gate", None) or ConfirmationGate()
        self.logger = logger or _logger

    @property
    def operation_name(self) -> str:
        return getattr(self.operation, "name", "Operation")

    def run(self, path: str | Path) -> RunSummary:
        """Process every row of ``path`` and return the run summary."""
        summary = RunSummary()
        self.logger.info("==== Bulk %s started: %s ====", self.operation_name, path)
        if self.gate.dry_run:
            self.logger.info("Dry run: no changes will be made")

        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            return self._abort(summary, f"Input file '{path}' does not exist or is not readable")
        if self.operation is None or not callable(self.operation) or getattr(self.operation, "mapper", None) is None:
            return self._abort(summary, "Lifecycle operation is not available")
        if not self.directory.is_authenticated():
            return self._abort(summary, "No authenticated directory session")

        try:
            rows = read_rows(path)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            return self._abort(summary, f"Cannot read input file '{path}': {e}")

        summary.total = len(rows)
        self.logger.info("Loaded %d row(s) from %s", summary.total, path)

        for ordinal, row in enumerate(rows, start=1):
            summary.processed += 1
            outcome = self._process_row(ordinal, row)
            summary.record(outcome)

        self._render(summary)
        return summary

    def _process_row(self, ordinal: int, row: Mapping[str, Any]) -> RowOutcome:
        raw = {
            key: "***" if key.lower() == "password" and value else value
            for key, value in row.items()
            if key is not None
        }
        if row.get(None):
            # cells past the last header column
            raw[OVERFLOW_KEY] = list(row[None])
        identifier = best_effort_identifier(row)
        verbose(self.logger, "Row %d data: %s", ordinal, raw)
        try:
            params = self.operation.mapper.map(row)
        except RowMappingError as e:
            self.logger.error("Row %d (%s): %s", ordinal, identifier or "no identifier", e)
            return RowOutcome(ordinal, identifier, RowStatus.FAILED, str(e), raw)

        identifier = params.identifier
        self.logger.info("Row %d: %s %s", ordinal, self.operation_name, identifier)
        if not self.gate.allows_row(identifier, f"{self.operation_name} user"):
            self.logger.warning("Row %d (%s): declined by operator", ordinal, identifier)
            return RowOutcome(ordinal, identifier, RowStatus.SKIPPED, "declined by operator", raw)

        try:
            result = self.operation(params)
        except Exception as e:
            self.logger.error("Row %d (%s): %s raised %s: %s",
                              ordinal, identifier, self.operation_name, type(e).__name__, e)
            return RowOutcome(ordinal, identifier, RowStatus.FAILED, str(e), raw)

        return self._classify(ordinal, identifier, result, raw)

    def _classify(self, ordinal: int, identifier: str, result: OperationResult, raw: dict) -> RowOutcome:
        if isinstance(result, Success):
            if result.record is not None and result.record.object_id:
                detail = "completed"
                if result.warnings:
                    detail = f"completed with {len(result.warnings)} warning(s)"
                self.logger.info("Row %d (%s): %s", ordinal, identifier, detail)
                return RowOutcome(ordinal, identifier, RowStatus.SUCCESS, detail, raw)
            detail = "operation returned a record without an identifier"
        elif isinstance(result, Skipped):
            detail = f"non-success status returned: {result.reason}"
            self.logger.warning("Row %d (%s): %s", ordinal, identifier, detail)
            return RowOutcome(ordinal, identifier, RowStatus.SKIPPED, detail, raw)
        elif isinstance(result, Failed):
            detail = result.message
        else:
            detail = f"unexpected result {result!r}"
        self.logger.error("Row %d (%s): failed: %s", ordinal, identifier, detail)
        return RowOutcome(ordinal, identifier, RowStatus.FAILED, detail, raw)

    def _abort(self, summary: RunSummary, message: str) -> RunSummary:
        summary.aborted = message
        self.logger.error("FATAL: %s; no rows processed", message)
        self._render(summary)
        return summary

    def _render(self, summary: RunSummary) -> None:
        self.logger.info("==== Bulk %s summary ====", self.operation_name)
        self.logger.info(
            "Total rows: %d | Processed: %d | Succeeded: %d | Failed: %d (skipped: %d)",
            summary.total, summary.processed, summary.succeeded, summary.failed, summary.skipped,
        )
        if not summary.failures:
            return
        self.logger.warning("Rows not completed:")
        for outcome in summary.failures:
            log = self.logger.warning if outcome.status is RowStatus.SKIPPED else self.logger.error
            log(
                "  Row %d [%s] %s: %s | data: %s",
                outcome.row, outcome.identifier or "?", outcome.status.value, outcome.detail, outcome.raw,
            )
