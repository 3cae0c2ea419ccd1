"""Tests for the CSV query metrics."""
from __future__ import annotations

import csv
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from evenlink.errors import QueryFailed
from evenlink.metrics import DEFAULT_FIELDS, QueryMetrics


def _rows(path: Path):
    with path.open("r", encoding="utf-8", newline="") as handle:
        return list(csv.DictReader(handle))


class QueryMetricsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name, "nested", "metrics.csv")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_header_written_once(self) -> None:
        QueryMetrics(self.path)
        QueryMetrics(self.path).log("paired_query", status="ok")

        with self.path.open("r", encoding="utf-8") as handle:
            lines = handle.read().splitlines()
        self.assertEqual(lines[0], ",".join(DEFAULT_FIELDS))
        self.assertEqual(len(lines), 2)

    def test_log_uses_clock_and_static_extra(self) -> None:
        metrics = QueryMetrics(
            self.path,
            static_extra={"host": "bench"},
            clock=lambda: datetime(2026, 1, 2, 3, 4, 5),
        )
        metrics.log("paired_query", status="ok", returned=3, extra={"prefix": "Even G1"})

        row = _rows(self.path)[0]
        self.assertEqual(row["timestamp"], "2026-01-02T03:04:05.000+00:00")
        self.assertEqual(row["returned"], "3")
        self.assertEqual(json.loads(row["extra"]), {"host": "bench", "prefix": "Even G1"})

    def test_timer_logs_failures_and_reraises(self) -> None:
        metrics = QueryMetrics(self.path)

        with self.assertRaises(QueryFailed):
            with metrics.timer("paired_query", prefix="Even G1"):
                raise QueryFailed("bus closed")

        row = _rows(self.path)[0]
        self.assertEqual(row["status"], "E_BLUETOOTH_ERROR")
        self.assertEqual(row["message"], "bus closed")
        self.assertNotEqual(row["duration"], "")
        self.assertEqual(json.loads(row["extra"])["exception"], "QueryFailed")

    def test_rejects_empty_field_list(self) -> None:
        with self.assertRaises(ValueError):
            QueryMetrics(self.path, fields=())


if __name__ == "__main__":
    unittest.main()
