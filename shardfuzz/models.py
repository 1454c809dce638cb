"""Data models: shards, job results, reports, notification events."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class WordlistShard:
    index: int  # 1..N
    path: str
    line_count: int


@dataclass
class ScanJobResult:
    target: str
    shard_index: int
    exit_status: int
    report_path: str
    debug_log_path: str
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0

    @property
    def has_debug_log(self) -> bool:
        return _non_empty_file(self.debug_log_path)


@dataclass(frozen=True)
class AggregatedReport:
    target: str
    path: str
    results: tuple = ()
    shard_indexes: tuple = ()

    def to_dict(self) -> dict[str, Any]:
        return {"results": list(self.results)}


@dataclass
class NotificationEvent:
    files: list[str]
    caption: str
    filename: Optional[str] = None  # upload name for the first file


@dataclass
class TargetOutcome:
    target: str
    report: Optional[AggregatedReport] = None
    failed_shards: list[int] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.report is not None


@dataclass
class RunSummary:
    shard_dir: Optional[str] = None
    outcomes: list[TargetOutcome] = field(default_factory=list)

    @property
    def reports(self) -> list[AggregatedReport]:
        return [o.report for o in self.outcomes if o.report is not None]


def _non_empty_file(path: Optional[str]) -> bool:
    return bool(path) and os.path.isfile(path) and os.path.getsize(path) > 0
