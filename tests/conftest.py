"""Shared test fixtures for ShardFuzz tests."""

from __future__ import annotations

import json
import os
import tempfile

# Keep module log files out of the source tree; must happen before shardfuzz is imported
os.environ.setdefault("SHARDFUZZ_LOG_DIR", tempfile.mkdtemp(prefix="shardfuzz_logs_"))

import pytest

from shardfuzz.fuzzconfig import RunContext
from shardfuzz.integrations.ffuf_adapter import EngineRunner, shard_output_paths
from shardfuzz.integrations.notifier import Notifier


class FakeRunner(EngineRunner):
    """Engine runner that writes canned ffuf-style reports.

    ``plan`` maps (target, shard_index) to one of:
    "ok" (default), "fail", "empty", "garbage", "no-results-key", "raise".
    Successful reports hold one record per word of the shard.
    """

    def __init__(self, plan=None, delays=None, available=True):
        self.plan = plan or {}
        self.delays = delays or {}
        self.available = available
        self.calls = []

    def check_available(self):
        if not self.available:
            from shardfuzz.utils.error_handler import FatalInputError
            raise FatalInputError("ffuf binary not found: fake")
        return True

    def run(self, target, shard, work_dir):
        import time

        from shardfuzz.models import ScanJobResult

        self.calls.append((target, shard.index))
        delay = self.delays.get(shard.index)
        if delay:
            time.sleep(delay)

        report, debug_log = shard_output_paths(target, shard, work_dir)
        behaviour = self.plan.get((target, shard.index), "ok")
        exit_status = 0

        if behaviour == "raise":
            raise RuntimeError("engine exploded")
        if behaviour == "fail":
            with open(debug_log, "w") as f:
                f.write("debug: connection refused\n")
            exit_status = 1
        elif behaviour == "empty":
            open(report, "w").close()
        elif behaviour == "garbage":
            with open(report, "w") as f:
                f.write("this is not json")
        elif behaviour == "no-results-key":
            with open(report, "w") as f:
                json.dump({"commandline": "ffuf"}, f)
        else:
            with open(shard.path) as f:
                words = f.read().splitlines()
            with open(report, "w") as f:
                json.dump({"results": [make_record(target, w) for w in words]}, f)

        return ScanJobResult(
            target=target,
            shard_index=shard.index,
            exit_status=exit_status,
            report_path=report,
            debug_log_path=debug_log,
            error="exit status 1" if exit_status else None,
        )


class RecordingNotifier(Notifier):
    """Notifier that records what would have been sent."""

    name = "recording"

    def __init__(self, succeed=True):
        super().__init__()
        self.succeed = succeed
        self.events = []

    def send(self, event):
        contents = []
        for path in event.files:
            with open(path, "r", encoding="utf-8") as f:
                contents.append(f.read())
        self.events.append({
            "caption": event.caption,
            "filename": event.filename,
            "files": [os.path.basename(p) for p in event.files],
            "contents": contents,
        })
        return self.succeed

    def captions(self):
        return [e["caption"] for e in self.events]


def make_record(target, word):
    return {
        "input": {"FUZZ": word},
        "url": f"{target}/{word}",
        "status": 200,
        "length": len(word),
    }


def fuzz_words(report):
    return [r["input"]["FUZZ"] for r in report["results"]]


@pytest.fixture
def workspace(tmp_path):
    """Target list, 8-line wordlist and an output dir."""
    urls = tmp_path / "urls.txt"
    urls.write_text("http://a.test\nhttp://b.test\n")
    wordlist = tmp_path / "words.txt"
    wordlist.write_text("\n".join(f"word{i}" for i in range(1, 9)) + "\n")
    return {
        "dir": tmp_path,
        "urls": urls,
        "wordlist": wordlist,
        "output": tmp_path / "out",
    }


@pytest.fixture
def context(workspace):
    return RunContext(
        url_file=str(workspace["urls"]),
        wordlist=str(workspace["wordlist"]),
        output_dir=str(workspace["output"]),
        session="unit",
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()
