"""Tests for webhook/bot notification backends."""

from __future__ import annotations

import json

import pytest
import requests

from shardfuzz.fuzzconfig import Credentials
from shardfuzz.integrations import notifier as notifier_module
from shardfuzz.integrations.notifier import (
    DiscordWebhookNotifier, NullNotifier, TelegramBotNotifier, build_notifier, main, truncate_caption
)
from shardfuzz.models import NotificationEvent

WEBHOOK = "https://discord.com/api/webhooks/123/secret-token"


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class PostRecorder:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def __call__(self, url, data=None, files=None, timeout=None):
        if self.exc:
            raise self.exc
        # Read uploads now; the notifier closes them after posting
        uploads = {field: (name, fh.read().decode()) for field, (name, fh) in (files or {}).items()}
        self.calls.append({"url": url, "data": data, "files": uploads, "timeout": timeout})
        return FakeResponse(self.status_code, "error body")


@pytest.fixture
def post(monkeypatch):
    recorder = PostRecorder()
    monkeypatch.setattr(notifier_module.requests, "post", recorder)
    return recorder


@pytest.fixture
def report(tmp_path):
    path = tmp_path / "report.json"
    path.write_text('{"results": []}')
    return path


def test_backend_selected_by_credentials():
    assert isinstance(build_notifier(Credentials(webhook_url=WEBHOOK)), DiscordWebhookNotifier)
    assert isinstance(build_notifier(Credentials(bot_token="1:abc", chat_id="42")), TelegramBotNotifier)
    assert isinstance(build_notifier(Credentials(bot_token="1:abc")), NullNotifier)
    assert isinstance(build_notifier(Credentials()), NullNotifier)


def test_discord_single_file(post, report):
    sent = DiscordWebhookNotifier(WEBHOOK).send_files([str(report)], "Fuzzing Completed", filename="a.json")

    assert sent is True
    call = post.calls[0]
    assert call["url"] == WEBHOOK
    assert json.loads(call["data"]["payload_json"]) == {"content": "Fuzzing Completed"}
    assert call["files"] == {"file": ("a.json", '{"results": []}')}


def test_discord_multiple_files_use_indexed_fields(post, report, tmp_path):
    log = tmp_path / "ffuf_error.log"
    log.write_text("ERROR: boom")

    DiscordWebhookNotifier(WEBHOOK).send_files([str(report), str(log)], "err", filename="FFuF_Error.txt")

    files = post.calls[0]["files"]
    assert files["files[0]"] == ("FFuF_Error.txt", '{"results": []}')
    assert files["files[1]"] == ("ffuf_error.log", "ERROR: boom")


def test_telegram_sends_one_document_per_file(post, report, tmp_path):
    log = tmp_path / "debug.log"
    log.write_text("dbg")

    sent = TelegramBotNotifier("1:abc", "42").send_files([str(report), str(log)], "caption")

    assert sent is True
    assert len(post.calls) == 2
    first, second = post.calls
    assert first["url"] == "https://api.telegram.org/bot1:abc/sendDocument"
    assert first["data"] == {"chat_id": "42", "caption": "caption"}
    assert second["data"] == {"chat_id": "42"}
    assert second["files"]["document"] == ("debug.log", "dbg")


def test_http_error_is_reported_as_false(monkeypatch, report):
    monkeypatch.setattr(notifier_module.requests, "post", PostRecorder(status_code=500))
    assert DiscordWebhookNotifier(WEBHOOK).send_files([str(report)], "x") is False


def test_transport_exception_is_swallowed(monkeypatch, report):
    recorder = PostRecorder(exc=requests.ConnectionError("no route"))
    monkeypatch.setattr(notifier_module.requests, "post", recorder)
    assert TelegramBotNotifier("1:abc", "42").send_files([str(report)], "x") is False


def test_missing_attachments_are_not_posted(post, tmp_path):
    assert DiscordWebhookNotifier(WEBHOOK).send_files([str(tmp_path / "gone.json")], "x") is False
    assert post.calls == []


def test_oversized_attachment_is_skipped(post, report, tmp_path):
    big = tmp_path / "big.bin"
    big.write_bytes(b"x" * 64)
    notifier = DiscordWebhookNotifier(WEBHOOK)
    notifier.max_file_size = 32

    notifier.send_files([str(big), str(report)], "x")

    assert list(post.calls[0]["files"]) == ["file"]
    assert post.calls[0]["files"]["file"][0] == "report.json"


def test_caption_truncated_to_service_limit(post, report):
    TelegramBotNotifier("1:abc", "42").send_files([str(report)], "y" * 5000)
    caption = post.calls[0]["data"]["caption"]
    assert len(caption) == 1024
    assert caption.endswith("...")


def test_truncate_caption_leaves_short_text():
    assert truncate_caption("short", 10) == "short"


def test_null_notifier_does_nothing(post, report):
    assert NullNotifier().send(NotificationEvent(files=[str(report)], caption="x")) is False
    assert post.calls == []


def test_cli_sends_file(post, report):
    assert main(["-f", str(report), "-n", "recon.txt", "-m", "hello", "--webhook", WEBHOOK]) == 0
    assert post.calls[0]["files"]["file"][0] == "recon.txt"


def test_cli_missing_file(post, tmp_path):
    assert main(["-f", str(tmp_path / "nope.txt"), "--webhook", WEBHOOK]) == 1
    assert post.calls == []


def test_cli_requires_destination(post, report):
    assert main(["-f", str(report), "--webhook", "", "--bot-token", "", "--chat-id", ""]) == 1
