#!/usr/bin/env python3
"""
OOM monitor - reports kernel OOM-killer events found in the journal.

Each event line is hashed and remembered so repeated runs (e.g. from cron)
notify every kill exactly once.
"""
import argparse
import hashlib
import os
import re
import socket
import subprocess
import sys
import tempfile
import time
from datetime import datetime

from shardfuzz.config.logging_config import monitor_logger
from shardfuzz.fuzzconfig import Credentials
from shardfuzz.integrations.notifier import build_notifier
from shardfuzz.models import NotificationEvent

OOM_MARKER = "Out of memory: Killed process"
PROCESS_RE = re.compile(r'Killed process \d+ \((.*?)\).*?anon-rss:\d+kB')
DEFAULT_SINCE = "1970-01-01 00:00:00"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_STATE_DIR = tempfile.gettempdir()


def read_journal(since):
    """Kernel journal lines mentioning OOM since ``since``"""
    cmd = ["journalctl", "--since", since, "-t", "kernel", "-g", "Out of memory", "--no-pager"]
    result = subprocess.run(cmd, capture_output=True, text=True, encoding='utf-8', errors='replace')
    # journalctl exits 1 when the grep matched nothing
    if result.returncode not in (0, 1):
        monitor_logger.error(f"journalctl failed (code: {result.returncode}): {result.stderr.strip()[:500]}")
    return result.stdout.splitlines()


def event_hash(line):
    return hashlib.sha256(line.encode('utf-8')).hexdigest()


def parse_event(line):
    """Return (timestamp, process_info) for a journal line"""
    timestamp = " ".join(line.split()[:3])
    match = PROCESS_RE.search(line)
    process_info = match.group(0) if match else "Details not easily parsed from log line."
    return timestamp, process_info


class OomMonitor:

    def __init__(self, notifier, state_dir=DEFAULT_STATE_DIR, journal_reader=read_journal,
                 hostname=None, location=None):
        self.notifier = notifier
        self.journal_reader = journal_reader
        self.hostname = hostname or socket.gethostname()
        self.location = location
        os.makedirs(state_dir, exist_ok=True)
        self.timestamp_file = os.path.join(state_dir, "oom_monitor_last_timestamp.txt")
        self.sent_file = os.path.join(state_dir, "oom_notification_sent_flag.txt")

    def last_timestamp(self):
        try:
            with open(self.timestamp_file, 'r', encoding='utf-8') as f:
                return f.read().strip() or DEFAULT_SINCE
        except FileNotFoundError:
            return DEFAULT_SINCE

    def save_timestamp(self, value=None):
        value = value or datetime.now().strftime(TIMESTAMP_FORMAT)
        with open(self.timestamp_file, 'w', encoding='utf-8') as f:
            f.write(value + "\n")

    def sent_hashes(self):
        try:
            with open(self.sent_file, 'r', encoding='utf-8') as f:
                return {line.strip() for line in f if line.strip()}
        except FileNotFoundError:
            return set()

    def mark_sent(self, digest):
        with open(self.sent_file, 'a', encoding='utf-8') as f:
            f.write(digest + "\n")

    def write_details(self, line, timestamp, process_info):
        fd, path = tempfile.mkstemp(prefix='oom_event_', suffix='.txt')
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write("OOM Killer Event Detected!\n")
            f.write(f"Timestamp: {timestamp}\n")
            f.write(f"Message: {line}\n")
            f.write(f"Process Details: {process_info}\n")
            f.write(f"Monitoring time: {time.strftime('%Y-%m-%d %H:%M:%S %Z')}\n")
            if self.location:
                f.write(f"Location: {self.location}\n")
        return path

    def notify(self, line):
        timestamp, process_info = parse_event(line)
        monitor_logger.info(f"Sending OOM notification: {line}")
        details = self.write_details(line, timestamp, process_info)
        try:
            return self.notifier.send(NotificationEvent(
                files=[details],
                caption=f"Process Killed by OOM Killer on {self.hostname}",
                filename=f"OOM_Killer_Alert_{datetime.now().strftime('%Y%m%d%H%M%S')}.txt",
            ))
        finally:
            os.remove(details)

    def process_lines(self, lines):
        """Notify every new OOM-kill line. Returns the number of events handled."""
        seen = self.sent_hashes()
        handled = 0
        for line in lines:
            if OOM_MARKER not in line:
                continue
            digest = event_hash(line)
            if digest in seen:
                monitor_logger.debug(f"Skipping already notified OOM event: {line}")
                continue
            monitor_logger.info(f"Found OOM event: {line}")
            self.notify(line)
            # Marked even if delivery failed; notifications are fire-and-forget
            self.mark_sent(digest)
            seen.add(digest)
            handled += 1
        return handled

    def run(self):
        since = self.last_timestamp()
        monitor_logger.info(f"OOM Monitor starting (since {since})")
        started = datetime.now().strftime(TIMESTAMP_FORMAT)
        handled = self.process_lines(self.journal_reader(since))
        self.save_timestamp(started)
        monitor_logger.info(f"OOM Monitor finished, {handled} new event(s). Last read timestamp updated.")
        return handled


def main(argv=None):
    env = Credentials.from_env()
    parser = argparse.ArgumentParser(description='Report kernel OOM-killer events to chat')
    parser.add_argument('--webhook', default=env.webhook_url, help='Webhook URL')
    parser.add_argument('--bot-token', default=env.bot_token, help='Telegram bot token')
    parser.add_argument('--chat-id', default=env.chat_id, help='Telegram chat id')
    parser.add_argument('--state-dir', default=DEFAULT_STATE_DIR, help='Where timestamps and sent hashes are kept')
    parser.add_argument('--location', help='Free-text location added to reports')
    args = parser.parse_args(argv)

    credentials = Credentials(webhook_url=args.webhook, bot_token=args.bot_token, chat_id=args.chat_id)
    if not credentials.configured:
        monitor_logger.error("Error: Webhook URL is required.")
        return 1

    monitor = OomMonitor(build_notifier(credentials), state_dir=args.state_dir, location=args.location)
    try:
        monitor.run()
    except FileNotFoundError:
        monitor_logger.error("journalctl not found. The OOM monitor needs systemd-journald.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
