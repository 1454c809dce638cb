#!/usr/bin/env python3
"""
Notification dispatcher for ShardFuzz
Delivers files plus a caption to a Discord-style webhook or a Telegram bot.
Delivery is fire-and-forget: failures are logged and reported as False,
never raised and never retried.
"""

import argparse
import json
import os
import sys

import requests

from shardfuzz.config.logging_config import notifier_logger
from shardfuzz.fuzzconfig import NOTIFY_TIMEOUT, Credentials
from shardfuzz.models import NotificationEvent
from shardfuzz.utils.error_handler import NotificationTransportError

TELEGRAM_API = "https://api.telegram.org"
DEFAULT_MESSAGE = "File attached:"


class Notifier:
    """Base notifier. Subclasses implement ``_deliver``."""

    name = "notifier"
    max_caption = 2000
    max_file_size = 25 * 1024 * 1024

    def __init__(self, timeout=NOTIFY_TIMEOUT):
        self.timeout = timeout

    def send(self, event):
        """Send a NotificationEvent. Returns True when the service accepted it."""
        attachments = self._collect_attachments(event)
        if not attachments:
            notifier_logger.error(f"Nothing to send for notification: {event.caption}")
            return False

        caption = truncate_caption(event.caption, self.max_caption)
        try:
            self._deliver(attachments, caption)
        except (NotificationTransportError, requests.RequestException, OSError) as e:
            notifier_logger.error(f"{self.name} notification failed: {e}")
            return False

        notifier_logger.info(f"File sent successfully to {self.name}")
        return True

    def send_files(self, files, caption, filename=None):
        return self.send(NotificationEvent(files=list(files), caption=caption, filename=filename))

    def _collect_attachments(self, event):
        """Return [(upload_name, path)] for files that exist and fit the size limit"""
        attachments = []
        for i, path in enumerate(event.files):
            if not path or not os.path.isfile(path):
                notifier_logger.warning(f"Attachment not found at {path}")
                continue
            if os.path.getsize(path) > self.max_file_size:
                notifier_logger.warning(f"Attachment too large for {self.name}, skipped: {path}")
                continue
            upload_name = event.filename if (i == 0 and event.filename) else os.path.basename(path)
            attachments.append((upload_name, path))
        return attachments

    def _deliver(self, attachments, caption):
        raise NotImplementedError

    def _check_response(self, response):
        if response.status_code >= 300:
            raise NotificationTransportError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                {'service': self.name}
            )


class NullNotifier(Notifier):
    """Used when no credentials are configured"""

    name = "none"

    def send(self, event):
        notifier_logger.warning(f"No notification credentials configured, skipping notification: {event.caption}")
        return False


class DiscordWebhookNotifier(Notifier):
    """multipart post with ``payload_json`` and ``file``/``files[i]`` fields"""

    name = "Discord"
    max_caption = 2000
    max_file_size = 25 * 1024 * 1024
    max_files_per_message = 10

    def __init__(self, webhook_url, timeout=NOTIFY_TIMEOUT):
        super().__init__(timeout)
        self.webhook_url = webhook_url

    def _deliver(self, attachments, caption):
        for start in range(0, len(attachments), self.max_files_per_message):
            batch = attachments[start:start + self.max_files_per_message]
            opened = []
            try:
                files = {}
                for i, (upload_name, path) in enumerate(batch):
                    f = open(path, 'rb')
                    opened.append(f)
                    field = "file" if len(batch) == 1 else f"files[{i}]"
                    files[field] = (upload_name, f)

                response = requests.post(
                    self.webhook_url,
                    data={"payload_json": json.dumps({"content": caption})},
                    files=files,
                    timeout=self.timeout,
                )
            finally:
                for f in opened:
                    f.close()
            self._check_response(response)


class TelegramBotNotifier(Notifier):
    """One ``sendDocument`` call per file, caption on the first"""

    name = "Telegram"
    max_caption = 1024
    max_file_size = 50 * 1024 * 1024

    def __init__(self, bot_token, chat_id, timeout=NOTIFY_TIMEOUT):
        super().__init__(timeout)
        self.bot_token = bot_token
        self.chat_id = chat_id

    @property
    def endpoint(self):
        return f"{TELEGRAM_API}/bot{self.bot_token}/sendDocument"

    def _deliver(self, attachments, caption):
        for i, (upload_name, path) in enumerate(attachments):
            data = {"chat_id": self.chat_id}
            if i == 0:
                data["caption"] = caption
            with open(path, 'rb') as f:
                response = requests.post(
                    self.endpoint,
                    data=data,
                    files={"document": (upload_name, f)},
                    timeout=self.timeout,
                )
            self._check_response(response)


def truncate_caption(caption, limit):
    if len(caption) <= limit:
        return caption
    return caption[:limit - 3] + "..."


def build_notifier(credentials, timeout=NOTIFY_TIMEOUT):
    """Pick the backend from whichever credential set is supplied. Webhook wins if both are."""
    if credentials.webhook_url:
        return DiscordWebhookNotifier(credentials.webhook_url, timeout=timeout)
    if credentials.bot_token and credentials.chat_id:
        return TelegramBotNotifier(credentials.bot_token, credentials.chat_id, timeout=timeout)
    if credentials.bot_token or credentials.chat_id:
        notifier_logger.warning("Telegram needs both a bot token and a chat id")
    return NullNotifier()


def main(argv=None):
    """Send a single file, like the standalone sender script"""
    env = Credentials.from_env()
    parser = argparse.ArgumentParser(description='Send a file to a Discord webhook or Telegram bot')
    parser.add_argument('-f', '--file', required=True, help='File to send')
    parser.add_argument('-n', '--name', help='Attachment name shown in chat (default: file name)')
    parser.add_argument('-m', '--message', default=DEFAULT_MESSAGE, help='Caption')
    parser.add_argument('--webhook', default=env.webhook_url, help='Webhook URL')
    parser.add_argument('--bot-token', default=env.bot_token, help='Telegram bot token')
    parser.add_argument('--chat-id', default=env.chat_id, help='Telegram chat id')

    args = parser.parse_args(argv)

    if not os.path.isfile(args.file):
        notifier_logger.error(f"File not found at {args.file}")
        return 1

    credentials = Credentials(webhook_url=args.webhook, bot_token=args.bot_token, chat_id=args.chat_id)
    if not credentials.configured:
        notifier_logger.error("No destination set. Use --webhook or --bot-token with --chat-id.")
        return 1

    notifier = build_notifier(credentials)
    return 0 if notifier.send_files([args.file], args.message, filename=args.name) else 1


if __name__ == "__main__":
    sys.exit(main())
