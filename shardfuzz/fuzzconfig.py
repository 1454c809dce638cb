import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

# .env in the working directory overrides nothing already exported
load_dotenv()

# Engine
FFUF_PATH = os.environ.get("SHARDFUZZ_FFUF_PATH", "ffuf")
FUZZ_KEYWORD = "FUZZ"
ENGINE_TIMEOUT = 3600  # 1 hour per shard
DEFAULT_MATCH_CODES = "200,301,302,307,401,403,405,500"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
)

# Run layout
SHARD_COUNT = 4
OUTPUT_DIR = os.environ.get("SHARDFUZZ_OUTPUT_DIR", "ffuf_results")
ERROR_LOG_NAME = "ffuf_error.log"
SHARD_DIR_PREFIX = "wordlist_shards_"

# Notifications
WEBHOOK_URL = os.environ.get("SHARDFUZZ_WEBHOOK_URL", "")
BOT_TOKEN = os.environ.get("SHARDFUZZ_BOT_TOKEN", "")
CHAT_ID = os.environ.get("SHARDFUZZ_CHAT_ID", "")
NOTIFY_TIMEOUT = 30

# Logs
LOG_DIR = os.environ.get("SHARDFUZZ_LOG_DIR", os.path.expanduser(os.path.join("~", ".shardfuzz", "logs")))

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9._-]')


def make_run_stamp():
    """Timestamp used in run-scoped directory and attachment names"""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def sanitize_target(target):
    """Turn a target URL into a filesystem-safe name"""
    safe = _UNSAFE_CHARS.sub('_', target)
    return safe.strip('-')


def get_report_path(output_dir, target):
    """Combined report path for a target"""
    return os.path.join(output_dir, f"{sanitize_target(target)}.json")


@dataclass
class FfufOptions:
    """Knobs passed through to the ffuf command line"""
    binary: str = FFUF_PATH
    match_codes: Optional[str] = DEFAULT_MATCH_CODES
    user_agent: str = DEFAULT_USER_AGENT
    auto_calibrate: bool = False
    stop_on_spurious: bool = False
    verbose: bool = False
    timeout: int = ENGINE_TIMEOUT
    extra_args: list = field(default_factory=list)


@dataclass
class Credentials:
    """Destination for notifications. Either a webhook or a bot token + chat id."""
    webhook_url: str = ""
    bot_token: str = ""
    chat_id: str = ""

    @classmethod
    def from_env(cls):
        return cls(webhook_url=WEBHOOK_URL, bot_token=BOT_TOKEN, chat_id=CHAT_ID)

    @property
    def configured(self):
        return bool(self.webhook_url) or bool(self.bot_token and self.chat_id)


@dataclass
class RunContext:
    """Everything one orchestrator run needs, passed explicitly to each component"""
    url_file: str
    wordlist: str
    output_dir: str = OUTPUT_DIR
    session: str = ""
    error_log: Optional[str] = None
    shard_count: int = SHARD_COUNT
    jobs: int = 1
    credentials: Credentials = field(default_factory=Credentials)
    ffuf: FfufOptions = field(default_factory=FfufOptions)

    def __post_init__(self):
        if not self.error_log:
            self.error_log = os.path.join(self.output_dir, ERROR_LOG_NAME)


__all__ = [
    'FFUF_PATH',
    'DEFAULT_MATCH_CODES',
    'DEFAULT_USER_AGENT',
    'SHARD_COUNT',
    'OUTPUT_DIR',
    'ERROR_LOG_NAME',
    'LOG_DIR',
    'FfufOptions',
    'Credentials',
    'RunContext',
    'sanitize_target',
    'get_report_path',
    'make_run_stamp',
]
