"""
Wordlist splitter - partitions one wordlist into N contiguous shards
stored under a run-unique temporary directory.
"""
import os
import shutil
import tempfile

from shardfuzz.config.logging_config import splitter_logger
from shardfuzz.fuzzconfig import SHARD_COUNT, SHARD_DIR_PREFIX, make_run_stamp
from shardfuzz.models import WordlistShard
from shardfuzz.utils.error_handler import FatalInputError, ShardSplitError


def read_wordlist(wordlist_path):
    """Return the wordlist's lines without line terminators"""
    if not os.path.isfile(wordlist_path):
        raise FatalInputError(f"Wordlist '{wordlist_path}' not found",
                              {'wordlist': wordlist_path})
    try:
        with open(wordlist_path, 'r', encoding='utf-8', errors='surrogateescape', newline=None) as f:
            lines = f.read().split('\n')
        if lines and lines[-1] == '':
            lines.pop()
        return lines
    except OSError as e:
        raise FatalInputError(f"Wordlist '{wordlist_path}' is not readable: {e}",
                              {'wordlist': wordlist_path})


def partition(lines, shard_count):
    """
    Split ``lines`` into ``shard_count`` contiguous chunks whose sizes differ
    by at most one. Earlier chunks take the remainder.
    """
    if shard_count < 1:
        raise ShardSplitError(f"Shard count must be at least 1, got {shard_count}")

    base, remainder = divmod(len(lines), shard_count)
    chunks = []
    start = 0
    for i in range(shard_count):
        size = base + (1 if i < remainder else 0)
        chunks.append(lines[start:start + size])
        start += size
    return chunks


def split_wordlist(wordlist_path, shard_dir, shard_count=SHARD_COUNT):
    """Write ``shard_count`` shard files into ``shard_dir``, return them in index order"""
    lines = read_wordlist(wordlist_path)
    shards = []
    try:
        for index, chunk in enumerate(partition(lines, shard_count), start=1):
            path = os.path.join(shard_dir, f"shard_{index:02d}.txt")
            with open(path, 'w', encoding='utf-8', errors='surrogateescape') as f:
                if chunk:
                    f.write('\n'.join(chunk) + '\n')
            shards.append(WordlistShard(index=index, path=path, line_count=len(chunk)))
    except OSError as e:
        raise ShardSplitError(f"Could not write wordlist shards to {shard_dir}: {e}",
                              {'wordlist': wordlist_path})

    splitter_logger.info(
        f"Split {len(lines)} words into {shard_count} shards: "
        + ", ".join(str(s.line_count) for s in shards)
    )
    return shards


class ShardSet:
    """
    Context manager owning the run's shard directory.

    The directory name carries a creation timestamp plus a random suffix so
    concurrent or repeated runs never collide. It is removed on exit whether
    the run succeeded or not.
    """

    def __init__(self, wordlist_path, shard_count=SHARD_COUNT, base_dir=None):
        self.wordlist_path = wordlist_path
        self.shard_count = shard_count
        self.base_dir = base_dir
        self.directory = None
        self.shards = []

    def __enter__(self):
        try:
            self.directory = tempfile.mkdtemp(
                prefix=f"{SHARD_DIR_PREFIX}{make_run_stamp()}_", dir=self.base_dir
            )
        except OSError as e:
            raise ShardSplitError(f"Could not create shard directory: {e}")

        try:
            self.shards = split_wordlist(self.wordlist_path, self.directory, self.shard_count)
        except Exception:
            self.cleanup()
            raise
        splitter_logger.debug(f"Shard directory: {self.directory}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False

    def cleanup(self):
        if self.directory and os.path.isdir(self.directory):
            shutil.rmtree(self.directory, ignore_errors=True)
            splitter_logger.debug(f"Removed shard directory: {self.directory}")
        self.directory = None
