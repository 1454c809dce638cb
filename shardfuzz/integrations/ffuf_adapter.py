#!/usr/bin/env python3
"""
ffuf adapter for ShardFuzz
Runs one ffuf job per (target, wordlist shard) and reports its exit status.
The orchestrator only depends on the ``EngineRunner`` interface, so any
object with ``check_available()`` and ``run()`` can stand in for ffuf.
"""

import os
import shutil
import subprocess
import sys

from shardfuzz.config.logging_config import runner_logger
from shardfuzz.fuzzconfig import FUZZ_KEYWORD, FfufOptions, sanitize_target
from shardfuzz.models import ScanJobResult
from shardfuzz.utils.decorators import log_execution, validate_target_url
from shardfuzz.utils.error_handler import FatalInputError

# Exit statuses for failures that happen before/around ffuf itself
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124
EXIT_LAUNCH_FAILED = 126


class EngineRunner:
    """Interface for a fuzz engine runner"""

    def check_available(self):
        """Raise FatalInputError if the engine cannot be run"""
        raise NotImplementedError

    def run(self, target, shard, work_dir):
        """Run one shard against one target, return a ScanJobResult"""
        raise NotImplementedError


def build_fuzz_url(target):
    """Append the fuzzing placeholder to the target path"""
    return f"{target.rstrip('/')}/{FUZZ_KEYWORD}"


def shard_output_paths(target, shard, work_dir):
    """Per-(target, shard) JSON report and debug log paths"""
    stem = f"{sanitize_target(target)}_shard{shard.index:02d}"
    return (
        os.path.join(work_dir, f"{stem}.json"),
        os.path.join(work_dir, f"{stem}_debug.log"),
    )


class FfufRunner(EngineRunner):
    """Default engine runner: shells out to the ffuf binary"""

    def __init__(self, options=None):
        self.options = options or FfufOptions()

    def check_available(self):
        binary = self.options.binary
        if os.path.sep in binary:
            found = os.path.isfile(binary) and os.access(binary, os.X_OK)
        else:
            found = shutil.which(binary) is not None
        if not found:
            raise FatalInputError(
                f"ffuf binary not found: {binary}. Please ensure it's installed and in the system PATH.",
                {'binary': binary}
            )
        return True

    def build_command(self, target, shard_path, output_file, debug_log):
        opts = self.options
        cmd = [
            opts.binary,
            "-u", build_fuzz_url(target),
            "-w", shard_path,
            "-o", output_file,
            "-of", "json",
            "-debug-log", debug_log,
            "-H", f"User-Agent: {opts.user_agent}",
            "-noninteractive",
        ]
        if opts.match_codes:
            cmd.extend(["-mc", opts.match_codes])
        if opts.auto_calibrate:
            cmd.append("-ac")
        if opts.stop_on_spurious:
            cmd.append("-sf")
        if opts.verbose:
            cmd.append("-v")
        cmd.extend(opts.extra_args)
        return cmd

    @log_execution(log_args=True, log_time=True)
    @validate_target_url
    def run(self, target, shard, work_dir):
        output_file, debug_log = shard_output_paths(target, shard, work_dir)
        # Stale files from an earlier attempt must not be mistaken for this run's output
        for path in (output_file, debug_log):
            if os.path.exists(path):
                os.remove(path)

        cmd = self.build_command(target, shard.path, output_file, debug_log)
        runner_logger.info(f"Running ffuf (shard {shard.index}): {' '.join(cmd)}")

        error = None
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=self.options.timeout,
                env={**os.environ, 'PYTHONIOENCODING': 'utf-8'}
            )
            exit_status = result.returncode
            if exit_status != 0:
                error = result.stderr.decode('utf-8', errors='ignore').strip()[:500] or "Unknown error"
        except subprocess.TimeoutExpired:
            exit_status = EXIT_TIMEOUT
            error = f"ffuf timed out after {self.options.timeout} seconds"
            # A killed run leaves a partial report behind
            if os.path.exists(output_file):
                os.remove(output_file)
        except FileNotFoundError:
            exit_status = EXIT_NOT_FOUND
            error = f"ffuf binary not found: {self.options.binary}"
        except OSError as e:
            exit_status = EXIT_LAUNCH_FAILED
            error = f"Unexpected error launching ffuf: {e}"

        if exit_status == 0:
            runner_logger.info(f"ffuf shard {shard.index} for {target} completed")
        else:
            runner_logger.warning(
                f"ffuf shard {shard.index} for {target} failed (Exit Code: {exit_status}): {error}"
            )

        return ScanJobResult(
            target=target,
            shard_index=shard.index,
            exit_status=exit_status,
            report_path=output_file,
            debug_log_path=debug_log,
            error=error,
        )


# --- Command-line execution (for direct testing) ---
if __name__ == "__main__":
    from shardfuzz.models import WordlistShard

    if len(sys.argv) < 3:
        print("Usage: python -m shardfuzz.integrations.ffuf_adapter <target> <wordlist> [work_dir]", file=sys.stderr)
        sys.exit(1)

    work_dir = sys.argv[3] if len(sys.argv) > 3 else os.getcwd()
    runner = FfufRunner()
    runner.check_available()
    job = runner.run(sys.argv[1], WordlistShard(index=1, path=sys.argv[2], line_count=0), work_dir)
    print(f"exit={job.exit_status} report={job.report_path}")
    sys.exit(0 if job.succeeded else 1)
