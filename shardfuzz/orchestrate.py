#!/usr/bin/env python3
"""
ShardFuzz Orchestrator - splits the wordlist, runs ffuf per (target, shard),
merges shard reports per target and pushes results/errors to chat.
"""
import argparse
import logging
import os
import shutil
import sys
import tempfile
from concurrent.futures import ThreadPoolExecutor

from shardfuzz import fuzzconfig
from shardfuzz.aggregator import merge_shard_reports
from shardfuzz.config.logging_config import (
    close_run_error_log, open_run_error_log, orchestrate_logger,
    set_console_level, setup_application_logging
)
from shardfuzz.fuzzconfig import (
    Credentials, FfufOptions, RunContext, get_report_path, make_run_stamp, sanitize_target
)
from shardfuzz.integrations.ffuf_adapter import FfufRunner
from shardfuzz.integrations.notifier import build_notifier
from shardfuzz.models import NotificationEvent, RunSummary, ScanJobResult, TargetOutcome
from shardfuzz.splitter import ShardSet
from shardfuzz.utils.console import Colors, progress, separator
from shardfuzz.utils.error_handler import (
    EngineInvocationError, FatalError, FatalInputError, MergeError, ValidationError,
    log_error_with_context, validate_url
)

EXIT_LAUNCH_ERROR = -1


def read_targets(url_file):
    """
    Read target URLs, one per line. Foreign line endings are normalised and
    blank lines dropped. The file itself is left untouched.
    """
    if not os.path.isfile(url_file):
        raise FatalInputError(f"URL file '{url_file}' not found", {'url_file': url_file})
    try:
        with open(url_file, 'rb') as f:
            raw = f.read()
    except OSError as e:
        raise FatalInputError(f"URL file '{url_file}' is not readable: {e}", {'url_file': url_file})

    text = raw.decode('utf-8-sig', errors='replace')
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return [line.strip() for line in text.split('\n') if line.strip()]


class ScanOrchestrator:
    """
    Drives one run: INIT -> SPLIT_WORDLIST -> per target (RUN_SHARDS ->
    AGGREGATE -> NOTIFY -> CLEANUP_TARGET_TEMP) -> CLEANUP_WORDLIST_SHARDS.

    ``runner`` and ``notifier`` default to ffuf and the notifier picked from
    the context's credentials.
    """

    def __init__(self, context, runner=None, notifier=None):
        self.context = context
        self.runner = runner or FfufRunner(context.ffuf)
        self.notifier = notifier or build_notifier(context.credentials)

    # --- INIT ---

    def validate_inputs(self):
        """Check inputs before anything else is written. Returns the target list."""
        ctx = self.context
        targets = read_targets(ctx.url_file)

        if not os.path.isfile(ctx.wordlist):
            raise FatalInputError(f"Wordlist '{ctx.wordlist}' not found", {'wordlist': ctx.wordlist})
        if not os.access(ctx.wordlist, os.R_OK):
            raise FatalInputError(f"Wordlist '{ctx.wordlist}' is not readable", {'wordlist': ctx.wordlist})

        self.runner.check_available()
        return targets

    def run(self):
        """Run every target. Raises FatalError subclasses on input/split failures."""
        ctx = self.context
        os.makedirs(ctx.output_dir, exist_ok=True)
        targets = self.validate_inputs()

        progress("Starting FFuF scan...")
        progress(f"URLs will be read from: '{ctx.url_file}'")
        progress(f"Wordlist being used: '{ctx.wordlist}'")
        progress(f"Results will be saved in: '{ctx.output_dir}/'")
        progress(f"Errors will be logged to: '{ctx.error_log}'")
        separator()

        summary = RunSummary()
        error_handler = open_run_error_log(ctx.error_log)
        try:
            with ShardSet(ctx.wordlist, ctx.shard_count) as shard_set:
                summary.shard_dir = shard_set.directory
                for target in targets:
                    summary.outcomes.append(self.scan_target(target, shard_set.shards))
        finally:
            close_run_error_log(error_handler)

        succeeded = sum(1 for o in summary.outcomes if o.succeeded)
        progress("")
        progress(f"All FFuF scans completed: {succeeded}/{len(targets)} targets produced a report",
                 color=Colors.GREEN)
        orchestrate_logger.info(f"Run finished: {succeeded}/{len(targets)} targets with results")
        return summary

    # --- per target ---

    def scan_target(self, target, shards):
        outcome = TargetOutcome(target=target)
        progress("")
        progress(f"Scanning: {target}")
        separator()

        try:
            validate_url(target)
        except ValidationError as e:
            outcome.error = str(e)
            self.report_error(f"Invalid target ({e})", target)
            return outcome

        work_dir = tempfile.mkdtemp(prefix=f".{sanitize_target(target)}_", dir=self.context.output_dir)
        try:
            jobs = self.run_shards(target, shards, work_dir)

            for job in jobs:
                if not job.succeeded:
                    outcome.failed_shards.append(job.shard_index)
                    detail = f": {job.error}" if job.error else ""
                    log_error_with_context(
                        EngineInvocationError(f"ffuf failed on shard {job.shard_index}{detail}",
                                              exit_status=job.exit_status),
                        {'target': target, 'shard': job.shard_index, 'exit_status': job.exit_status},
                    )
                    self.report_error(
                        f"ffuf failed on shard {job.shard_index}{detail}",
                        target,
                        exit_code=job.exit_status,
                        extra_files=[job.debug_log_path] if job.has_debug_log else (),
                    )

            report_path = get_report_path(self.context.output_dir, target)
            try:
                outcome.report = merge_shard_reports(target, jobs, report_path)
            except MergeError as e:
                outcome.error = str(e)
                log_error_with_context(e, {'session': self.context.session})
                self.report_error(f"Merging shard reports failed ({e})", target)
                return outcome

            if outcome.report is None:
                progress(f"No successful results for {target}", color=Colors.YELLOW)
            else:
                progress(f"FFuF scan for {target} completed successfully. "
                         f"Results saved to {outcome.report.path}", color=Colors.GREEN)
                self.notify_success(outcome.report)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
            separator()

        return outcome

    def run_shards(self, target, shards, work_dir):
        """Run all non-empty shards. Results come back in ascending shard index."""
        runnable = [s for s in sorted(shards, key=lambda s: s.index) if s.line_count > 0]
        skipped = len(shards) - len(runnable)
        if skipped:
            orchestrate_logger.debug(f"Skipping {skipped} empty shard(s) for {target}")

        if self.context.jobs > 1 and len(runnable) > 1:
            with ThreadPoolExecutor(max_workers=self.context.jobs) as executor:
                return list(executor.map(lambda s: self._run_one(target, s, work_dir), runnable))
        return [self._run_one(target, shard, work_dir) for shard in runnable]

    def _run_one(self, target, shard, work_dir):
        progress(f"  shard {shard.index}/{self.context.shard_count} ({shard.line_count} words)")
        try:
            return self.runner.run(target, shard, work_dir)
        except Exception as e:
            log_error_with_context(e, {'target': target, 'shard': shard.index}, exc_info=True)
            return ScanJobResult(
                target=target,
                shard_index=shard.index,
                exit_status=EXIT_LAUNCH_ERROR,
                report_path="",
                debug_log_path="",
                error=str(e),
            )

    # --- NOTIFY ---

    def notify_success(self, report):
        name = sanitize_target(report.target)
        caption = f"Fuzzing Completed on {name} with session {self.context.session}"
        return self.notifier.send(NotificationEvent(
            files=[report.path], caption=caption, filename=f"{name}.json"
        ))

    def report_error(self, message, target, exit_code=None, extra_files=()):
        """Log an error to console + run error log, then send it with the log attached"""
        error_message = f"ERROR: {message} for URL: {target or 'N/A'} (Exit Code: {exit_code if exit_code is not None else 'N/A'})"
        orchestrate_logger.error(error_message)

        fd, report_file = tempfile.mkstemp(prefix='ffuf_error_', suffix='.txt')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(error_message + '\n')

            files = [report_file]
            error_log = self.context.error_log
            if error_log and os.path.isfile(error_log) and os.path.getsize(error_log) > 0:
                files.append(error_log)
            files.extend(p for p in extra_files if p and os.path.isfile(p))

            caption = f"FFuF Scan Error on {target} in session {self.context.session}"
            return self.notifier.send(NotificationEvent(
                files=files, caption=caption, filename=f"FFuF_Error_{make_run_stamp()}.txt"
            ))
        finally:
            os.remove(report_file)


def build_parser():
    env_credentials = Credentials.from_env()
    parser = argparse.ArgumentParser(description='ShardFuzz - sharded ffuf runs with chat notifications')
    parser.add_argument('-u', '--urls', required=True, help='File containing URLs (one URL per line)')
    parser.add_argument('-w', '--wordlist', required=True, help='Wordlist file')
    parser.add_argument('-s', '--session', default='', help='Session/label name shown in notifications')
    parser.add_argument('-o', '--output-dir', default=fuzzconfig.OUTPUT_DIR, help='Directory for combined reports')
    parser.add_argument('--error-log', help='Run error log (default: <output-dir>/ffuf_error.log)')
    parser.add_argument('--webhook', default=env_credentials.webhook_url, help='Discord-style webhook URL')
    parser.add_argument('--bot-token', default=env_credentials.bot_token, help='Telegram bot token')
    parser.add_argument('--chat-id', default=env_credentials.chat_id, help='Telegram chat id')
    parser.add_argument('--shards', type=int, default=fuzzconfig.SHARD_COUNT, help='Number of wordlist shards')
    parser.add_argument('--jobs', type=int, default=1, help='Shard jobs to run in parallel per target')
    parser.add_argument('--match-codes', default=fuzzconfig.DEFAULT_MATCH_CODES,
                        help='HTTP status codes to keep (ffuf -mc); empty string to disable')
    parser.add_argument('--auto-calibrate', action='store_true', help='Pass -ac to ffuf')
    parser.add_argument('--stop-on-spurious', action='store_true', help='Pass -sf to ffuf')
    parser.add_argument('--engine-verbose', action='store_true', help='Pass -v to ffuf')
    parser.add_argument('--ffuf-path', default=fuzzconfig.FFUF_PATH, help='ffuf binary')
    parser.add_argument('--timeout', type=int, default=fuzzconfig.ENGINE_TIMEOUT,
                        help='Seconds before a shard job is killed')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    return parser


def context_from_args(args):
    return RunContext(
        url_file=args.urls,
        wordlist=args.wordlist,
        output_dir=args.output_dir,
        session=args.session,
        error_log=args.error_log,
        shard_count=args.shards,
        jobs=max(1, args.jobs),
        credentials=Credentials(webhook_url=args.webhook, bot_token=args.bot_token, chat_id=args.chat_id),
        ffuf=FfufOptions(
            binary=args.ffuf_path,
            match_codes=args.match_codes or None,
            auto_calibrate=args.auto_calibrate,
            stop_on_spurious=args.stop_on_spurious,
            verbose=args.engine_verbose,
            timeout=args.timeout,
        ),
    )


def main(argv=None):
    args = build_parser().parse_args(argv)

    setup_application_logging()
    if args.verbose:
        set_console_level(logging.DEBUG)

    context = context_from_args(args)
    orchestrate_logger.info(f"Starting ShardFuzz run (session: {context.session or 'N/A'})")

    try:
        ScanOrchestrator(context).run()
    except FatalError as e:
        log_error_with_context(e, level='critical')
        progress(f"Error: {e}", color=Colors.RED, stream=sys.stderr)
        return 1
    except KeyboardInterrupt:
        orchestrate_logger.warning("Scan interrupted by user")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
