"""
Result aggregator - merges per-shard ffuf JSON reports into one combined
``{"results": [...]}`` report per target.
"""
import json
import os
import tempfile

from shardfuzz.config.logging_config import aggregator_logger
from shardfuzz.models import AggregatedReport
from shardfuzz.utils.decorators import log_execution
from shardfuzz.utils.error_handler import MergeError, ShardValidationError


def load_shard_results(report_path):
    """
    Validate one shard report and return its "results" list.

    Raises:
        ShardValidationError: file missing, empty, not JSON, or no "results" array
    """
    context = {'report': report_path}
    if not report_path or not os.path.isfile(report_path):
        raise ShardValidationError("Shard report missing", context)
    if os.path.getsize(report_path) == 0:
        raise ShardValidationError("Shard report is empty", context)

    try:
        with open(report_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ShardValidationError(f"Shard report is not valid JSON: {e}", context)
    except OSError as e:
        raise ShardValidationError(f"Shard report not readable: {e}", context)

    if not isinstance(data, dict) or 'results' not in data:
        raise ShardValidationError('Shard report has no "results" key', context)

    results = data['results']
    if results is None:
        # ffuf writes null when nothing matched in some versions
        return []
    if not isinstance(results, list):
        raise ShardValidationError('"results" is not an array', context)
    return results


def write_report(path, payload):
    """Write JSON to ``path`` through a temp file + rename so readers never see a partial report"""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix='.merge_', suffix='.json', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


@log_execution(log_args=False, log_time=True)
def merge_shard_reports(target, job_results, output_path):
    """
    Merge the valid shard reports of ``target`` into ``output_path``.

    Shards are merged in ascending shard index; shards whose job failed or
    whose report does not validate are skipped with a warning. Records are
    concatenated as-is, without de-duplication.

    Returns:
        AggregatedReport, or None when no shard validated (no report is left at output_path)

    Raises:
        MergeError: the combined report could not be written
    """
    merged = []
    used = []

    for job in sorted(job_results, key=lambda j: j.shard_index):
        if not job.succeeded:
            aggregator_logger.warning(
                f"Skipping shard {job.shard_index} for {target}: ffuf exited with {job.exit_status}"
            )
            continue
        try:
            results = load_shard_results(job.report_path)
        except ShardValidationError as e:
            aggregator_logger.warning(f"Skipping shard {job.shard_index} for {target}: {e}")
            continue
        merged.extend(results)
        used.append(job.shard_index)

    if not used:
        aggregator_logger.info(f"No successful results for {target}")
        # A report from an earlier run must not outlive a run with no results
        if os.path.exists(output_path):
            try:
                os.remove(output_path)
            except OSError as e:
                raise MergeError(f"Could not remove stale combined report: {e}",
                                 {'target': target, 'output': output_path})
            aggregator_logger.info(f"Removed stale combined report {output_path}")
        return None

    try:
        write_report(output_path, {"results": merged})
    except (OSError, TypeError, ValueError) as e:
        raise MergeError(f"Could not write combined report: {e}",
                         {'target': target, 'output': output_path})

    aggregator_logger.info(
        f"Merged {len(merged)} results from shards {used} for {target} into {output_path}"
    )
    return AggregatedReport(
        target=target,
        path=output_path,
        results=tuple(merged),
        shard_indexes=tuple(used),
    )
