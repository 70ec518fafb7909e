from __future__ import annotations

from ..models.processing_result import ErrorKind, ReconcileResult

"""SUMMARY line and outcome message rendering.

SUMMARY format (one line, fixed key order):
    SUMMARY rows=N new=N changed=N id_changes=N applied=N failed=N invalid_dates=N elapsed_sec=X
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
    "render_outcome_message",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or a trailing '.0'."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ReconcileResult) -> str:
    """Render the SUMMARY line for a run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> render_summary_line(ReconcileResult(ok=True, start_time=t, end_time=t))
        'SUMMARY rows=0 new=0 changed=0 id_changes=0 applied=0 failed=0 invalid_dates=0 elapsed_sec=0'
    """
    stats = result.stats
    report = result.apply_report
    applied = len(report.applied) if report is not None else 0
    failed = len(report.failures) if report is not None else 0
    return (
        f"SUMMARY rows={stats.total_rows} "
        f"new={stats.new_members} "
        f"changed={stats.changed_rows} "
        f"id_changes={stats.id_changes} "
        f"applied={applied} "
        f"failed={failed} "
        f"invalid_dates={stats.invalid_dates} "
        f"elapsed_sec={format_seconds(stats.elapsed_seconds)}"
    )


def render_outcome_message(result: ReconcileResult, label: str = "Reconciliation") -> str:
    """One human-readable sentence for the end of a run.

    ``label`` names the command that ran ("Phone normalization", ...).
    """
    if not result.ok:
        # ReconcileResult.failure always sets error
        error = result.error
        if error.kind is ErrorKind.PROCESSING_FAILED:
            return f"{label} failed, nothing was changed: {error.message}"
        return f"Cannot run, nothing was changed: {error.message}"

    parts: list[str] = []
    stats = result.stats
    report = result.apply_report
    if report is not None and report.has_failures:
        parts.append(f"{len(report.failures)} member ID update(s) failed, see the error log")
    pending = len(result.pending_events) - (len(report.applied) + len(report.failures) if report else 0)
    if pending > 0:
        parts.append(f"{pending} member ID change(s) left pending")
    if stats.has_unreliable_values:
        parts.append(
            f"some values may be unreliable "
            f"({stats.invalid_dates} invalid date(s), {stats.invalid_phones} invalid phone(s))"
        )
    if not parts:
        return f"{label} complete."
    return f"{label} complete; " + "; ".join(parts) + "."
