"""
Writer — render a RunReport as the human-readable compile log.

Layout:
    banner (date, compiler, mode)
    one section per status: ERROR, WARNING, RECOMPILE, NEW, SKIP
    summary line + total time
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from shader_precompile.core.report import RunReport
from shader_precompile.io.schema import RunOutcome
from shader_precompile.policy.outcome import REPORT_ORDER, SUMMARY_ORDER, OutcomeStatus

RULE = "=" * 80


def _format_time(seconds: float) -> str:
    return f"{seconds:.3f}s"


def _entry_lines(o: RunOutcome) -> List[str]:
    lines = [f"[{o.status.value}] {o.job_name} ({o.profile})"]
    lines.append(f"     Source: {o.source_path}")

    if o.status == OutcomeStatus.SKIP:
        lines.append("     Status: Up to date (hash match)")
        lines.append(f"     Hash: {o.new_hash}")

    elif o.status == OutcomeStatus.RECOMPILE:
        lines.append("     Status: Source changed")
        lines.append(f"     Old hash: {o.old_hash}")
        lines.append(f"     New hash: {o.new_hash}")
        if o.changed_inputs:
            lines.append("     Changed inputs:")
            lines.extend(f"       - {c}" for c in o.changed_inputs)
        if o.message:
            lines.append(f"     Note: {o.message}")
        lines.append(f"     Output: {o.output_path}")
        lines.append(f"     Time: {_format_time(o.elapsed)}")

    elif o.status == OutcomeStatus.NEW:
        lines.append("     Status: First compilation")
        lines.append(f"     Hash: {o.new_hash}")
        if o.message:
            lines.append(f"     Note: {o.message}")
        lines.append(f"     Output: {o.output_path}")
        lines.append(f"     Time: {_format_time(o.elapsed)}")

    elif o.status == OutcomeStatus.WARNING:
        lines.append(f"     Warning: {o.message}")
        lines.append(f"     Output: {o.output_path}")
        lines.append(f"     Time: {_format_time(o.elapsed)}")

    elif o.status == OutcomeStatus.ERROR:
        lines.append(f"     Error: {o.message}")
        if o.elapsed:
            lines.append(f"     Time: {_format_time(o.elapsed)}")

    return lines


def summary_line(report: RunReport) -> str:
    """``Summary: 2 SKIP, 1 NEW`` — zero counts are omitted."""
    counts = report.counts()
    parts = [f"{counts[s]} {s.value}" for s in SUMMARY_ORDER if counts[s] > 0]
    return "Summary: " + ", ".join(parts)


def render_report(report: RunReport, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    mode = "Incremental (hash-based)" if report.incremental else "Full rebuild"

    lines = [
        RULE,
        "Shader Compilation Log",
        f"Date: {when.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Compiler Version: {report.compiler_version}",
        f"Mode: {mode}",
        RULE,
        "",
    ]

    for status in REPORT_ORDER:
        for outcome in report.by_status(status):
            lines.extend(_entry_lines(outcome))
            lines.append("")

    lines.append(RULE)
    lines.append(summary_line(report))
    lines.append(f"Total time: {_format_time(report.total_elapsed)}")
    lines.append(RULE)
    return "\n".join(lines) + "\n"


def write_report(report: RunReport, report_path: Path) -> Path:
    """
    Write the compile log to *report_path*.

    Creates parent directories if needed.  Returns the written path.
    """
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(render_report(report), encoding="utf-8")
    return report_path
