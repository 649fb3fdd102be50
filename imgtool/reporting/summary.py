from dataclasses import dataclass
from typing import Tuple

from ..utils.size_format import format_size_delta, humanize_bytes


@dataclass(frozen=True)
class PipelineReport:
    """Result of one pipeline run, as shown to the user."""

    input_path: str
    output_path: str
    input_size: Tuple[int, int]
    output_size: Tuple[int, int]
    input_bytes: int
    output_bytes: int
    dry_run: bool = False
    written: bool = False


def render_report(report: PipelineReport) -> str:
    """
    Formats a ``PipelineReport`` as the aligned text block printed on success.

    Args:
        report (PipelineReport): The finished run.

    Returns:
        str: Multi-line text ending with a newline.
    """
    lines = []
    if report.dry_run:
        lines.append("***Display results only***")
    lines += [
        f"Input file:        {report.input_path}",
        f"Input width:       {report.input_size[0]}",
        f"Input height:      {report.input_size[1]}",
        f"Input size:        {humanize_bytes(report.input_bytes)}",
        "",
        f"Output file:       {report.output_path}",
        f"Output width:      {report.output_size[0]}",
        f"Output height:     {report.output_size[1]}",
        f"Output size:       {humanize_bytes(report.output_bytes)}",
        "",
        f"Size change:       {format_size_delta(report.input_bytes, report.output_bytes)}",
    ]
    return "\n".join(lines) + "\n"
