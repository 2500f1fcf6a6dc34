"""Report writers: Excel BSMI workbook, HTML requirements report and DOT traceability graph."""

from __future__ import annotations

import html
import logging
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from . import __version__
from .allocation import DEFAULT_UNALLOCATED_CODE, AllocationRecord, resolve_allocations
from .derivation import DerivationIndex
from .errors import NullIteration, NullOutputTarget
from .index import ModelIndex
from .model import Option, Requirement, RequirementsGroup, RequirementsSpecification
from .object_level import object_level_or_placeholder
from .traceability import build_traceability_graph, render_dot

LOGGER = logging.getLogger(__name__)

INFO_SHEET = "BSMI Info"
REQUIREMENTS_SHEET = "Requirements"

REQUIREMENT_COLUMNS = [
    "Specification",
    "Group",
    "Requirements Shortname",
    "Requirements Name",
    "Requirements Text",
    "Owner",
    "Categories",
]

ALLOCATION_COLUMNS = [
    "Object Level",
    "UID",
    "BSMI Nummer",
    "Eistekst - EN",
    "Object Type",
    "Outlinks",
    "Requirement - Iid",
    "Relationship - Iid",
    "Nested Elements",
    "Issues",
]

FREE_TEXT_COLUMNS = {"Requirements Name", "Requirements Text", "Eistekst - EN", "Issues", "Value"}

MAX_SHEET_NAME = 31
MAX_COLUMN_WIDTH = 80


def sanitize_for_excel(val):
    """Prevent formula injection in Excel."""
    if val is None:
        return ""
    s = str(val)
    if s.startswith(("=", "+", "-", "@")):
        return "'" + s
    return s


def safe_sheet_name(name: str, used: Iterable[str]) -> str:
    """Excel sheet names: max 31 chars, no []:*?/\\ and unique (case-insensitive)."""
    base = re.sub(r"[\[\]:*?/\\]", "_", name).strip("'") or "Sheet"
    base = base[:MAX_SHEET_NAME]
    taken = {u.lower() for u in used}
    candidate = base
    counter = 1
    while candidate.lower() in taken:
        suffix = f"_{counter}"
        candidate = f"{base[:MAX_SHEET_NAME - len(suffix)]}{suffix}"
        counter += 1
    return candidate


def grouped_requirements(
    index: ModelIndex, spec: RequirementsSpecification
) -> List[Tuple[Optional[RequirementsGroup], Requirement]]:
    """Ungrouped requirements first, then the requirements of each contained group."""
    requirements = index.requirements_of(spec)
    rows: List[Tuple[Optional[RequirementsGroup], Requirement]] = [(None, r) for r in requirements if r.group_id is None]
    for group in index.contained_groups(spec):
        rows.extend((group, r) for r in requirements if r.group_id == group.iid)
    return rows


class ReportGenerator(ABC):
    supported_extensions: Tuple[str, ...] = ()

    @abstractmethod
    def report_type(self) -> str:
        raise NotImplementedError

    def is_valid_report_extension(self, output_path: Optional[Path]) -> Tuple[bool, str]:
        if output_path is None:
            raise NullOutputTarget()

        extension = Path(output_path).suffix
        if extension in self.supported_extensions:
            return True, f"{extension} is a supported report extension"

        supported = ", ".join(f"'{e}'" for e in self.supported_extensions)
        return False, (
            f"The Extension of the output file '{extension}' is not supported. "
            f"Supported extensions are {supported}"
        )

    @staticmethod
    def _check_arguments(index: Optional[ModelIndex], output_report: Optional[Path]) -> None:
        if index is None:
            raise NullIteration()
        if output_report is None:
            raise NullOutputTarget()


class XlReportGenerator(ReportGenerator):
    """Excel workbook with one BSMI allocation sheet per option."""

    supported_extensions = (".xlsx", ".xlsm", ".xltx", ".xltm")

    def report_type(self) -> str:
        return "Excel"

    def generate(
        self,
        index: ModelIndex,
        specifications: Sequence[RequirementsSpecification],
        output_report: Path,
        unallocated_code: str = DEFAULT_UNALLOCATED_CODE,
        options: Optional[Sequence[Option]] = None,
    ) -> None:
        self._check_arguments(index, output_report)
        started = time.perf_counter()
        LOGGER.info("Start generating the XL BSMI report")

        derivations = DerivationIndex(index)
        options = list(index.options.values()) if options is None else list(options)

        sheets: Dict[str, pd.DataFrame] = {
            INFO_SHEET: info_frame(index),
            REQUIREMENTS_SHEET: requirements_frame(index, specifications),
        }
        for option in options:
            records = resolve_allocations(index, specifications, option, fallback_code=unallocated_code)
            sheet = safe_sheet_name(option.short_name, sheets.keys())
            sheets[sheet] = allocation_frame(records, derivations)

        LOGGER.info(f"Saving BSMI file to {output_report}")
        with pd.ExcelWriter(output_report, engine="xlsxwriter") as writer:
            header_format = writer.book.add_format({"bold": True, "bg_color": "#D3D3D3", "border": 1})
            for sheet_name, frame in sheets.items():
                self._write_sheet(writer, sheet_name, frame, header_format, header=sheet_name != INFO_SHEET)

        LOGGER.info(f"Generated Excel BSMI report in {(time.perf_counter() - started) * 1000:.0f} [ms]")

    @staticmethod
    def _write_sheet(writer, sheet_name: str, frame: pd.DataFrame, header_format, header: bool = True) -> None:
        frame = frame.copy()
        for col in frame.columns:
            if col in FREE_TEXT_COLUMNS:
                frame[col] = frame[col].map(sanitize_for_excel)

        frame.to_excel(writer, sheet_name=sheet_name, index=False, header=header)
        worksheet = writer.sheets[sheet_name]

        for col_idx, col_name in enumerate(frame.columns):
            values = [len(str(v)) for v in frame[col_name].tolist()]
            width = max([len(str(col_name)) if header else 0, *values, 8])
            worksheet.set_column(col_idx, col_idx, min(width + 2, MAX_COLUMN_WIDTH))
            if header:
                worksheet.write(0, col_idx, col_name, header_format)

        if header and not frame.empty:
            worksheet.autofilter(0, 0, len(frame), len(frame.columns) - 1)
            worksheet.freeze_panes(1, 0)


class HtmlReportGenerator(ReportGenerator):
    """Single page HTML report of the selected specifications and their trace links."""

    supported_extensions = (".html", ".htm")

    def report_type(self) -> str:
        return "HTML"

    def generate(
        self,
        index: ModelIndex,
        specifications: Sequence[RequirementsSpecification],
        output_report: Path,
        unallocated_code: str = DEFAULT_UNALLOCATED_CODE,
        options: Optional[Sequence[Option]] = None,
    ) -> None:
        self._check_arguments(index, output_report)
        started = time.perf_counter()
        LOGGER.info("Start generating the HTML report")

        options = list(index.options.values()) if options is None else list(options)
        codes: Dict[str, Dict[str, str]] = {}
        for option in options:
            for record in resolve_allocations(index, specifications, option, fallback_code=unallocated_code):
                codes.setdefault(record.requirement.iid, {})[option.short_name] = record.code

        content = render_html(index, specifications, options, codes)
        Path(output_report).write_text(content, encoding="utf-8")

        LOGGER.info(f"Generated HTML report at {output_report} in {(time.perf_counter() - started) * 1000:.0f} [ms]")


class DotReportGenerator(ReportGenerator):
    """GraphViz DOT file of requirement derivation links."""

    supported_extensions = (".dot",)

    def report_type(self) -> str:
        return "DOT"

    def generate(self, index: ModelIndex, partitions, output_report: Path) -> None:
        if output_report is None:
            raise NullOutputTarget()
        document = build_traceability_graph(index, partitions)
        Path(output_report).write_text(render_dot(document), encoding="utf-8")
        LOGGER.info(f"Wrote traceability graph to {output_report}")


def info_frame(index: ModelIndex) -> pd.DataFrame:
    iteration = index.iteration
    rows = [
        ("BSMI Reporting", __version__),
        ("Generation Date", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ("Model - name", iteration.model_name),
        ("Model - short name", iteration.model_short_name),
        ("Model - Definition", iteration.model_definition),
        ("Iteration - nr", str(iteration.iteration_number)),
        ("Iteration - Description", iteration.description),
    ]
    return pd.DataFrame(rows, columns=["Item", "Value"])


def requirements_frame(index: ModelIndex, specifications: Sequence[RequirementsSpecification]) -> pd.DataFrame:
    rows = []
    for spec in specifications:
        for group, requirement in grouped_requirements(index, spec):
            rows.append(
                {
                    "Specification": spec.short_name,
                    "Group": index.group_path(group) if group is not None else "",
                    "Requirements Shortname": requirement.short_name,
                    "Requirements Name": requirement.name,
                    "Requirements Text": requirement.text,
                    "Owner": requirement.owner,
                    "Categories": index.category_short_names(requirement.category_ids),
                }
            )
    return pd.DataFrame(rows, columns=REQUIREMENT_COLUMNS)


def allocation_frame(records: Sequence[AllocationRecord], derivations: DerivationIndex) -> pd.DataFrame:
    rows = []
    for record in records:
        requirement = record.requirement
        rows.append(
            {
                "Object Level": object_level_or_placeholder(record.code),
                "UID": requirement.short_name,
                "BSMI Nummer": record.code,
                "Eistekst - EN": requirement.text,
                "Object Type": "Requirement",
                "Outlinks": ", ".join(derivations.outgoing_short_names(requirement)),
                "Requirement - Iid": requirement.iid,
                "Relationship - Iid": ",".join(record.relationship_iids),
                "Nested Elements": ", ".join(record.nested_element_names),
                "Issues": "; ".join(issue.message for issue in record.issues),
            }
        )
    return pd.DataFrame(rows, columns=ALLOCATION_COLUMNS)


HTML_COLUMNS = ["Short Name", "Name", "Text", "Owner", "Categories", "Derived From", "Derived By"]

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
        body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; margin: 20px; color: #333; }}
        h1, h2, h3 {{ color: #2c3e50; }}
        table {{ width: 100%; border-collapse: collapse; margin-bottom: 20px; }}
        th, td {{ padding: 6px 10px; text-align: left; border-bottom: 1px solid #eee; vertical-align: top; }}
        th {{ background-color: #34495e; color: white; }}
        .meta {{ color: #666; font-size: 0.9em; }}
    </style>
</head>
<body>
<h1>{title}</h1>
<p class="meta">{meta}</p>
{body}
</body>
</html>
"""


def render_html(
    index: ModelIndex,
    specifications: Sequence[RequirementsSpecification],
    options: Sequence[Option],
    codes: Dict[str, Dict[str, str]],
) -> str:
    iteration = index.iteration
    derivations = DerivationIndex(index)
    option_columns = [f"BSMI {o.short_name}" for o in options]

    sections: List[str] = []
    for spec in specifications:
        sections.append(f"<h2>{html.escape(spec.short_name)} {html.escape(spec.name)}</h2>")
        current_group = object()
        rows: List[Dict[str, str]] = []

        def flush(group_heading: Optional[str]) -> None:
            if not rows:
                return
            if group_heading:
                sections.append(f"<h3>{html.escape(group_heading)}</h3>")
            frame = pd.DataFrame(rows, columns=[*HTML_COLUMNS, *option_columns])
            sections.append(frame.to_html(index=False, escape=True, border=0))
            rows.clear()

        heading: Optional[str] = None
        for group, requirement in grouped_requirements(index, spec):
            if requirement.is_deprecated:
                continue
            if group is not current_group:
                flush(heading)
                current_group = group
                heading = index.group_path(group) if group is not None else None
            row = {
                "Short Name": requirement.short_name,
                "Name": requirement.name,
                "Text": requirement.text,
                "Owner": requirement.owner,
                "Categories": index.category_short_names(requirement.category_ids),
                "Derived From": ", ".join(derivations.incoming_short_names(requirement)),
                "Derived By": ", ".join(derivations.outgoing_short_names(requirement)),
            }
            for option, column in zip(options, option_columns):
                row[column] = codes.get(requirement.iid, {}).get(option.short_name, "")
            rows.append(row)
        flush(heading)

    title = f"{iteration.model_name or iteration.model_short_name} - Requirements"
    meta = (
        f"Model {html.escape(iteration.model_short_name)}, iteration {iteration.iteration_number}; "
        f"generated {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} by BSMI tools {__version__}"
    )
    return HTML_TEMPLATE.format(title=html.escape(title), meta=meta, body="\n".join(sections))
