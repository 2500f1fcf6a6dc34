"""Command line entry point for the BSMI report generators."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .allocation import DEFAULT_UNALLOCATED_CODE
from .config import RunConfig, load_run_config
from .errors import BsmiToolsError
from .index import ModelIndex
from .model import RequirementsSpecification
from .provider import load_iteration
from .reports import DotReportGenerator, HtmlReportGenerator, ReportGenerator, XlReportGenerator
from .traceability import parse_partitions

LOGGER = logging.getLogger(__name__)

GENERATORS = {
    "xl-report": XlReportGenerator,
    "html-report": HtmlReportGenerator,
    "dot-report": DotReportGenerator,
}


def configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def _add_shared_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--run-config",
        type=Path,
        help="Optional YAML file with run settings; command line options take precedence.",
    )
    parser.add_argument("-ds", "--data-source", type=Path, help="Path to the YAML/JSON model snapshot.")
    parser.add_argument("-m", "--model", help="Short name of the engineering model.")
    parser.add_argument("-i", "--iteration", type=int, help="Iteration number of the engineering model.")
    parser.add_argument("-d", "--domainofexpertise", dest="domain", help="Domain of expertise to open the model with.")
    parser.add_argument("-o", "--output-report", type=Path, help="Path of the report to write.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeatable).",
    )


def _add_report_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-spec",
        "--source-specification",
        help="Short name of the specification to report on (default: all non-deprecated specifications).",
    )
    parser.add_argument(
        "-ubc",
        "--unallocated-bsmi-code",
        help=f"BSMI code for requirements that are not allocated (default: {DEFAULT_UNALLOCATED_CODE}).",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate BSMI allocation and traceability reports from an engineering model snapshot.",
    )
    subparsers = parser.add_subparsers(dest="command")

    xl = subparsers.add_parser("xl-report", help="Write the Excel BSMI allocation workbook.")
    _add_shared_options(xl)
    _add_report_options(xl)

    html = subparsers.add_parser("html-report", help="Write the HTML requirements report.")
    _add_shared_options(html)
    _add_report_options(html)

    dot = subparsers.add_parser("dot-report", help="Write the GraphViz traceability graph.")
    _add_shared_options(dot)
    dot.add_argument(
        "--specification",
        action="append",
        default=[],
        metavar="SPEC:CAT1:CAT2",
        help="Specification and categories to include (repeatable).",
    )

    return parser


def merge_run_config(args: argparse.Namespace) -> RunConfig:
    """Run config file values, overridden by whatever was given on the command line."""
    config = load_run_config(args.run_config) if args.run_config else RunConfig()

    if args.data_source:
        config.data_source = args.data_source
    if args.model:
        config.model = args.model
    if args.iteration is not None:
        config.iteration = args.iteration
    if args.domain:
        config.domain = args.domain
    if args.output_report:
        config.output_report = args.output_report
    if getattr(args, "source_specification", None):
        config.source_specification = args.source_specification
    if getattr(args, "unallocated_bsmi_code", None):
        config.unallocated_bsmi_code = args.unallocated_bsmi_code
    if getattr(args, "specification", None):
        config.specifications = list(args.specification)
    return config


def select_specifications(index: ModelIndex, source_specification: Optional[str]) -> List[RequirementsSpecification]:
    if source_specification:
        spec = index.specification_by_short_name(source_specification)
        if spec is None:
            raise BsmiToolsError(f"Source specification {source_specification} not found")
        return [spec]
    return [s for s in index.specifications.values() if not s.is_deprecated]


def run(command: str, config: RunConfig) -> int:
    generator: ReportGenerator = GENERATORS[command]()

    if config.output_report is None:
        LOGGER.error("No output report given, use --output-report")
        return 1
    valid, message = generator.is_valid_report_extension(config.output_report)
    if not valid:
        LOGGER.error(message)
        return 1
    LOGGER.debug(message)

    if config.data_source is None:
        LOGGER.error("No data source given, use --data-source")
        return 1

    iteration = load_iteration(config.data_source, config.model, config.iteration, config.domain)
    index = ModelIndex.build(iteration)
    config.output_report.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(generator, DotReportGenerator):
        partitions = parse_partitions(index, config.specifications)
        generator.generate(index, partitions, config.output_report)
    else:
        specifications = select_specifications(index, config.source_specification)
        generator.generate(index, specifications, config.output_report, config.unallocated_bsmi_code)

    LOGGER.info(f"{generator.report_type()} report written to {config.output_report}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.verbose)

    try:
        config = merge_run_config(args)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Failed to load run config: {e}")
        return 1

    try:
        return run(args.command, config)
    except (BsmiToolsError, ValueError, OSError) as e:
        logging.error(f"Failed to generate {args.command}: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
