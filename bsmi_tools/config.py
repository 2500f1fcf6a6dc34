from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .allocation import DEFAULT_UNALLOCATED_CODE


@dataclass
class RunConfig:
    data_source: Optional[Path] = None
    model: Optional[str] = None
    iteration: Optional[int] = None
    domain: Optional[str] = None
    source_specification: Optional[str] = None
    unallocated_bsmi_code: str = DEFAULT_UNALLOCATED_CODE
    specifications: List[str] = field(default_factory=list)
    output_report: Optional[Path] = None


def resolve_path(base: Path, target: Union[Path, str]) -> Path:
    t = Path(target)
    return t if t.is_absolute() else base / t


def load_run_config(config_path: Path) -> RunConfig:
    if not config_path.exists():
        raise FileNotFoundError(f"Run config file not found: {config_path}")

    raw_text = config_path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Failed to parse YAML config at {config_path}") from exc

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ValueError("Config must be a dictionary of run settings.")

    base = config_path.parent
    config = RunConfig()

    if parsed.get("data_source"):
        config.data_source = resolve_path(base, str(parsed["data_source"]))
    if parsed.get("output_report"):
        config.output_report = resolve_path(base, str(parsed["output_report"]))
    if parsed.get("model"):
        config.model = str(parsed["model"])
    if parsed.get("iteration") is not None:
        try:
            config.iteration = int(parsed["iteration"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"'iteration' must be an integer, got {parsed['iteration']!r}") from exc
    if parsed.get("domain"):
        config.domain = str(parsed["domain"])
    if parsed.get("source_specification"):
        config.source_specification = str(parsed["source_specification"])
    if parsed.get("unallocated_bsmi_code") is not None:
        config.unallocated_bsmi_code = str(parsed["unallocated_bsmi_code"])

    specs = parsed.get("specifications", [])
    if isinstance(specs, str):
        specs = [specs]
    if not isinstance(specs, list):
        raise ValueError("'specifications' must be a list of 'SPEC:CAT1:CAT2' entries.")
    config.specifications = [str(s) for s in specs]

    unknown = set(parsed) - {
        "data_source",
        "output_report",
        "model",
        "iteration",
        "domain",
        "source_specification",
        "unallocated_bsmi_code",
        "specifications",
    }
    if unknown:
        logging.warning(f"Ignoring unknown run config keys: {', '.join(sorted(unknown))}")

    return config
