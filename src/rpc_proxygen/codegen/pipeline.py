"""One generation run: discover, extract, validate, render and write."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rpc_proxygen.codegen.diagnostics import Diagnostics
from rpc_proxygen.codegen.discovery import discover_services
from rpc_proxygen.codegen.extractor import HandlerExtractor, HandlerRecord, ServiceModule
from rpc_proxygen.codegen.generator import interface_path, render_routing_keys, render_service_interface
from rpc_proxygen.codegen.resolver import RoutingKeyResolver
from rpc_proxygen.codegen.symbols import ModuleIndex
from rpc_proxygen.codegen.validator import check_service_names, validate_service
from rpc_proxygen.config.models import GeneratorConfig

__all__ = ["ROUTING_KEYS_FILE", "GenerationResult", "run_generation"]

logger = logging.getLogger(__name__)

ROUTING_KEYS_FILE = "routing_keys.py"


@dataclass(slots=True)
class GenerationResult:
    """Everything one run produced.

    ``artifacts`` maps output paths to file contents; it is populated even in
    dry runs so callers can inspect what would have been written.
    """

    services: list[ServiceModule] = field(default_factory=list)
    records_by_service: dict[str, list[HandlerRecord]] = field(default_factory=dict)
    artifacts: dict[Path, str] = field(default_factory=dict)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    written: bool = False

    @property
    def exit_code(self) -> int:
        return 1 if self.diagnostics.failed else 0


def run_generation(
    workspace_root: Path,
    config: GeneratorConfig | None = None,
    *,
    write: bool = True,
) -> GenerationResult:
    config = config or GeneratorConfig()
    result = GenerationResult()

    logger.info("Scanning service modules...")
    result.services = discover_services(workspace_root, config)
    check_service_names(result.services, result.diagnostics)

    index = ModuleIndex(workspace_root)
    extractor = HandlerExtractor(index, RoutingKeyResolver(index))
    for service in result.services:
        extraction = extractor.extract(service)
        result.diagnostics.extend(extraction.diagnostics)
        if not extraction.records:
            logger.debug("Service %s has no handlers, skipping", service.service_name)
            continue
        records = validate_service(service, extraction.records, result.diagnostics)
        result.records_by_service[service.key] = records
        result.artifacts[interface_path(service)] = render_service_interface(workspace_root, service, records)

    routing_keys_path = workspace_root / config.output_dir / ROUTING_KEYS_FILE
    result.artifacts[routing_keys_path] = render_routing_keys(result.records_by_service)

    if result.diagnostics.failed:
        logger.error("Generation failed with %d diagnostic(s)", len(result.diagnostics))
        return result
    if not write:
        return result

    logger.info("Writing files...")
    for path, content in result.artifacts.items():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", path)
    result.written = True
    logger.info("done")
    return result
