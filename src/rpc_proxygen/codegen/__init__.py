from rpc_proxygen.codegen.diagnostics import Diagnostic, DiagnosticKind, Diagnostics, SourceLocation
from rpc_proxygen.codegen.discovery import discover_services
from rpc_proxygen.codegen.extractor import HandlerExtractor, HandlerRecord, ServiceModule
from rpc_proxygen.codegen.pipeline import GenerationResult, run_generation
from rpc_proxygen.codegen.resolver import RoutingKeyResolver, UnresolvableKeyError

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    "GenerationResult",
    "HandlerExtractor",
    "HandlerRecord",
    "RoutingKeyResolver",
    "ServiceModule",
    "SourceLocation",
    "UnresolvableKeyError",
    "discover_services",
    "run_generation",
]
