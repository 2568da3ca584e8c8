from rpc_proxygen.observability.logging import LogContext, get_logger

__all__ = ["LogContext", "get_logger"]
