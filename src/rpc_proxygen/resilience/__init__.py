from rpc_proxygen.resilience.retry_policy import RetryExecutor, RetryPolicy, RetryStrategy

__all__ = ["RetryExecutor", "RetryPolicy", "RetryStrategy"]
