"""Environment-based configuration for the rollout operator."""

from pydantic_settings import BaseSettings

from rollout_core.retry import RetryConfig


class OperatorSettings(BaseSettings):
    """Rollout operator configuration.

    All settings can be overridden via environment variables with
    ROLLOUT_ prefix. For example:
        ROLLOUT_NAMESPACE=kafka
        ROLLOUT_READY_TIMEOUT_SECONDS=600
    """

    # Platform connection
    namespace: str = "default"
    api_server: str = "https://kubernetes.default.svc"
    token_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    ca_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
    verify_tls: bool = True

    # Reconcile timing
    reconcile_interval_seconds: float = 30.0
    ready_timeout_seconds: float = 300.0
    operation_timeout_seconds: float = 30.0
    ready_poll_seconds: float = 2.0

    # Requeue backoff after an aborted cycle
    retry_min_wait_seconds: float = 1.0
    retry_max_wait_seconds: float = 60.0

    log_level: str = "INFO"

    model_config = {"env_prefix": "ROLLOUT_"}

    def retry_config(self) -> RetryConfig:
        """Requeue backoff built from these settings."""
        return RetryConfig(
            min_wait_seconds=self.retry_min_wait_seconds,
            max_wait_seconds=self.retry_max_wait_seconds,
        )
