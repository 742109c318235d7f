import kopf
import logging
import sentinelop.handlers.redisreplication as redisreplication
import sentinelop.handlers.redissentinel as redissentinel
from sentinelop.types.settings import Settings
from sentinelop.resources.redis import RedisResource
from sentinelop.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    RedisResource.conf = memo.conf

    # Create a shared ApiClient for all resources to prevent connection leaks
    RedisResource.shared_api_client = ApiClient()
    logger.info("Shared Kubernetes API client initialized")

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    if memo.conf.metrics_enabled:
        sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    RedisResource.sensor = sensor_delegate

    if memo.conf.metrics_enabled:
        try:
            init_metrics_server(memo.conf.metrics_port)
        except RuntimeError as e:
            logger.error(f"Failed to start metrics server: {e}")
            # Don't fail operator startup if metrics server fails
            logger.warning("Continuing without metrics server")
    else:
        logger.info("Metrics are disabled")

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = memo.conf.worker_limit

    # Post events to the Kubernetes API for logging >= Warning
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING


@kopf.on.cleanup()
async def cleanup(logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    # Close the shared API client
    if RedisResource.shared_api_client is not None:
        await RedisResource.shared_api_client.close()
        RedisResource.shared_api_client = None
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "redisreplication",
    "redissentinel",
]
