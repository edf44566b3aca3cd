"""CloudWatch business events for onboarding and subscription milestones.

Fire-and-forget: failures are logged via structlog and never reach the caller.
Disabled unless METRICS_ENABLED is set, so local runs and tests never talk to AWS.

boto3 is synchronous, so put_metric_data runs in a small thread pool.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import boto3
import structlog

from app.core.config import get_settings

logger = structlog.get_logger(__name__)

_cw_client = None
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cw-metrics")


def _get_client():
    global _cw_client
    if _cw_client is None:
        _cw_client = boto3.client("cloudwatch", region_name=get_settings().metrics_region)
    return _cw_client


def _put_business_event(event_name: str, user_id: str | None = None) -> None:
    """Synchronous put_metric_data. Runs in thread pool."""
    dimensions = [{"Name": "Event", "Value": event_name}]
    if user_id:
        dimensions.append({"Name": "UserId", "Value": user_id})
    try:
        _get_client().put_metric_data(
            Namespace="Concierge/Business",
            MetricData=[{
                "MetricName": "EventCount",
                "Dimensions": dimensions,
                "Value": 1.0,
                "Unit": "Count",
                "Timestamp": datetime.now(timezone.utc),
            }],
        )
    except Exception as e:
        logger.warning("business_event_emit_failed", error=str(e), event=event_name)


async def emit_business_event(event_name: str, user_id: str | None = None) -> None:
    """Emit a business event metric (onboarding_completed, subscription_cancelled, ...)."""
    if not get_settings().metrics_enabled:
        return
    loop = asyncio.get_running_loop()
    loop.run_in_executor(_executor, _put_business_event, event_name, user_id)
