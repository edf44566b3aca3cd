"""Tests for fire-and-forget CloudWatch business events."""

from unittest.mock import MagicMock, patch

import pytest

from app.core.config import Settings
from app.metrics import cloudwatch

pytestmark = pytest.mark.unit


async def test_disabled_by_default_never_touches_boto3():
    with (
        patch("app.metrics.cloudwatch.get_settings", return_value=Settings(metrics_enabled=False)),
        patch("app.metrics.cloudwatch.boto3.client") as mock_client,
    ):
        await cloudwatch.emit_business_event("onboarding_completed", user_id="user_1")

    mock_client.assert_not_called()


def test_put_includes_event_and_user_dimensions():
    client = MagicMock()
    with patch("app.metrics.cloudwatch._get_client", return_value=client):
        cloudwatch._put_business_event("subscription_cancelled", user_id="user_1")

    metric = client.put_metric_data.call_args.kwargs["MetricData"][0]
    assert client.put_metric_data.call_args.kwargs["Namespace"] == "Concierge/Business"
    assert {"Name": "Event", "Value": "subscription_cancelled"} in metric["Dimensions"]
    assert {"Name": "UserId", "Value": "user_1"} in metric["Dimensions"]


def test_put_failure_is_swallowed():
    client = MagicMock()
    client.put_metric_data.side_effect = RuntimeError("throttled")
    with patch("app.metrics.cloudwatch._get_client", return_value=client):
        cloudwatch._put_business_event("onboarding_completed")
