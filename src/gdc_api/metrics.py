"""Prometheus metrics for API sessions.

Exposes the request pipeline counters of one or more :class:`~gdc_api.api.Api`
sessions through a custom collector, and optionally serves them over HTTP.
"""

from collections.abc import Iterator

import prometheus_client
import prometheus_client.core
import starlette.applications
import starlette.requests
import starlette.responses
import starlette.routing
import structlog
from prometheus_client.core import CounterMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .api import Api

logger = structlog.get_logger(__name__)

DEFAULT_PREFIX = "gdc_api"


class ApiCollector(Collector):
    """Prometheus collector reporting the counters of one API session.

    Values are read from :attr:`Api.stats` at scrape time, so the session
    itself never touches a registry.
    """

    def __init__(self, api: Api, prefix: str = DEFAULT_PREFIX):
        """Initialize the collector.

        Args:
            api: Session whose counters are reported.
            prefix: Metric name prefix.
        """
        self._api = api
        self._prefix = prefix

    def collect(self) -> Iterator[Metric]:
        """Yield the session counters as metric families."""
        stats = self._api.stats
        host = self._api.hostname

        requests = CounterMetricFamily(
            f"{self._prefix}_requests",
            "HTTP requests sent by the session",
            labels=["host"],
        )
        requests.add_metric([host], stats.requests)
        yield requests

        responses = CounterMetricFamily(
            f"{self._prefix}_responses",
            "HTTP responses received, by status code",
            labels=["host", "status"],
        )
        for status, count in sorted(stats.responses.items()):
            responses.add_metric([host, str(status)], count)
        yield responses

        renewals = CounterMetricFamily(
            f"{self._prefix}_token_renewals",
            "temporary token renewals",
            labels=["host"],
        )
        renewals.add_metric([host], stats.token_renewals)
        yield renewals

        polls = CounterMetricFamily(
            f"{self._prefix}_polls",
            "poll rounds of asynchronous tasks",
            labels=["host"],
        )
        polls.add_metric([host], stats.polls)
        yield polls

        errors = CounterMetricFamily(
            f"{self._prefix}_errors",
            "errors raised to callers",
            labels=["host"],
        )
        errors.add_metric([host], stats.errors)
        yield errors


def create_registry(
    api: Api,
    prefix: str = DEFAULT_PREFIX,
) -> prometheus_client.core.CollectorRegistry:
    """Create a custom (non-global) registry reporting one session."""
    registry = prometheus_client.core.CollectorRegistry()
    registry.register(ApiCollector(api, prefix=prefix))
    logger.info("Registered collector", host=api.hostname, metric_prefix=prefix)
    return registry


def create_metrics_app(
    registry: prometheus_client.core.CollectorRegistry,
    metrics_path: str = "/metrics",
) -> starlette.applications.Starlette:
    """Create a Starlette application serving a registry.

    Args:
        registry: Prometheus collector registry.
        metrics_path: URL path for the metrics endpoint.

    Returns:
        Configured Starlette application.
    """

    def metrics_endpoint(
        request: starlette.requests.Request,
    ) -> starlette.responses.Response:
        logger.debug(
            "Metrics scrape",
            client_ip=request.client.host if request.client else "unknown",
            path=request.url.path,
        )
        return starlette.responses.PlainTextResponse(
            content=prometheus_client.generate_latest(registry),
            media_type=prometheus_client.CONTENT_TYPE_LATEST,
        )

    routes = [
        starlette.routing.Route(metrics_path, metrics_endpoint, methods=["GET"]),
    ]
    return starlette.applications.Starlette(routes=routes)
