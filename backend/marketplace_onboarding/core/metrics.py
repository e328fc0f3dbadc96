# Centralized Prometheus metrics. Middleware below records timing and
# counts for every request; the reconciler records what each
# observation turned into so dashboards can spot runaway appends.

from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY = Histogram(
    "api_request_latency_seconds",
    "Latency of API requests in seconds",
    ["method", "endpoint"],
)
REQUEST_COUNT = Counter(
    "api_request_count_total",
    "Total API requests",
    ["method", "endpoint", "http_status"],
)

# One increment per observation, labelled created|unchanged|appended.
ENTITLEMENT_OBSERVATIONS = Counter(
    "entitlement_observations_total",
    "Entitlement observations reconciled, grouped by outcome",
    ["outcome"],
)

# Batches that aborted, labelled by error code.
RECONCILE_FAILURES = Counter(
    "entitlement_reconcile_failures_total",
    "Entitlement reconciliation batches rolled back",
    ["error_code"],
)

RECONCILE_DURATION = Histogram(
    "entitlement_reconcile_duration_seconds",
    "Wall time of one reconciliation batch",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5],
)

# Marketplace API calls, labelled by operation and outcome (ok|error).
MARKETPLACE_CALLS = Counter(
    "marketplace_api_calls_total",
    "Calls made to AWS Marketplace APIs",
    ["operation", "outcome"],
)


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        elapsed = monotonic() - start
        endpoint = _endpoint_label(request)
        REQUEST_LATENCY.labels(request.method, endpoint).observe(elapsed)
        REQUEST_COUNT.labels(request.method, endpoint, str(response.status_code)).inc()
        return response
