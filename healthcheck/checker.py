"""Concurrent HTTP health polling with webhook alerts.

Every round checks all endpoints at once, prints a report and, when a webhook
is enabled, posts a single alert listing the endpoints that are not healthy.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
import structlog

from healthcheck.config import CheckerConfig, Endpoint, Webhook

logger = structlog.get_logger(__name__)

HEALTHY = "HEALTHY"
UNHEALTHY = "UNHEALTHY"
DOWN = "DOWN"
ERROR = "ERROR"

WEBHOOK_TIMEOUT = 10.0


@dataclass
class CheckResult:
    name: str
    url: str
    status: str
    status_code: int = 0
    latency_ms: int = 0
    error: str = ""
    timestamp: datetime | None = None

    @property
    def healthy(self) -> bool:
        return self.status == HEALTHY


async def check_endpoint(client: httpx.AsyncClient, endpoint: Endpoint) -> CheckResult:
    result = CheckResult(
        name=endpoint.name,
        url=endpoint.url,
        status=ERROR,
        timestamp=datetime.now(timezone.utc),
    )

    try:
        request = client.build_request(
            endpoint.method, endpoint.url, timeout=endpoint.timeout_seconds
        )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as e:
        result.error = str(e)
        return result

    start = time.perf_counter()
    try:
        response = await client.send(request)
    except httpx.HTTPError as e:
        result.latency_ms = int((time.perf_counter() - start) * 1000)
        result.status = DOWN
        result.error = str(e) or type(e).__name__
        return result
    result.latency_ms = int((time.perf_counter() - start) * 1000)

    result.status_code = response.status_code
    if response.status_code == endpoint.expected_status:
        result.status = HEALTHY
    else:
        result.status = UNHEALTHY
        result.error = f"expected {endpoint.expected_status}, got {response.status_code}"
    return result


async def check_all(
    endpoints: list[Endpoint], client: httpx.AsyncClient | None = None
) -> list[CheckResult]:
    """Check every endpoint concurrently; results keep the input order."""
    if client is not None:
        return list(await asyncio.gather(*(check_endpoint(client, ep) for ep in endpoints)))

    async with httpx.AsyncClient() as owned:
        return list(await asyncio.gather(*(check_endpoint(owned, ep) for ep in endpoints)))


def format_report(results: list[CheckResult], now: datetime | None = None) -> str:
    now = now or datetime.now()
    lines = [f"\n─── Health Check Report [{now:%H:%M:%S}] ───"]
    for r in results:
        icon = "✅" if r.healthy else "❌"
        lines.append(
            f"{icon} {r.name:<25} | {r.status:<10} | {r.latency_ms:>6}ms | {r.url}"
        )
        if r.error:
            lines.append(f"   └─ Error: {r.error}")
    return "\n".join(lines)


def build_alert(results: list[CheckResult]) -> str | None:
    unhealthy = [f"• {r.name} ({r.status}): {r.error}" for r in results if not r.healthy]
    if not unhealthy:
        return None
    return (
        f"🚨 *Health Check Alert*\n{len(unhealthy)} service(s) unhealthy:\n"
        + "\n".join(unhealthy)
    )


async def notify_unhealthy(
    webhook: Webhook,
    results: list[CheckResult],
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Post an alert when something is unhealthy. Returns True if one was sent."""
    if not webhook.enabled or not webhook.url:
        return False

    message = build_alert(results)
    if message is None:
        return False

    try:
        if client is not None:
            response = await client.post(
                webhook.url, json={"text": message}, timeout=WEBHOOK_TIMEOUT
            )
        else:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as owned:
                response = await owned.post(webhook.url, json={"text": message})
    except httpx.HTTPError as e:
        logger.warning("failed to send webhook", url=webhook.url, error=str(e))
        return False

    if response.is_error:
        logger.warning("webhook rejected alert", url=webhook.url, status=response.status_code)
        return False
    return True


async def run_once(config: CheckerConfig, client: httpx.AsyncClient) -> list[CheckResult]:
    results = await check_all(config.endpoints, client)
    print(format_report(results), flush=True)
    await notify_unhealthy(config.webhook, results, client)
    return results


async def run(config: CheckerConfig, iterations: int | None = None):
    """Check immediately, then once per interval. ``iterations`` bounds the rounds."""
    print(
        f"🏥 Health Checker started, monitoring {len(config.endpoints)} endpoints\n"
        f"📡 Check interval: {config.interval_seconds:g}s\n",
        flush=True,
    )

    done = 0
    async with httpx.AsyncClient() as client:
        while True:
            await run_once(config, client)
            done += 1
            if iterations is not None and done >= iterations:
                return
            await asyncio.sleep(config.interval_seconds)
