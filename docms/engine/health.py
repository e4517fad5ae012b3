"""
DocMS Health Check — subsystem health reporting for /health and /ready.

The runtime registers one check per started subsystem (database, scheduler
and, for the Celery backend, the Redis broker). Checks are sync or async
callables returning True when healthy.

Usage:
    service = HealthCheckService()
    service.register_check("database", tx.ping)
    summary = await service.check_all()
    service.get_platform_health()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import redis

logger = logging.getLogger("docms.engine.health")


class HealthStatus(str, Enum):
    """Health status of a subsystem."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    message: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass
class _RegisteredCheck:
    name: str
    check_fn: Callable
    consecutive_failures: int = 0


class HealthCheckService:
    """
    Named health checks plus the last known result of each.

    A failing check is DEGRADED until it has failed ``unhealthy_threshold``
    times in a row, then UNHEALTHY. A single success resets it.
    """

    def __init__(self, timeout: float = 5.0, unhealthy_threshold: int = 1):
        self._timeout = timeout
        self._unhealthy_threshold = unhealthy_threshold
        self._checks: Dict[str, _RegisteredCheck] = {}
        self._results: Dict[str, HealthCheckResult] = {}

    def start(self) -> None:
        logger.info(f"Health checks registered: {self.registered_checks}")

    def stop(self) -> None:
        self._results = {
            name: HealthCheckResult(name=name, status=HealthStatus.UNKNOWN)
            for name in self._checks
        }

    def register_check(self, name: str, check_fn: Callable) -> None:
        """
        Register a health check function.

        Args:
            name: Unique check name (typically the component name).
            check_fn: Async or sync callable returning True (healthy) or False.
        """
        self._checks[name] = _RegisteredCheck(name=name, check_fn=check_fn)
        self._results[name] = HealthCheckResult(name=name, status=HealthStatus.UNKNOWN)
        logger.debug(f"Registered health check: {name}")

    def register_redis_check(self, name: str = "redis", redis_url: str = "redis://localhost:6379") -> None:
        """Register a PING against the Celery broker."""
        def redis_check() -> bool:
            try:
                client = redis.from_url(redis_url, socket_timeout=5)
                return bool(client.ping())
            except redis.RedisError as e:
                logger.debug(f"Redis health check failed: {e}")
                return False

        self.register_check(name, redis_check)

    async def check(self, name: str) -> HealthCheckResult:
        """Run a single health check by name and record its result."""
        registered = self._checks.get(name)
        if registered is None:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"No health check registered for '{name}'",
            )

        start = time.monotonic()
        try:
            check_fn = registered.check_fn
            # Sync checks run in a worker thread so they cannot stall the event loop
            if asyncio.iscoroutinefunction(check_fn):
                healthy = await asyncio.wait_for(check_fn(), timeout=self._timeout)
            else:
                healthy = await asyncio.wait_for(
                    asyncio.to_thread(check_fn), timeout=self._timeout
                )
            message = "OK" if healthy else "Check returned unhealthy"
        except asyncio.TimeoutError:
            healthy = False
            message = f"Timeout after {self._timeout}s"
        except Exception as e:
            healthy = False
            message = str(e)

        latency_ms = (time.monotonic() - start) * 1000

        if healthy:
            registered.consecutive_failures = 0
            status = HealthStatus.HEALTHY
        else:
            registered.consecutive_failures += 1
            if registered.consecutive_failures >= self._unhealthy_threshold:
                status = HealthStatus.UNHEALTHY
            else:
                status = HealthStatus.DEGRADED

        result = HealthCheckResult(name=name, status=status, latency_ms=latency_ms, message=message)
        self._results[name] = result
        return result

    async def check_all(self) -> Dict[str, HealthCheckResult]:
        """Run all registered health checks concurrently."""
        if self._checks:
            await asyncio.gather(*(self.check(name) for name in self._checks))
        return dict(self._results)

    def get_last_result(self, name: str) -> Optional[HealthCheckResult]:
        return self._results.get(name)

    def is_healthy(self, name: str) -> bool:
        """Quick check: is a subsystem currently healthy? Unknown counts as healthy."""
        result = self._results.get(name)
        if result is None or result.status == HealthStatus.UNKNOWN:
            return True
        return result.status == HealthStatus.HEALTHY

    def get_platform_health(self) -> Dict[str, Any]:
        """
        Overall platform health summary (for the /health endpoint).

        Returns:
            Dict with overall status + individual check results.
        """
        results = dict(self._results)
        statuses = [r.status for r in results.values()]

        if all(s == HealthStatus.HEALTHY for s in statuses):
            overall = HealthStatus.HEALTHY
        elif any(s == HealthStatus.UNHEALTHY for s in statuses):
            overall = HealthStatus.UNHEALTHY
        else:
            overall = HealthStatus.DEGRADED

        return {
            "status": overall.value,
            "checks": {name: r.to_dict() for name, r in results.items()},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @property
    def registered_checks(self) -> List[str]:
        return list(self._checks.keys())
