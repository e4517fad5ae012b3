"""Unit tests for docms.engine.health — HealthCheckService."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
import redis

from docms.engine.health import HealthCheckResult, HealthCheckService, HealthStatus


class TestHealthStatus:
    def test_values(self):
        assert HealthStatus.HEALTHY == "healthy"
        assert HealthStatus.DEGRADED == "degraded"
        assert HealthStatus.UNHEALTHY == "unhealthy"
        assert HealthStatus.UNKNOWN == "unknown"


class TestHealthCheckResult:
    def test_to_dict(self):
        result = HealthCheckResult(name="database", status=HealthStatus.HEALTHY, latency_ms=5.234, message="OK")
        d = result.to_dict()
        assert d["name"] == "database"
        assert d["status"] == "healthy"
        assert d["latency_ms"] == 5.23
        assert d["message"] == "OK"
        assert "checked_at" in d


class TestHealthCheckService:
    def setup_method(self):
        self.svc = HealthCheckService(timeout=0.5)

    def test_register_check(self):
        self.svc.register_check("database", lambda: True)
        assert self.svc.registered_checks == ["database"]
        assert self.svc.get_last_result("database").status == HealthStatus.UNKNOWN

    def test_is_healthy_unknown(self):
        assert self.svc.is_healthy("missing") is True

    @pytest.mark.asyncio
    async def test_sync_check(self):
        self.svc.register_check("database", lambda: True)
        result = await self.svc.check("database")
        assert result.status == HealthStatus.HEALTHY
        assert result.message == "OK"
        assert self.svc.is_healthy("database")

    @pytest.mark.asyncio
    async def test_async_check(self):
        async def ok():
            return True

        self.svc.register_check("web", ok)
        assert (await self.svc.check("web")).status == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_failing_check(self):
        self.svc.register_check("database", lambda: False)
        result = await self.svc.check("database")
        assert result.status == HealthStatus.UNHEALTHY
        assert self.svc.is_healthy("database") is False

    @pytest.mark.asyncio
    async def test_exception_is_unhealthy(self):
        def boom():
            raise ConnectionError("refused")

        self.svc.register_check("database", boom)
        result = await self.svc.check("database")
        assert result.status == HealthStatus.UNHEALTHY
        assert result.message == "refused"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow():
            await asyncio.sleep(5)
            return True

        self.svc.register_check("slow", slow)
        result = await self.svc.check("slow")
        assert result.status == HealthStatus.UNHEALTHY
        assert "Timeout" in result.message

    @pytest.mark.asyncio
    async def test_degraded_below_threshold(self):
        svc = HealthCheckService(unhealthy_threshold=2)
        svc.register_check("database", lambda: False)
        assert (await svc.check("database")).status == HealthStatus.DEGRADED
        assert (await svc.check("database")).status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_unknown_check(self):
        result = await self.svc.check("missing")
        assert result.status == HealthStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_check_all_and_platform_health(self):
        self.svc.register_check("database", lambda: True)
        self.svc.register_check("scheduler", lambda: False)
        results = await self.svc.check_all()
        assert set(results) == {"database", "scheduler"}

        summary = self.svc.get_platform_health()
        assert summary["status"] == "unhealthy"
        assert summary["checks"]["database"]["status"] == "healthy"

    def test_platform_health_empty(self):
        assert self.svc.get_platform_health()["status"] == "healthy"

    def test_platform_health_unknown_is_degraded(self):
        self.svc.register_check("database", lambda: True)
        assert self.svc.get_platform_health()["status"] == "degraded"

    def test_stop_resets_results(self):
        self.svc.register_check("database", lambda: True)
        asyncio.run(self.svc.check("database"))
        self.svc.stop()
        assert self.svc.get_last_result("database").status == HealthStatus.UNKNOWN


class TestRedisCheck:
    @pytest.mark.asyncio
    async def test_ping_ok(self):
        svc = HealthCheckService()
        client = MagicMock()
        client.ping.return_value = True
        with patch("docms.engine.health.redis.from_url", return_value=client) as from_url:
            svc.register_redis_check("redis", "redis://broker:6379/0")
            result = await svc.check("redis")
        assert result.status == HealthStatus.HEALTHY
        from_url.assert_called_once_with("redis://broker:6379/0", socket_timeout=5)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        svc = HealthCheckService()
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("down")
        with patch("docms.engine.health.redis.from_url", return_value=client):
            svc.register_redis_check()
            result = await svc.check("redis")
        assert result.status == HealthStatus.UNHEALTHY
