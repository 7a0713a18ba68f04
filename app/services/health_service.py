"""Server health evaluation"""
import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.models.load_balancer import DNSServer, HealthStatus
from app.schemas.health import HealthSnapshot, ProbeResult
from app.services.metrics_source import MetricsSource, RandomMetricsSource
from app.services.prober import Prober

logger = logging.getLogger(__name__)


def determine_status(ping: ProbeResult, port: Optional[ProbeResult]) -> HealthStatus:
    """Combine the ping and protocol probes; ``port`` is None when no protocol check applies"""
    if ping.reachable:
        if port is None or port.reachable:
            return HealthStatus.HEALTHY
        return HealthStatus.DEGRADED
    if port is not None and port.reachable:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


class HealthEvaluator:
    """Probes one server and derives its ``HealthSnapshot``"""

    def __init__(
        self,
        prober: Prober = None,
        metrics_source: MetricsSource = None,
        timeout: float = None,
    ):
        self.prober = prober or Prober()
        self.metrics_source = metrics_source or RandomMetricsSource()
        self.timeout = timeout or settings.PROBE_TIMEOUT

    async def evaluate(self, server: DNSServer, timeout: float = None) -> HealthSnapshot:
        """Probe with ``timeout`` seconds per probe, the evaluator default when None"""
        timeout = timeout or self.timeout
        ip, port = server.ip, server.port
        try:
            if self.prober.has_protocol_check(port):
                ping, port_result = await asyncio.gather(
                    self.prober.ping(ip, timeout),
                    self.prober.probe(ip, port, timeout),
                )
                response_time = port_result.response_time
            else:
                ping = await self.prober.ping(ip, timeout)
                port_result = None
                response_time = ping.response_time

            status = determine_status(ping, port_result)
            metrics = await self.metrics_source.sample(ip)
        except Exception:
            logger.exception(f"Health check failed for {ip}:{port}")
            return HealthSnapshot.unhealthy()

        logger.debug(f"Health of {ip}:{port}: {status.value} ({response_time}ms)")
        return HealthSnapshot(
            status=status,
            response_time=response_time,
            uptime=metrics.uptime,
            load=metrics.load,
            memory_usage=metrics.memory_usage,
            disk_usage=metrics.disk_usage,
        )
