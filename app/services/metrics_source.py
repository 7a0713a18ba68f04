"""Per-host system metrics sources"""
import logging
import random
from abc import ABC, abstractmethod
from typing import Optional

import asyncssh

from app.core.config import settings
from app.schemas.health import SystemMetrics

logger = logging.getLogger(__name__)


class MetricsSource(ABC):
    """Supplies uptime, load, memory and disk usage for a server"""

    @abstractmethod
    async def sample(self, ip: str) -> SystemMetrics:
        ...


class RandomMetricsSource(MetricsSource):
    """Placeholder that returns bounded random values.

    Stands in until a real agent runs on the backends; deployments should
    configure ``METRICS_SOURCE=ssh`` or provide their own ``MetricsSource``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def sample(self, ip: str) -> SystemMetrics:
        return SystemMetrics(
            uptime=self.rng.randint(0, 86400),
            load=self.rng.uniform(0, 5),
            memory_usage=self.rng.uniform(0, 100),
            disk_usage=self.rng.uniform(0, 100),
        )


class SSHMetricsSource(MetricsSource):
    """Reads metrics from /proc, free and df over SSH"""

    # uptime seconds, 1 minute load, memory %, root disk %
    COMMAND = (
        "cut -d' ' -f1 /proc/uptime; "
        "cut -d' ' -f1 /proc/loadavg; "
        "free | grep Mem | awk '{print $3/$2 * 100.0}'; "
        "df -P / | tail -1 | awk '{print $5}' | sed 's/%//'"
    )

    def __init__(
        self,
        username: str = None,
        port: int = None,
        key_path: Optional[str] = None,
        timeout: float = None,
    ):
        self.username = username or settings.METRICS_SSH_USER
        self.port = port or settings.METRICS_SSH_PORT
        self.key_path = key_path or settings.METRICS_SSH_KEY_PATH
        self.timeout = timeout or settings.PROBE_TIMEOUT

    async def sample(self, ip: str) -> SystemMetrics:
        connect_kwargs = {
            "host": ip, "port": self.port, "username": self.username,
            "known_hosts": None, "connect_timeout": self.timeout,
        }
        if self.key_path:
            connect_kwargs["client_keys"] = [self.key_path]

        try:
            async with asyncssh.connect(**connect_kwargs) as conn:
                result = await conn.run(self.COMMAND, timeout=self.timeout)
        except (OSError, asyncssh.Error) as e:
            logger.warning(f"Metrics collection over SSH failed for {ip}: {e}")
            return SystemMetrics()

        if result.exit_status != 0:
            logger.warning(f"Metrics command failed on {ip}: {result.stderr}")
            return SystemMetrics()
        return self.parse(result.stdout)

    @staticmethod
    def parse(output: str) -> SystemMetrics:
        """Parse the four-line output of ``COMMAND``"""
        try:
            uptime, load, memory, disk = [float(line) for line in output.split()[:4]]
        except ValueError:
            logger.warning(f"Unparseable metrics output: {output!r}")
            return SystemMetrics()
        return SystemMetrics(
            uptime=max(0.0, uptime),
            load=max(0.0, load),
            memory_usage=min(100.0, max(0.0, memory)),
            disk_usage=min(100.0, max(0.0, disk)),
        )


def get_metrics_source(kind: str = None) -> MetricsSource:
    """Build the configured metrics source"""
    kind = kind or settings.METRICS_SOURCE
    if kind == "ssh":
        return SSHMetricsSource()
    if kind != "random":
        logger.warning(f"Unknown METRICS_SOURCE {kind!r}, using random placeholder")
    return RandomMetricsSource()
