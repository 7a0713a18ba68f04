"""Network probes for load balancer backends"""
import asyncio
import ipaddress
import logging
import math
import time

import dns.asyncquery
import dns.exception
import dns.message
import dns.rdatatype
import httpx

from app.core.config import settings
from app.core.exceptions import ProbeFailure
from app.schemas.health import ProbeResult

logger = logging.getLogger(__name__)

DNS_PORT = 53
HTTP_PORTS = (80, 443)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _checked_ip(ip: str) -> str:
    try:
        return str(ipaddress.IPv4Address(ip))
    except ValueError:
        raise ProbeFailure(f"not an IPv4 address: {ip!r}")


class Prober:
    """Reachability and latency measurement, protocol-aware by port.

    Every public method returns a ``ProbeResult``; failures of any kind are
    reported as ``reachable=False`` with ``response_time=-1``.
    """

    def __init__(
        self,
        http_path: str = None,
        user_agent: str = None,
        dns_qname: str = None,
        http_transport: httpx.AsyncBaseTransport = None,
    ):
        self.http_path = http_path or settings.HTTP_HEALTH_PATH
        self.user_agent = user_agent or settings.HTTP_USER_AGENT
        self.dns_qname = dns_qname or settings.DNS_PROBE_QNAME
        self.http_transport = http_transport

    @staticmethod
    def has_protocol_check(port: int) -> bool:
        """Whether ``probe`` does more than a plain ping for this port"""
        return port == DNS_PORT or port in HTTP_PORTS

    async def probe(self, ip: str, port: int, timeout: float) -> ProbeResult:
        """Protocol-appropriate check for ip:port"""
        if port == DNS_PORT:
            check = self._dns_check(ip, port, timeout)
        elif port in HTTP_PORTS:
            check = self._http_check(ip, port, timeout)
        else:
            check = self._ping(ip, timeout)
        return await self._run(check, f"{ip}:{port}")

    async def ping(self, ip: str, timeout: float) -> ProbeResult:
        """Single ICMP echo"""
        return await self._run(self._ping(ip, timeout), ip)

    async def _run(self, check, target: str) -> ProbeResult:
        try:
            response_time = await check
        except ProbeFailure as e:
            logger.debug(f"Probe of {target} failed: {e}")
            return ProbeResult.failed()
        logger.debug(f"Probe of {target} succeeded in {response_time}ms")
        return ProbeResult(reachable=True, response_time=response_time)

    async def _ping(self, ip: str, timeout: float) -> int:
        ip = _checked_ip(ip)
        wait = max(1, math.ceil(timeout))
        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                "ping", "-c", "1", "-W", str(wait), ip,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise ProbeFailure(f"cannot run ping: {e}")
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=wait + 1)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProbeFailure("ping timed out")
        if returncode != 0:
            raise ProbeFailure(f"ping exited with {returncode}")
        return _elapsed_ms(started)

    async def _http_check(self, ip: str, port: int, timeout: float) -> int:
        ip = _checked_ip(ip)
        scheme = "https" if port == 443 else "http"
        url = f"{scheme}://{ip}:{port}{self.http_path}"
        started = time.monotonic()
        try:
            # Backends are addressed by IP, so certificates cannot match
            async with httpx.AsyncClient(timeout=timeout, verify=False, transport=self.http_transport) as client:
                response = await client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.HTTPError as e:
            raise ProbeFailure(f"GET {url}: {e.__class__.__name__}")
        if not response.is_success:
            raise ProbeFailure(f"GET {url} returned {response.status_code}")
        return _elapsed_ms(started)

    async def _dns_check(self, ip: str, port: int, timeout: float) -> int:
        ip = _checked_ip(ip)
        query = dns.message.make_query(self.dns_qname, dns.rdatatype.SOA)
        started = time.monotonic()
        try:
            # Any well-formed answer, even REFUSED, proves the server is serving
            await dns.asyncquery.udp(query, ip, timeout=timeout, port=port)
        except (dns.exception.DNSException, OSError) as e:
            raise ProbeFailure(f"DNS query to {ip}:{port}: {e.__class__.__name__}")
        return _elapsed_ms(started)
