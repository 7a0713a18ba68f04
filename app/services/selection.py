"""Server selection per load balancing algorithm"""
import logging
import random
import time
from typing import Callable, Dict, List, Optional, Sequence

from app.models.load_balancer import DNSLoadBalancer, DNSServer, HealthStatus, LoadBalancerAlgorithm

logger = logging.getLogger(__name__)


def healthy_servers(load_balancer: DNSLoadBalancer) -> List[DNSServer]:
    """Active servers whose last check was healthy, in server order"""
    return [
        server for server in load_balancer.servers
        if server.is_active and server.status == HealthStatus.HEALTHY.value
    ]


def health_score(server: DNSServer) -> float:
    """Composite score: latency, uptime, load, memory and disk, higher is better"""
    health = server.health
    if health is None:
        return 0.0

    score = 0.0
    # An unmeasured response time (-1) earns no latency points
    if health.response_time >= 0:
        score += max(0, 100 - health.response_time)
    score += min(100, health.uptime / 3600)
    score += max(0, 100 - health.load * 20)
    score += max(0, 100 - health.memory_usage)
    score += max(0, 100 - health.disk_usage)
    return score


class SelectionEngine:
    """Picks the server(s) to advertise for a load balancer"""

    def __init__(self, clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None):
        self.clock = clock
        self.rng = rng or random.Random()
        self._strategies: Dict[LoadBalancerAlgorithm, Callable[[Sequence[DNSServer]], Optional[DNSServer]]] = {
            LoadBalancerAlgorithm.ROUND_ROBIN: self.round_robin,
            LoadBalancerAlgorithm.WEIGHTED: self.weighted,
            LoadBalancerAlgorithm.HEALTH_BASED: self.health_based,
        }

    def select(self, load_balancer: DNSLoadBalancer, servers: Sequence[DNSServer]) -> List[DNSServer]:
        """``servers`` must already be filtered to healthy ones"""
        if not servers:
            return []
        algorithm = LoadBalancerAlgorithm.parse(load_balancer.algorithm)
        selected = self._strategies[algorithm](servers)
        return [selected] if selected is not None else []

    def round_robin(self, servers: Sequence[DNSServer]) -> DNSServer:
        # Rotates once per wall-clock second
        return servers[int(self.clock()) % len(servers)]

    def weighted(self, servers: Sequence[DNSServer]) -> Optional[DNSServer]:
        total = sum(max(0, server.weight or 0) for server in servers)
        if total <= 0:
            return None
        draw = self.rng.random() * total
        boundary = 0
        for server in servers:
            boundary += max(0, server.weight or 0)
            if draw < boundary:
                return server
        return None

    def health_based(self, servers: Sequence[DNSServer]) -> DNSServer:
        best, best_score = servers[0], health_score(servers[0])
        for server in servers[1:]:
            score = health_score(server)
            if score > best_score:
                best, best_score = server, score
        return best
