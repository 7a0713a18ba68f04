"""DNS load balancer pipeline: probe, evaluate, persist, select, synthesize, sync"""
import asyncio
import logging
from typing import AsyncContextManager, Callable, Iterable, List, Optional, Set, Tuple

from app.core.config import settings
from app.core.exceptions import LoadBalancerNotFound, PersistenceFailure, SynthesisFailure
from app.models.load_balancer import DNSLoadBalancer, DNSServer, HealthStatus
from app.schemas.health import HealthSnapshot
from app.schemas.load_balancer import (
    DNSServerResponse,
    LoadBalancerStatus,
    PropagationResult,
    ServerCheckResult,
    ZoneSyncResult,
)
from app.services.bind9_service import ResolverSync, check_propagation
from app.services.health_service import HealthEvaluator
from app.services.load_balancer_repository import LoadBalancerRepository, session_repository
from app.services.metrics_source import get_metrics_source
from app.services.selection import SelectionEngine, healthy_servers
from app.services.zone_service import ZoneSynthesizer

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[], AsyncContextManager[LoadBalancerRepository]]

# (load balancer id, domain id, hostname, advertised ip)
Selection = Tuple[int, int, str, str]


class DNSLoadBalancerService:
    """Keeps each balanced hostname's DNS answers aligned with server health.

    Collaborators are injected; every phase of a cycle runs in order so a
    failure can be traced to the phase that produced it.
    """

    def __init__(
        self,
        repository_factory: RepositoryFactory,
        evaluator: HealthEvaluator,
        selector: SelectionEngine,
        synthesizer: ZoneSynthesizer,
        resolver_sync: ResolverSync,
        concurrency: int = None,
    ):
        self.repository_factory = repository_factory
        self.evaluator = evaluator
        self.selector = selector
        self.synthesizer = synthesizer
        self.resolver_sync = resolver_sync
        self._probe_slots = asyncio.Semaphore(concurrency or settings.PROBE_CONCURRENCY)

    async def run_cycle(self) -> ZoneSyncResult:
        """One scheduled cycle over every active load balancer"""
        logger.info("Performing health checks...")
        async with self.repository_factory() as repo:
            balancers = await repo.get_active_balancers()
            await self._check_servers(repo, balancers)

            balancers = await repo.get_active_balancers()
            await self._advertise(repo, self._select(balancers))

            result = await self._resync(repo)
        logger.info(f"Health checks completed for {len(balancers)} load balancers")
        return result

    async def trigger_health_check(self, load_balancer_id: int) -> List[ServerCheckResult]:
        """Probe and evaluate one balancer's servers now"""
        async with self.repository_factory() as repo:
            load_balancer = await self._get_balancer(repo, load_balancer_id)
            return await self._check_servers(repo, [load_balancer])

    async def trigger_zone_resync(self, load_balancer_id: int) -> ZoneSyncResult:
        """Select, synthesize and commit for one balancer's domain now"""
        async with self.repository_factory() as repo:
            load_balancer = await self._get_balancer(repo, load_balancer_id)
            domain_id = load_balancer.domain_id
            if load_balancer.is_active:
                await self._advertise(repo, self._select([load_balancer]))
            else:
                logger.info(f"Load balancer {load_balancer.name} is inactive, not recording a pick")
            return await self._resync(repo, domain_ids={domain_id})

    async def update_dns(self, load_balancer_id: int) -> ZoneSyncResult:
        """Manual health check followed by a resync"""
        await self.trigger_health_check(load_balancer_id)
        return await self.trigger_zone_resync(load_balancer_id)

    async def resync_all(self) -> ZoneSyncResult:
        """Regenerate every zone from stored health, without probing"""
        async with self.repository_factory() as repo:
            return await self._resync(repo)

    async def get_status_summary(self, load_balancer_id: int) -> LoadBalancerStatus:
        """Server counts from stored health rows; nothing is probed"""
        async with self.repository_factory() as repo:
            load_balancer = await self._get_balancer(repo, load_balancer_id)

        statuses = [server.status for server in load_balancer.servers]
        total = len(statuses)
        healthy = statuses.count(HealthStatus.HEALTHY.value)
        unhealthy = statuses.count(HealthStatus.UNHEALTHY.value)
        return LoadBalancerStatus(
            id=load_balancer.id,
            name=load_balancer.name,
            algorithm=load_balancer.algorithm,
            is_active=load_balancer.is_active,
            total_servers=total,
            healthy_servers=healthy,
            unhealthy_servers=unhealthy,
            health_percentage=(healthy / total) * 100 if total > 0 else 0.0,
            servers=[DNSServerResponse.model_validate(server) for server in load_balancer.servers],
        )

    async def check_propagation(self, load_balancer_id: int) -> PropagationResult:
        async with self.repository_factory() as repo:
            load_balancer = await self._get_balancer(repo, load_balancer_id)
        hostname = load_balancer.hostname
        answers = await check_propagation(hostname, "A")
        return PropagationResult(hostname=hostname, record_type="A", answers=answers)

    @staticmethod
    async def _get_balancer(repo: LoadBalancerRepository, load_balancer_id: int) -> DNSLoadBalancer:
        load_balancer = await repo.get_balancer(load_balancer_id)
        if load_balancer is None:
            raise LoadBalancerNotFound(load_balancer_id)
        return load_balancer

    async def _evaluate(self, server: DNSServer, timeout: float) -> HealthSnapshot:
        async with self._probe_slots:
            return await self.evaluator.evaluate(server, timeout)

    async def _check_servers(
        self,
        repo: LoadBalancerRepository,
        balancers: Iterable[DNSLoadBalancer],
    ) -> List[ServerCheckResult]:
        # health_check_timeout is stored in milliseconds
        checks = [
            (server, lb.health_check_timeout / 1000 if lb.health_check_timeout else None)
            for lb in balancers for server in lb.servers if server.is_active
        ]
        # Read before any write: a rollback expires loaded objects
        identities = [(server.id, server.name, server.ip, server.port) for server, _ in checks]

        snapshots = await asyncio.gather(*(self._evaluate(server, timeout) for server, timeout in checks))

        # One session, so writes stay sequential
        results = []
        for (server_id, name, ip, port), snapshot in zip(identities, snapshots):
            try:
                await repo.upsert_health(server_id, snapshot)
            except PersistenceFailure as e:
                logger.error(f"Failed to update server health for {name} ({ip}:{port}): {e}")
            results.append(ServerCheckResult(
                server_id=server_id,
                name=name,
                status=snapshot.status.value,
                response_time=snapshot.response_time,
            ))
        return results

    def _select(self, balancers: Iterable[DNSLoadBalancer]) -> List[Selection]:
        selections = []
        for load_balancer in balancers:
            chosen = self.selector.select(load_balancer, healthy_servers(load_balancer))
            if not chosen:
                logger.info(f"No healthy servers for load balancer {load_balancer.name}")
                continue
            selections.append((
                load_balancer.id,
                load_balancer.domain_id,
                load_balancer.hostname,
                chosen[0].ip,
            ))
        return selections

    async def _advertise(self, repo: LoadBalancerRepository, selections: List[Selection]):
        """Record each pick on the balancer's load-balanced A record"""
        for load_balancer_id, domain_id, hostname, ip in selections:
            try:
                await repo.upsert_record(
                    domain_id,
                    hostname,
                    "A",
                    ip,
                    ttl=settings.LOAD_BALANCED_RECORD_TTL,
                    load_balancer_id=load_balancer_id,
                )
            except PersistenceFailure as e:
                logger.error(f"Failed to update DNS record {hostname}: {e}")
                continue
            logger.info(f"DNS record updated: {hostname} -> {ip}")

    async def _resync(self, repo: LoadBalancerRepository, domain_ids: Optional[Set[int]] = None) -> ZoneSyncResult:
        domains = await repo.get_domains()
        balancers = await repo.get_all_balancers()

        zones, skipped = {}, []
        for domain in domains:
            if domain_ids is not None and domain.id not in domain_ids:
                continue
            domain_balancers = [lb for lb in balancers if lb.domain_id == domain.id]
            try:
                zones[domain.name] = self.synthesizer.render(domain, domain_balancers)
            except SynthesisFailure as e:
                logger.error(f"Skipping zone {domain.name} this cycle: {e.reason}")
                skipped.append(domain.name)

        await self.resolver_sync.commit(zones, [domain.name for domain in domains])
        return ZoneSyncResult(domains_written=sorted(zones), domains_skipped=skipped)


def build_load_balancer_service(repository_factory: RepositoryFactory = None) -> DNSLoadBalancerService:
    """Service wired from settings"""
    return DNSLoadBalancerService(
        repository_factory=repository_factory or session_repository(),
        evaluator=HealthEvaluator(metrics_source=get_metrics_source()),
        selector=SelectionEngine(),
        synthesizer=ZoneSynthesizer(),
        resolver_sync=ResolverSync(),
    )
