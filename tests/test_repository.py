"""Repository and end-to-end cycle tests against SQLite"""
import random

import pytest
from sqlalchemy import func, select

from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.load_balancer import DNSLoadBalancer, DNSServer, DNSServerHealth, HealthStatus
from app.schemas.health import HealthSnapshot, ProbeResult
from app.schemas.load_balancer import DNSLoadBalancerCreate, DNSServerCreate
from app.services.dns_load_balancer import DNSLoadBalancerService
from app.services.health_service import HealthEvaluator
from app.services.load_balancer_repository import LoadBalancerRepository, session_repository
from app.services.selection import SelectionEngine
from tests.factories import FixedMetricsSource, StubProber, a_answers


@pytest.fixture
async def seeded(session_factory):
    """example.com with one static record and a two-server balancer"""
    async with session_factory() as db:
        domain = Domain(name="example.com")
        domain.dns_records = [DNSRecord(name="www", type="A", value="192.0.2.80", ttl=300)]
        balancer = DNSLoadBalancer(name="web", algorithm="round-robin")
        balancer.domain = domain
        balancer.servers = [
            DNSServer(name="a", ip="10.0.0.1", port=8080, weight=100),
            DNSServer(name="b", ip="10.0.0.2", port=8080, weight=100),
        ]
        idle = DNSLoadBalancer(name="idle", algorithm="weighted", is_active=False)
        idle.domain = domain
        db.add(domain)
        await db.commit()
        return {
            "domain_id": domain.id,
            "balancer_id": balancer.id,
            "idle_id": idle.id,
            "server_ids": [server.id for server in balancer.servers],
        }


async def count(session_factory, model, *criteria):
    async with session_factory() as db:
        query = select(func.count(model.id))
        if criteria:
            query = query.where(*criteria)
        result = await db.execute(query)
        return result.scalar_one()


class TestHealthRows:
    async def test_upsert_creates_once_then_updates(self, session_factory, seeded):
        server_id = seeded["server_ids"][0]
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            await repo.upsert_health(server_id, HealthSnapshot(
                status=HealthStatus.HEALTHY, response_time=12,
                uptime=3600, load=0.3, memory_usage=20, disk_usage=40,
            ))
            await repo.upsert_health(server_id, HealthSnapshot.unhealthy())

        assert await count(session_factory, DNSServerHealth, DNSServerHealth.server_id == server_id) == 1
        async with session_factory() as db:
            health = (await db.execute(
                select(DNSServerHealth).where(DNSServerHealth.server_id == server_id)
            )).scalar_one()
        assert health.status == "unhealthy"
        assert health.response_time == -1
        assert health.last_check is not None

    async def test_balancers_load_servers_with_health(self, session_factory, seeded):
        server_id = seeded["server_ids"][0]
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            await repo.upsert_health(server_id, HealthSnapshot(status=HealthStatus.DEGRADED, response_time=-1))
            balancers = await repo.get_active_balancers()

            assert [lb.id for lb in balancers] == [seeded["balancer_id"]]
            assert [s.status for s in balancers[0].servers] == ["degraded", "unknown"]
            assert balancers[0].hostname == "web.example.com"

            everything = await repo.get_all_balancers()
            assert {lb.id for lb in everything} == {seeded["balancer_id"], seeded["idle_id"]}


class TestRecords:
    async def test_upsert_record_creates_then_updates(self, session_factory, seeded):
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            await repo.upsert_record(seeded["domain_id"], "web.example.com", "A", "10.0.0.1", ttl=60,
                                     load_balancer_id=seeded["balancer_id"])
            await repo.upsert_record(seeded["domain_id"], "web.example.com", "A", "10.0.0.2", ttl=60,
                                     load_balancer_id=seeded["balancer_id"])

        criteria = (DNSRecord.name == "web.example.com", DNSRecord.type == "A")
        assert await count(session_factory, DNSRecord, *criteria) == 1
        async with session_factory() as db:
            record = (await db.execute(select(DNSRecord).where(*criteria))).scalar_one()
        assert record.value == "10.0.0.2"
        assert record.ttl == 60
        assert record.is_load_balanced is True
        assert record.load_balancer_id == seeded["balancer_id"]

    async def test_domains_come_with_records(self, session_factory, seeded):
        async with session_factory() as db:
            db.add(Domain(name="aaa.org"))
            await db.commit()
            domains = await LoadBalancerRepository(db).get_domains()

            assert [d.name for d in domains] == ["aaa.org", "example.com"]
            assert [r.name for r in domains[1].dns_records] == ["www"]


class TestCrud:
    async def test_create_balancer_and_add_server(self, session_factory, seeded):
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            created = await repo.create_balancer(DNSLoadBalancerCreate(name="api", domain_id=seeded["domain_id"]))
            server = await repo.add_server(created.id, DNSServerCreate(name="c", ip="10.0.0.3"))

            assert created.algorithm == "round-robin"
            assert created.health_check_interval == 30000
            assert created.health_check_timeout == 5000
            assert created.max_retries == 3
            assert (server.port, server.weight, server.health) == (80, 100, None)

            listed = await repo.list_balancers(domain_id=seeded["domain_id"])
            assert "api" in [lb.name for lb in listed]

    async def test_delete_server_removes_its_health(self, session_factory, seeded):
        server_id = seeded["server_ids"][0]
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            await repo.upsert_health(server_id, HealthSnapshot(status=HealthStatus.HEALTHY, response_time=3))
            assert await repo.delete_server(seeded["balancer_id"], server_id) is True
            assert await repo.delete_server(seeded["balancer_id"], server_id) is False

        assert await count(session_factory, DNSServer, DNSServer.id == server_id) == 0
        assert await count(session_factory, DNSServerHealth, DNSServerHealth.server_id == server_id) == 0

    async def test_delete_balancer_removes_servers(self, session_factory, seeded):
        async with session_factory() as db:
            repo = LoadBalancerRepository(db)
            assert await repo.delete_balancer(seeded["balancer_id"]) is True
            assert await repo.get_balancer(seeded["balancer_id"]) is None
            assert await repo.delete_balancer(seeded["balancer_id"]) is False

        assert await count(session_factory, DNSServer, DNSServer.load_balancer_id == seeded["balancer_id"]) == 0


async def test_cycle_against_the_database(session_factory, seeded, synthesizer, resolver_sync):
    prober = StubProber(ping_results={"10.0.0.2": ProbeResult.failed()})
    service = DNSLoadBalancerService(
        repository_factory=session_repository(session_factory),
        evaluator=HealthEvaluator(prober, FixedMetricsSource(), timeout=1),
        selector=SelectionEngine(clock=lambda: 0.0, rng=random.Random(5)),
        synthesizer=synthesizer,
        resolver_sync=resolver_sync,
    )

    result = await service.run_cycle()

    assert result.domains_written == ["example.com"]
    with open(resolver_sync.zone_file_path("example.com"), encoding="utf-8") as f:
        zone = f.read()
    assert a_answers(zone, "web") == ["10.0.0.1"]
    assert a_answers(zone, "www") == ["192.0.2.80"]

    assert await count(session_factory, DNSServerHealth) == 2
    async with session_factory() as db:
        pick = (await db.execute(
            select(DNSRecord).where(DNSRecord.is_load_balanced == True)
        )).scalar_one()
    assert (pick.name, pick.value, pick.ttl) == ("web.example.com", "10.0.0.1", 60)

    summary = await service.get_status_summary(seeded["balancer_id"])
    assert (summary.healthy_servers, summary.unhealthy_servers) == (1, 1)
