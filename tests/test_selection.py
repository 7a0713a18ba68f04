"""Tests for server selection"""
import random

import pytest

from app.models.load_balancer import LoadBalancerAlgorithm
from app.services.selection import SelectionEngine, health_score, healthy_servers
from tests.factories import make_balancer, make_domain, make_server


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def domain():
    return make_domain("example.com")


def test_healthy_servers_filters_status_and_active(domain):
    good = make_server("10.0.0.1")
    lb = make_balancer(domain, servers=[
        good,
        make_server("10.0.0.2", status="degraded"),
        make_server("10.0.0.3", status="unhealthy"),
        make_server("10.0.0.4", status=None),
        make_server("10.0.0.5", is_active=False),
    ])
    assert healthy_servers(lb) == [good]


def test_unknown_algorithm_parses_as_round_robin():
    assert LoadBalancerAlgorithm.parse("least-connections") == LoadBalancerAlgorithm.ROUND_ROBIN
    assert LoadBalancerAlgorithm.parse("weighted") == LoadBalancerAlgorithm.WEIGHTED


class TestSelect:
    def test_no_servers_selects_nothing(self, domain):
        engine = SelectionEngine()
        for algorithm in ("round-robin", "weighted", "health-based"):
            assert engine.select(make_balancer(domain, algorithm=algorithm), []) == []

    def test_round_robin_visits_every_server(self, domain):
        servers = [make_server(f"10.0.0.{i}") for i in range(1, 4)]
        lb = make_balancer(domain, servers=servers)
        clock = Clock()
        engine = SelectionEngine(clock=clock)

        seen = []
        for _ in range(len(servers)):
            seen.extend(engine.select(lb, servers))
            clock.now += 1

        assert sorted(s.ip for s in seen) == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]

    def test_round_robin_is_stable_within_a_second(self, domain):
        servers = [make_server("10.0.0.1"), make_server("10.0.0.2")]
        lb = make_balancer(domain, servers=servers)
        clock = Clock(100.0)
        engine = SelectionEngine(clock=clock)

        first = engine.select(lb, servers)
        clock.now = 100.9
        assert engine.select(lb, servers) == first == [servers[0]]

    def test_unknown_algorithm_uses_round_robin(self, domain):
        servers = [make_server("10.0.0.1"), make_server("10.0.0.2")]
        lb = make_balancer(domain, algorithm="least-connections", servers=servers)
        engine = SelectionEngine(clock=Clock(101.0))

        assert engine.select(lb, servers) == [servers[1]]

    def test_weighted_frequency_follows_weights(self, domain):
        heavy = make_server("10.0.0.1", weight=100)
        light = make_server("10.0.0.2", weight=50)
        lb = make_balancer(domain, algorithm="weighted", servers=[heavy, light])
        engine = SelectionEngine(rng=random.Random(42))

        draws = 30000
        heavy_hits = sum(engine.select(lb, [heavy, light]) == [heavy] for _ in range(draws))

        assert abs(heavy_hits / draws - 2 / 3) < 0.02

    def test_weighted_zero_weight_is_never_chosen(self, domain):
        live = make_server("10.0.0.1", weight=10)
        idle = make_server("10.0.0.2", weight=0)
        lb = make_balancer(domain, algorithm="weighted", servers=[idle, live])
        engine = SelectionEngine(rng=random.Random(1))

        assert all(engine.select(lb, [idle, live]) == [live] for _ in range(500))

    def test_weighted_all_zero_selects_nothing(self, domain):
        servers = [make_server("10.0.0.1", weight=0), make_server("10.0.0.2", weight=0)]
        lb = make_balancer(domain, algorithm="weighted", servers=servers)

        assert SelectionEngine().select(lb, servers) == []

    def test_health_based_picks_best_score(self, domain):
        slow = make_server("10.0.0.1", response_time=80)
        fast = make_server("10.0.0.2", response_time=5)
        lb = make_balancer(domain, algorithm="health-based", servers=[slow, fast])

        assert SelectionEngine().select(lb, [slow, fast]) == [fast]

    def test_health_based_tie_keeps_first(self, domain):
        first = make_server("10.0.0.1")
        second = make_server("10.0.0.2")
        lb = make_balancer(domain, algorithm="health-based", servers=[first, second])

        assert SelectionEngine().select(lb, [first, second]) == [first]

    def test_faster_response_never_lowers_rank(self, domain):
        steady = make_server("10.0.0.1", response_time=50)
        improving = make_server("10.0.0.2", response_time=500)
        lb = make_balancer(domain, algorithm="health-based", servers=[steady, improving])
        engine = SelectionEngine()

        assert engine.select(lb, [steady, improving]) == [steady]
        improving.health.response_time = 10
        assert engine.select(lb, [steady, improving]) == [improving]


class TestHealthScore:
    def test_composite(self):
        server = make_server(
            "10.0.0.1", response_time=10, uptime=7200, load=1.0,
            memory_usage=40, disk_usage=30,
        )
        # 90 latency + 2 uptime + 80 load + 60 memory + 70 disk
        assert health_score(server) == pytest.approx(302)

    def test_unmeasured_response_time_earns_nothing(self):
        server = make_server(
            "10.0.0.1", response_time=-1, uptime=0, load=0,
            memory_usage=0, disk_usage=0,
        )
        assert health_score(server) == pytest.approx(300)

    def test_uptime_and_load_are_capped(self):
        server = make_server(
            "10.0.0.1", response_time=200, uptime=10_000_000, load=9,
            memory_usage=100, disk_usage=100,
        )
        assert health_score(server) == pytest.approx(100)

    def test_no_health_row_scores_zero(self):
        assert health_score(make_server("10.0.0.1", status=None)) == 0
