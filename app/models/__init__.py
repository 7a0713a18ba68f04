from app.models.domain import Domain
from app.models.dns import DNSRecord
from app.models.load_balancer import (
    DNSLoadBalancer,
    DNSServer,
    DNSServerHealth,
    HealthStatus,
    LoadBalancerAlgorithm,
)
