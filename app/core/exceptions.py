"""Load balancer error taxonomy"""


class LoadBalancerError(Exception):
    """Base class for load balancer engine errors"""


class ProbeFailure(LoadBalancerError):
    """A network probe did not succeed (expected, converted to unreachable)"""


class PersistenceFailure(LoadBalancerError):
    """A data-access write failed"""


class SynthesisFailure(LoadBalancerError):
    """Zone text could not be generated for a domain"""

    def __init__(self, domain_name: str, reason: str):
        super().__init__(f"{domain_name}: {reason}")
        self.domain_name = domain_name
        self.reason = reason


class SyncFailure(LoadBalancerError):
    """Resolver reload and restart both failed"""


class LoadBalancerNotFound(LoadBalancerError):
    """No load balancer with the requested id"""

    def __init__(self, load_balancer_id: int):
        super().__init__(f"Load balancer {load_balancer_id} not found")
        self.load_balancer_id = load_balancer_id
