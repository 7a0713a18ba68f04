"""Zone file synthesis for BIND9"""
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional

import dns.exception
import dns.zone

from app.core.config import settings
from app.core.exceptions import SynthesisFailure
from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.load_balancer import DNSLoadBalancer, DNSServer, LoadBalancerAlgorithm
from app.schemas.dns import DOMAIN_NAME_PATTERN
from app.services.selection import healthy_servers

logger = logging.getLogger(__name__)

DOMAIN_NAME_RE = re.compile(DOMAIN_NAME_PATTERN)

# Answers advertised for a balancer: the server IPs, repeated for weight
AnswerBuilder = Callable[[List[DNSServer]], List[str]]


def relative_name(name: str, domain_name: str) -> Optional[str]:
    """Rewrite a stored record name relative to the zone apex.

    Returns None when the name belongs to another zone.
    """
    name = (name or "").strip().rstrip(".").lower()
    domain_name = domain_name.lower()
    if name in ("", "@", domain_name):
        return "@"
    if name.endswith(f".{domain_name}"):
        return name[:-len(domain_name) - 1]
    if "." in name:
        return None
    return name


def normalize_cname_target(target: str, domain_name: str) -> str:
    """Make a CNAME target fully qualified"""
    target = target.strip()
    if target.endswith(f".{domain_name}"):
        target = target[:-len(domain_name) - 1]
    if not target.endswith("."):
        target = f"{target}.{domain_name}."
    return target


# Longest character-string a TXT record may carry
TXT_CHUNK_OCTETS = 255


def quote_txt(value: str) -> str:
    """Quote TXT data, split into strings of at most 255 octets"""
    chunks, current, size = [], "", 0
    for char in value:
        octets = len(char.encode("utf-8"))
        if size + octets > TXT_CHUNK_OCTETS:
            chunks.append(current)
            current, size = "", 0
        current += char
        size += octets
    chunks.append(current)
    return " ".join('"{}"'.format(c.replace("\\", "\\\\").replace('"', '\\"')) for c in chunks)


def _round_robin_answers(servers: List[DNSServer]) -> List[str]:
    return [server.ip for server in servers]


def _weighted_answers(servers: List[DNSServer]) -> List[str]:
    answers = []
    for server in servers:
        answers.extend([server.ip] * ((server.weight or 0) // 10))
    return answers


def _health_based_answers(servers: List[DNSServer]) -> List[str]:
    # Fastest three; unmeasured (-1) response times sort last
    ranked = sorted(
        servers,
        key=lambda s: (s.health.response_time < 0, s.health.response_time),
    )
    return [server.ip for server in ranked[:3]]


ANSWER_BUILDERS: Dict[LoadBalancerAlgorithm, AnswerBuilder] = {
    LoadBalancerAlgorithm.ROUND_ROBIN: _round_robin_answers,
    LoadBalancerAlgorithm.WEIGHTED: _weighted_answers,
    LoadBalancerAlgorithm.HEALTH_BASED: _health_based_answers,
}


class ZoneSynthesizer:
    """Renders the zone text of one domain from its records and balancers"""

    def __init__(
        self,
        serial: int = None,
        nameserver_ip: str = None,
        default_ttl: int = None,
        record_ttl: int = None,
        balanced_ttl: int = None,
    ):
        self.serial = serial or settings.ZONE_SERIAL
        self.nameserver_ip = nameserver_ip or settings.ZONE_NAMESERVER_IP
        self.default_ttl = default_ttl or settings.ZONE_DEFAULT_TTL
        self.record_ttl = record_ttl or settings.DEFAULT_RECORD_TTL
        self.balanced_ttl = balanced_ttl or settings.LOAD_BALANCED_RECORD_TTL

    def synthesize(self, domain: Domain, load_balancers: Iterable[DNSLoadBalancer]) -> str:
        """Full zone text; identical input always gives identical output"""
        lines = [self._preamble(domain.name)]
        for record in domain.dns_records:
            if record.is_load_balanced:
                continue
            line = self._record_line(record, domain.name)
            if line is not None:
                lines.append(line)

        for load_balancer in load_balancers:
            if not load_balancer.is_active or load_balancer.domain_id != domain.id:
                continue
            lines.extend(self._balancer_lines(load_balancer, domain.name))

        return "".join(lines)

    def validate(self, domain_name: str, zone_text: str):
        """Parse the zone with dnspython; raises SynthesisFailure when BIND would reject it"""
        try:
            dns.zone.from_text(zone_text, origin=domain_name, relativize=True)
        except dns.exception.DNSException as e:
            raise SynthesisFailure(domain_name, f"invalid zone: {e}")

    def render(self, domain: Domain, load_balancers: Iterable[DNSLoadBalancer]) -> str:
        """Synthesize and validate"""
        if not DOMAIN_NAME_RE.match(domain.name or ""):
            raise SynthesisFailure(domain.name, "invalid domain name")
        zone_text = self.synthesize(domain, load_balancers)
        self.validate(domain.name, zone_text)
        return zone_text

    def _preamble(self, domain_name: str) -> str:
        return (
            f"$TTL {self.default_ttl}\n"
            f"@\tIN\tSOA\t{domain_name}. admin.{domain_name}. (\n"
            f"\t\t\t{self.serial}\t; Serial\n"
            f"\t\t\t{settings.ZONE_REFRESH}\t\t; Refresh\n"
            f"\t\t\t{settings.ZONE_RETRY}\t\t; Retry\n"
            f"\t\t\t{settings.ZONE_EXPIRE}\t\t; Expire\n"
            f"\t\t\t{settings.ZONE_NEGATIVE_TTL} )\t; Negative Cache TTL\n"
            f"\n"
            f"@\tIN\tNS\tns1.{domain_name}.\n"
            f"@\tIN\tA\t{self.nameserver_ip}\n"
            f"ns1\tIN\tA\t{self.nameserver_ip}\n"
            f"\n"
        )

    @staticmethod
    def _line(name: str, ttl: int, rtype: str, data: str) -> str:
        return f"{name}\t{ttl}\tIN\t{rtype}\t{data}\n"

    def _record_line(self, record: DNSRecord, domain_name: str) -> Optional[str]:
        name = relative_name(record.name, domain_name)
        if name is None:
            logger.info(f"Skipping record {record.name} as it's not a subdomain of {domain_name}")
            return None

        rtype = (record.type or "").upper()
        value = (record.value or "").strip()
        if not rtype or not value:
            raise SynthesisFailure(domain_name, f"record {record.id} ({record.name}) has no type or value")

        ttl = record.ttl or self.record_ttl
        if rtype == "MX":
            priority = record.priority if record.priority is not None else 10
            data = f"{priority} {value}"
        elif rtype == "CNAME":
            data = normalize_cname_target(value, domain_name)
        elif rtype == "SRV":
            if record.port is None:
                raise SynthesisFailure(domain_name, f"SRV record {record.id} ({record.name}) has no port")
            data = f"{record.priority or 0} {record.weight or 0} {record.port} {value}"
        elif rtype == "TXT" and not value.startswith('"'):
            data = quote_txt(value)
        else:
            data = value
        return self._line(name, ttl, rtype, data)

    def _balancer_lines(self, load_balancer: DNSLoadBalancer, domain_name: str) -> List[str]:
        servers = healthy_servers(load_balancer)
        if not servers:
            logger.info(f"No healthy servers for load balancer {load_balancer.name}, withdrawing its records")
            return []

        algorithm = LoadBalancerAlgorithm.parse(load_balancer.algorithm)
        lines = [
            self._line(load_balancer.name, self.balanced_ttl, "A", ip)
            for ip in ANSWER_BUILDERS[algorithm](servers)
        ]

        if len(servers) > 1:
            srv_name = f"_{load_balancer.name}._tcp.{domain_name}."
            srv_weight = 100 // len(servers)
            for server in servers:
                lines.append(self._line(
                    srv_name, self.balanced_ttl, "SRV",
                    f"0 {srv_weight} {server.port} {server.ip}.",
                ))
        return lines
