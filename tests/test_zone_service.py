"""Tests for zone file synthesis"""
import dns.zone
import pytest

from app.core.exceptions import SynthesisFailure
from app.services.zone_service import ZoneSynthesizer, normalize_cname_target, quote_txt, relative_name
from tests.factories import (
    a_answers,
    make_balancer,
    make_domain,
    make_record,
    make_server,
    srv_lines,
)


@pytest.mark.parametrize("name, expected", [
    ("example.com", "@"),
    ("example.com.", "@"),
    ("@", "@"),
    ("", "@"),
    ("www.example.com", "www"),
    ("a.b.example.com.", "a.b"),
    ("WWW.Example.COM", "www"),
    ("mail", "mail"),
    ("foo.other.org", None),
    ("notexample.com", None),
])
def test_relative_name(name, expected):
    assert relative_name(name, "example.com") == expected


@pytest.mark.parametrize("target, expected", [
    ("foo", "foo.example.com."),
    ("foo.example.com", "foo.example.com."),
    ("bar.example.com.", "bar.example.com."),
    ("cdn.provider.net.", "cdn.provider.net."),
])
def test_normalize_cname_target(target, expected):
    assert normalize_cname_target(target, "example.com") == expected


class TestStaticRecords:
    def test_preamble(self, synthesizer):
        zone = synthesizer.synthesize(make_domain("example.com"), [])

        assert zone.startswith("$TTL 86400\n")
        assert "@\tIN\tSOA\texample.com. admin.example.com. (" in zone
        assert "2023080701\t; Serial" in zone
        assert "@\tIN\tNS\tns1.example.com.\n" in zone
        assert "@\tIN\tA\t127.0.0.1\n" in zone
        assert "ns1\tIN\tA\t127.0.0.1\n" in zone

    def test_record_types(self, synthesizer):
        domain = make_domain("example.com", [
            make_record("example.com", "A", "192.0.2.10"),
            make_record("www", "CNAME", "web"),
            make_record("@", "MX", "mail.example.com.", priority=None),
            make_record("txt.example.com", "TXT", "v=spf1 -all", ttl=120),
            make_record("_sip._tcp.example.com", "SRV", "sip.example.com.", priority=10, weight=60, port=5060),
        ])
        zone = synthesizer.synthesize(domain, [])

        assert "@\t300\tIN\tA\t192.0.2.10\n" in zone
        assert "www\t300\tIN\tCNAME\tweb.example.com.\n" in zone
        assert "@\t300\tIN\tMX\t10 mail.example.com.\n" in zone
        assert 'txt\t120\tIN\tTXT\t"v=spf1 -all"\n' in zone
        assert "_sip._tcp\t300\tIN\tSRV\t10 60 5060 sip.example.com.\n" in zone

    def test_foreign_record_is_skipped(self, synthesizer):
        domain = make_domain("example.com", [
            make_record("www.other.org", "A", "192.0.2.1"),
            make_record("www", "A", "192.0.2.2"),
        ])
        zone = synthesizer.synthesize(domain, [])

        assert "192.0.2.1" not in zone
        assert a_answers(zone, "www") == ["192.0.2.2"]

    def test_load_balanced_records_are_not_emitted_statically(self, synthesizer):
        domain = make_domain("example.com", [
            make_record("web.example.com", "A", "10.9.9.9", ttl=60, is_load_balanced=True),
        ])
        zone = synthesizer.synthesize(domain, [])

        assert "10.9.9.9" not in zone

    def test_srv_without_port_fails(self, synthesizer):
        domain = make_domain("example.com", [make_record("_sip._tcp.example.com", "SRV", "sip.example.com.")])

        with pytest.raises(SynthesisFailure) as excinfo:
            synthesizer.synthesize(domain, [])
        assert excinfo.value.domain_name == "example.com"

    def test_record_without_value_fails(self, synthesizer):
        domain = make_domain("example.com", [make_record("www", "A", "")])

        with pytest.raises(SynthesisFailure):
            synthesizer.synthesize(domain, [])


class TestBalancerRecords:
    def test_round_robin_lists_every_healthy_server(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "round-robin", [
            make_server("10.0.0.1"),
            make_server("10.0.0.2"),
        ])
        zone = synthesizer.synthesize(domain, [lb])

        assert a_answers(zone, "web") == ["10.0.0.1", "10.0.0.2"]
        assert "web\t60\tIN\tA\t10.0.0.1\n" in zone

    def test_unhealthy_servers_are_withdrawn(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "round-robin", [
            make_server("10.0.0.1"),
            make_server("10.0.0.2", status="unhealthy"),
            make_server("10.0.0.3", status="degraded"),
        ])
        zone = synthesizer.synthesize(domain, [lb])

        assert a_answers(zone, "web") == ["10.0.0.1"]
        assert srv_lines(zone) == []

    def test_no_healthy_servers_emits_nothing_for_the_balancer(self, synthesizer):
        domain = make_domain("example.com", [make_record("www", "A", "192.0.2.2")])
        lb = make_balancer(domain, "web", "round-robin", [
            make_server("10.0.0.1", status="unhealthy"),
            make_server("10.0.0.2", status=None),
        ])
        zone = synthesizer.synthesize(domain, [lb])

        assert a_answers(zone, "web") == []
        assert srv_lines(zone) == []
        assert a_answers(zone, "www") == ["192.0.2.2"]
        assert "ns1\tIN\tA\t127.0.0.1\n" in zone

    def test_weighted_repeats_answers_per_ten_weight(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "weighted", [
            make_server("10.0.0.1", weight=100),
            make_server("10.0.0.2", weight=50),
        ])
        answers = a_answers(synthesizer.synthesize(domain, [lb]), "web")

        assert answers.count("10.0.0.1") == 10
        assert answers.count("10.0.0.2") == 5

    def test_health_based_emits_fastest_three(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "health-based", [
            make_server("10.0.0.1", response_time=40),
            make_server("10.0.0.2", response_time=-1),
            make_server("10.0.0.3", response_time=5),
            make_server("10.0.0.4", response_time=90),
            make_server("10.0.0.5", response_time=20),
        ])
        answers = a_answers(synthesizer.synthesize(domain, [lb]), "web")

        assert answers == ["10.0.0.3", "10.0.0.5", "10.0.0.1"]

    def test_unknown_algorithm_emits_like_round_robin(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "least-connections", [
            make_server("10.0.0.1", weight=100),
            make_server("10.0.0.2", weight=100),
        ])
        assert a_answers(synthesizer.synthesize(domain, [lb]), "web") == ["10.0.0.1", "10.0.0.2"]

    def test_srv_records_for_multiple_servers(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "round-robin", [
            make_server("10.0.0.1", port=80),
            make_server("10.0.0.2", port=8080),
        ])
        zone = synthesizer.synthesize(domain, [lb])

        assert srv_lines(zone) == [
            "_web._tcp.example.com.\t60\tIN\tSRV\t0 50 80 10.0.0.1.",
            "_web._tcp.example.com.\t60\tIN\tSRV\t0 50 8080 10.0.0.2.",
        ]

    def test_single_server_has_no_srv(self, synthesizer):
        domain = make_domain("example.com")
        lb = make_balancer(domain, "web", "round-robin", [make_server("10.0.0.1")])

        assert srv_lines(synthesizer.synthesize(domain, [lb])) == []

    def test_inactive_or_foreign_balancers_are_ignored(self, synthesizer):
        domain = make_domain("example.com")
        other = make_domain("other.org")
        inactive = make_balancer(domain, "old", servers=[make_server("10.0.0.1")], is_active=False)
        foreign = make_balancer(other, "api", servers=[make_server("10.0.0.2")])

        zone = synthesizer.synthesize(domain, [inactive, foreign])

        assert a_answers(zone, "old") == []
        assert a_answers(zone, "api") == []


class TestDeterminismAndValidation:
    def build(self):
        domain = make_domain("example.com", [
            make_record("www", "CNAME", "web"),
            make_record("@", "MX", "mail.example.com.", priority=5),
            make_record("mail", "A", "192.0.2.25"),
        ])
        lb = make_balancer(domain, "web", "weighted", [
            make_server("10.0.0.1", weight=30),
            make_server("10.0.0.2", weight=20),
        ])
        return domain, lb

    def test_same_snapshot_gives_identical_text(self, synthesizer):
        domain, lb = self.build()
        assert synthesizer.synthesize(domain, [lb]) == synthesizer.synthesize(domain, [lb])

    def test_rendered_zone_parses(self, synthesizer):
        domain, lb = self.build()
        zone = synthesizer.render(domain, [lb])
        assert a_answers(zone, "web").count("10.0.0.1") == 3

    def test_invalid_zone_is_rejected(self, synthesizer):
        domain = make_domain("example.com", [make_record("www", "A", "not-an-address")])

        with pytest.raises(SynthesisFailure) as excinfo:
            synthesizer.render(domain, [])
        assert excinfo.value.domain_name == "example.com"

    def test_invalid_domain_name_is_rejected(self, synthesizer):
        domain = make_domain('evil.com"; }; include "/etc/shadow')

        with pytest.raises(SynthesisFailure, match="invalid domain name"):
            synthesizer.render(domain, [])

    def test_long_txt_is_split_into_strings(self, synthesizer):
        dkim = "v=DKIM1; k=rsa; p=" + "MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8A" * 12
        domain = make_domain("example.com", [make_record("dkim", "TXT", dkim)])

        zone = synthesizer.render(domain, [])

        parsed = dns.zone.from_text(zone, origin="example.com", relativize=True)
        rdata = parsed.find_rdataset("dkim", "TXT")[0]
        assert [len(s) for s in rdata.strings] == [255, len(dkim) - 255]
        assert b"".join(rdata.strings) == dkim.encode()


def test_quote_txt_escapes_each_string():
    assert quote_txt('say "hi"') == '"say \\"hi\\""'
    assert quote_txt("x" * 300) == '"{}" "{}"'.format("x" * 255, "x" * 45)
