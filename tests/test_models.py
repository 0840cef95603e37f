"""Unit tests for models.py - Resource value types."""

from lbsync.models import (
    VIP,
    LoadBalancerStatus,
    Monitor,
    Node,
    Pool,
    PoolMember,
    ProviderConfig,
)


class TestMonitor:
    """Tests for Monitor."""

    def test_default_monitor_is_empty(self):
        assert Monitor().is_empty() is True

    def test_named_monitor_is_not_empty(self):
        assert Monitor(name="Monitor-x").is_empty() is False

    def test_differs_on_port_path_and_type(self):
        base = Monitor(name="m", path="/", port=80, monitor_type="http")
        assert base.differs_from(Monitor(name="m", path="/", port=81, monitor_type="http"))
        assert base.differs_from(Monitor(name="m", path="/x", port=80, monitor_type="http"))
        assert base.differs_from(Monitor(name="m", path="/", port=80, monitor_type="https"))

    def test_name_does_not_count_as_difference(self):
        a = Monitor(name="a", path="/", port=80, monitor_type="http")
        b = Monitor(name="b", path="/", port=80, monitor_type="http")
        assert a.differs_from(b) is False

    def test_from_dict_accepts_monitortype_alias(self):
        monitor = Monitor.from_dict({"name": "m", "path": "/h", "port": "8080", "monitortype": "https"})
        assert monitor == Monitor(name="m", path="/h", port=8080, monitor_type="https")

    def test_from_dict_none_is_empty(self):
        assert Monitor.from_dict(None).is_empty()


class TestPoolMember:
    """Tests for PoolMember identity."""

    def test_key_ignores_node_name(self):
        a = PoolMember(node=Node(name="n1", host="1.1.1.1"), port=80)
        b = PoolMember(node=Node(name="renamed", host="1.1.1.1"), port=80)
        assert a.key == b.key == ("1.1.1.1", 80)

    def test_address(self):
        member = PoolMember(node=Node(name="n1", host="1.1.1.1"), port=443)
        assert member.address == "1.1.1.1:443"


class TestProviderConfig:
    """Tests for ProviderConfig."""

    def test_defaults(self):
        cfg = ProviderConfig(vendor="F5_BigIP", host="lb", port=443)
        assert cfg.validate_certs is False
        assert cfg.lb_method == "ROUNDROBIN"
        assert cfg.debug is False
        assert cfg.partition == ""

    def test_from_dict_aliases(self):
        cfg = ProviderConfig.from_dict(
            {
                "vendor": "HAProxy",
                "host": "lb",
                "port": "5555",
                "validatecerts": True,
                "lbmethod": "leastconnection",
            }
        )
        assert cfg.port == 5555
        assert cfg.validate_certs is True
        assert cfg.lb_method == "LEASTCONNECTION"

    def test_round_trip(self):
        cfg = ProviderConfig(
            vendor="F5_BigIP", host="lb", port=443, partition="Common", debug=True
        )
        assert ProviderConfig.from_dict(cfg.to_dict()) == cfg


class TestLoadBalancerStatus:
    """Tests for LoadBalancerStatus serialization."""

    def test_to_dict_uses_document_keys(self, sample_pool, sample_vip, sample_monitor):
        status = LoadBalancerStatus(
            vips=[sample_vip], pools=[sample_pool], monitor=sample_monitor, ports=[80]
        )
        data = status.to_dict()
        assert data["vips"][0]["pool"] == "Pool-x-80"
        assert data["pools"][0]["monitor"] == "Monitor-x"
        assert data["pools"][0]["members"][0] == {
            "node": {"name": "n1", "host": "1.1.1.1", "labels": {}},
            "port": 80,
        }
        assert data["provider"] is None

    def test_from_dict_restores_snapshot(self, sample_pool, sample_vip, sample_monitor, nodes):
        status = LoadBalancerStatus(
            vips=[sample_vip],
            pools=[sample_pool],
            monitor=sample_monitor,
            ports=[80],
            nodes=nodes,
            provider=ProviderConfig(vendor="Dummy", host="10.0.0.1", port=443),
        )
        assert LoadBalancerStatus.from_dict(status.to_dict()) == status

    def test_from_empty_dict(self):
        status = LoadBalancerStatus.from_dict({})
        assert status.vips == []
        assert status.pools == []
        assert status.monitor.is_empty()
        assert status.provider is None


class TestPoolAndVIP:
    """Tests for Pool and VIP."""

    def test_pool_defaults(self):
        pool = Pool(name="p")
        assert pool.members == []
        assert pool.monitor_name == ""

    def test_vip_differs(self):
        vip = VIP(name="v", ip="10.0.0.1", port=80, pool_name="p")
        assert vip.differs_from(VIP(name="v", ip="10.0.0.1", port=80, pool_name="q"))
        assert not vip.differs_from(VIP(name="v", ip="10.0.0.1", port=80, pool_name="p"))
