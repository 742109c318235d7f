"""Unit tests for replica role probing."""

import pytest
from unittest.mock import AsyncMock, Mock, patch
from redis.exceptions import AuthenticationError, ConnectionError
from sentinelop.topology import (
    ProbeAuth,
    Role,
    RoleInfo,
    TopologyProber,
    parse_replication_info,
)

MASTER_INFO = (
    "# Replication\r\n"
    "role:master\r\n"
    "connected_slaves:2\r\n"
    "slave0:ip=10.0.0.2,port=6379,state=online,offset=42,lag=0\r\n"
    "slave1:ip=10.0.0.3,port=6379,state=online,offset=42,lag=1\r\n"
    "master_repl_offset:42\r\n"
)

REPLICA_INFO = (
    "# Replication\r\n"
    "role:slave\r\n"
    "master_host:10.0.0.1\r\n"
    "master_link_status:up\r\n"
    "connected_slaves:0\r\n"
)


@pytest.fixture
def client():
    client = Mock()
    client.info = AsyncMock(return_value=MASTER_INFO)
    client.aclose = AsyncMock()
    return client


class TestParseReplicationInfo:
    """Tests for parse_replication_info."""

    def test_master(self):
        info = parse_replication_info(MASTER_INFO)
        assert info.role is Role.MASTER
        assert info.connected_slaves == 2
        assert info.error is None

    def test_replica(self):
        info = parse_replication_info(REPLICA_INFO)
        assert info.role is Role.REPLICA
        assert info.connected_slaves == 0

    def test_empty(self):
        info = parse_replication_info("")
        assert info.role is Role.UNKNOWN
        assert info.connected_slaves == 0

    def test_unparseable_slave_count(self):
        info = parse_replication_info("role:master\r\nconnected_slaves:many\r\n")
        assert info.role is Role.MASTER
        assert info.connected_slaves == 0


class TestRole:
    """Tests for Role.from_info."""

    def test_aliases(self):
        assert Role.from_info("slave") is Role.REPLICA
        assert Role.from_info("replica") is Role.REPLICA
        assert Role.from_info("MASTER") is Role.MASTER
        assert Role.from_info("sentinel") is Role.SENTINEL

    def test_unknown(self):
        assert Role.from_info(None) is Role.UNKNOWN
        assert Role.from_info("leader") is Role.UNKNOWN

    def test_unknown_info(self):
        info = RoleInfo.unknown("TimeoutError")
        assert info.role is Role.UNKNOWN
        assert info.error == "TimeoutError"


class TestProbe:
    """Tests for TopologyProber.probe."""

    @pytest.mark.asyncio
    async def test_master(self, client):
        prober = TopologyProber(timeout=1.0)
        with patch.object(TopologyProber, "connect", return_value=client):
            info = await prober.probe("10.0.0.1")
        assert info.role is Role.MASTER
        assert info.connected_slaves == 2
        client.info.assert_awaited_once_with("replication")
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_error_is_unknown(self, client):
        client.info.side_effect = ConnectionError("Connection refused")
        prober = TopologyProber(timeout=1.0)
        with patch.object(TopologyProber, "connect", return_value=client):
            info = await prober.probe("10.0.0.1")
        assert info.role is Role.UNKNOWN
        assert info.error == "ConnectionError"
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_auth_error_is_unknown(self, client):
        client.info.side_effect = AuthenticationError("invalid password")
        prober = TopologyProber(timeout=1.0)
        with patch.object(TopologyProber, "connect", return_value=client):
            info = await prober.probe("10.0.0.1", ProbeAuth(password="x", tls=False, ca_data=None))
        assert info.role is Role.UNKNOWN
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_construction_error_is_unknown(self, client):
        prober = TopologyProber(timeout=1.0)
        with patch.object(
            TopologyProber, "connect", side_effect=TypeError("unexpected keyword 'ssl_ca_data'")
        ):
            info = await prober.probe("10.0.0.1")
        assert info.role is Role.UNKNOWN
        assert info.error == "TypeError"
        client.aclose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ipv6_brackets_are_stripped(self, client):
        prober = TopologyProber(timeout=1.0)
        with patch.object(TopologyProber, "connect", return_value=client) as connect:
            await prober.probe("[fd00::1]")
        assert connect.call_args.args[0] == "fd00::1"


class TestConnect:
    """Tests for TopologyProber.connect."""

    def test_plain(self):
        prober = TopologyProber(timeout=2.0)
        with patch("sentinelop.topology.prober.redis.Redis") as redis_cls:
            prober.connect("10.0.0.1", ProbeAuth(password="s3cret", tls=False, ca_data=None))
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "10.0.0.1"
        assert kwargs["port"] == 6379
        assert kwargs["password"] == "s3cret"
        assert kwargs["socket_timeout"] == 2.0
        assert "ssl" not in kwargs

    def test_empty_password_is_anonymous(self):
        prober = TopologyProber()
        with patch("sentinelop.topology.prober.redis.Redis") as redis_cls:
            prober.connect("10.0.0.1", ProbeAuth(password="", tls=False, ca_data=None))
        assert redis_cls.call_args.kwargs["password"] is None

    def test_tls_with_ca(self):
        prober = TopologyProber()
        with patch("sentinelop.topology.prober.redis.Redis") as redis_cls:
            prober.connect("10.0.0.1", ProbeAuth(password=None, tls=True, ca_data="CERT"))
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["ssl"] is True
        assert kwargs["ssl_ca_data"] == "CERT"
        assert kwargs["ssl_cert_reqs"] == "required"
        assert kwargs["ssl_check_hostname"] is False

    def test_tls_without_ca(self):
        prober = TopologyProber()
        with patch("sentinelop.topology.prober.redis.Redis") as redis_cls:
            prober.connect("10.0.0.1", ProbeAuth(password=None, tls=True, ca_data=None))
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["ssl_cert_reqs"] == "none"
        assert "ssl_ca_data" not in kwargs

    def test_info_is_kept_raw(self):
        prober = TopologyProber()
        with patch("sentinelop.topology.prober.redis.Redis") as redis_cls:
            client = prober.connect("10.0.0.1", ProbeAuth.anonymous())
        assert client is redis_cls.return_value
        client.set_response_callback.assert_called_once()
        assert client.set_response_callback.call_args.args[0] == "INFO"
