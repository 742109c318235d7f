import asyncio
import logging
from logging import Logger
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from sentinelop.topology.role import ProbeAuth, Role, RoleInfo

REDIS_PORT = 6379


def parse_replication_info(text: str) -> RoleInfo:
    """Parse the CRLF separated `key:value` text of `INFO replication`."""
    role, connected_slaves = None, 0
    for line in (text or "").split("\r\n"):
        if line.startswith("role:") and role is None:
            role = line[len("role:"):]
        elif line.startswith("connected_slaves:"):
            try:
                connected_slaves = int(line[len("connected_slaves:"):].strip())
            except ValueError:
                connected_slaves = 0
    return RoleInfo(role=Role.from_info(role), connected_slaves=connected_slaves, error=None)


class TopologyProber:
    """Asks a single Redis replica for its replication role.

    Every probe opens one connection and closes it again, whatever the
    outcome. Failures never raise; the replica is reported as unknown.
    """

    def __init__(self, timeout: float = 5.0, logger: Logger = None):
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def connect(self, host: str, auth: ProbeAuth) -> redis.Redis:
        kwargs = {}
        if auth.tls:
            kwargs["ssl"] = True
            kwargs["ssl_check_hostname"] = False
            if auth.ca_data:
                kwargs["ssl_ca_data"] = auth.ca_data
                kwargs["ssl_cert_reqs"] = "required"
            else:
                kwargs["ssl_cert_reqs"] = "none"
        client = redis.Redis(
            host=host,
            port=REDIS_PORT,
            password=auth.password or None,
            db=0,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
            decode_responses=True,
            **kwargs,
        )
        # Keep INFO as raw text instead of the parsed mapping
        client.set_response_callback("INFO", lambda response, **options: response)
        return client

    async def probe(self, address: str, auth: Optional[ProbeAuth] = None) -> RoleInfo:
        """Issue `INFO replication` against `address` and classify the replica."""
        auth = auth or ProbeAuth.anonymous()
        host = address.strip("[]")
        client = None
        try:
            client = self.connect(host, auth)
            text = await client.info("replication")
            info = parse_replication_info(text)
            self.logger.debug(
                f"Replica {address} reports role {info.role.value} "
                f"with {info.connected_slaves} connected replicas"
            )
            return info
        except (RedisError, OSError, ValueError, TypeError, asyncio.TimeoutError) as ex:
            self.logger.error(f"Failed to get replication info from {address}: {ex}")
            return RoleInfo.unknown(ex.__class__.__name__)
        finally:
            if client is not None:
                await client.aclose()
