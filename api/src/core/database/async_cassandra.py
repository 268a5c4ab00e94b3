"""Cassandra session (cassandra-asyncio-driver) and schema bootstrap.

Services receive the session and call ``await session.aexecute(...)``.
On startup the keyspace and every table group are created if missing.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from src.auth.models import AUTH_TABLES_CQL
from src.chat.models import CHAT_TABLES_CQL
from src.config.settings import Settings, get_settings
from src.courses.models import COURSES_TABLES_CQL
from src.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)

SCHEMA: dict[str, list[str]] = {
    "auth": AUTH_TABLES_CQL,
    "courses": COURSES_TABLES_CQL,
    "progress": PROGRESS_TABLES_CQL,
    "chat": CHAT_TABLES_CQL,
}


class AsyncCassandraConnection:
    """Process-wide cluster and session."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        if cls._session is not None:
            return cls._session

        settings = get_settings()
        credentials = None
        if settings.cassandra_username and settings.cassandra_password:
            credentials = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=credentials,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(
                DCAwareRoundRobinPolicy(local_dc=settings.cassandra_datacenter)
            ),
            connect_timeout=settings.cassandra_connect_timeout,
        )
        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


def keyspace_cql(settings: Settings) -> str:
    """SimpleStrategy outside production, NetworkTopologyStrategy in it."""
    if settings.is_production:
        replication = (
            "'class': 'NetworkTopologyStrategy', "
            f"'{settings.cassandra_datacenter}': {settings.cassandra_replication_factor}"
        )
    else:
        replication = (
            "'class': 'SimpleStrategy', "
            f"'replication_factor': {settings.cassandra_replication_factor}"
        )
    return (
        f"CREATE KEYSPACE IF NOT EXISTS {settings.cassandra_keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )


async def create_schema(session, keyspace: str) -> None:
    for group, statements in SCHEMA.items():
        for template in statements:
            await session.aexecute(template.format(keyspace=keyspace))
        logger.info("schema_ready", group=group, tables=len(statements))


async def init_async_cassandra():
    """Connect and make sure keyspace and tables exist."""
    settings = get_settings()
    session = AsyncCassandraConnection.connect()

    await session.aexecute(keyspace_cql(settings))
    session.set_keyspace(settings.cassandra_keyspace)
    await create_schema(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
