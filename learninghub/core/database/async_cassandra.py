"""Async Cassandra access through cassandra-asyncio-driver.

The driver's ``Cluster`` hands out sessions that expose ``aexecute()``, so
services can await queries without blocking the event loop. Connecting is
still synchronous and happens once at startup.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from learninghub.auth.models import AUTH_TABLES_CQL
from learninghub.config.settings import get_settings
from learninghub.courses.models import COURSES_TABLES_CQL
from learninghub.feedback.models import FEEDBACK_TABLES_CQL
from learninghub.payments.models import PAYMENTS_TABLES_CQL
from learninghub.progress.models import PROGRESS_TABLES_CQL
from learninghub.verification.models import VERIFICATION_TABLES_CQL


logger = structlog.get_logger(__name__)

# Table groups created at startup, in dependency-free order
SCHEMA: tuple[tuple[str, list[str]], ...] = (
    ("auth", AUTH_TABLES_CQL),
    ("verification", VERIFICATION_TABLES_CQL),
    ("courses", COURSES_TABLES_CQL),
    ("progress", PROGRESS_TABLES_CQL),
    ("feedback", FEEDBACK_TABLES_CQL),
    ("payments", PAYMENTS_TABLES_CQL),
)


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        """Connect to the cluster, reusing an existing session.

        Raises:
            ConnectionError: If no contact point answers.
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
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
    def get_session(cls):
        if cls._session is None:
            return cls.connect()
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


def get_async_cassandra_session():
    """Get the shared session, connecting on first use."""
    return AsyncCassandraConnection.get_session()


async def init_async_keyspace(session, keyspace: str) -> None:
    settings = get_settings()

    if settings.is_production:
        replication = (
            "'class': 'NetworkTopologyStrategy', "
            f"'datacenter1': {settings.cassandra_replication_factor}"
        )
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )
    logger.info("keyspace_ready", keyspace=keyspace)


async def init_async_schema(session, keyspace: str) -> None:
    """Create every application table that does not exist yet."""
    for group, statements in SCHEMA:
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("tables_ready", group=group, keyspace=keyspace)


async def init_async_cassandra():
    """Connect, then create the keyspace and tables.

    Returns:
        Session with ``aexecute()`` support.
    """
    settings = get_settings()
    session = AsyncCassandraConnection.connect()

    await init_async_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_async_schema(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
