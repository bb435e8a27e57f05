"""Async Cassandra database connection using cassandra-asyncio-driver.

Provides:
- Connection pool management
- Session with aexecute() for non-blocking queries
- Keyspace and table initialization

The cassandra-asyncio-driver extends the standard cassandra-driver with a
`session.aexecute()` method for async/await support.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from learnpath.achievements.models import ACHIEVEMENTS_TABLES_CQL
from learnpath.catalog.models import CATALOG_TABLES_CQL
from learnpath.certificates.models import CERTIFICATES_TABLES_CQL
from learnpath.config.settings import get_settings
from learnpath.points.models import POINTS_TABLES_CQL
from learnpath.progress.models import PROGRESS_TABLES_CQL
from learnpath.quizzes.models import QUIZZES_TABLES_CQL
from learnpath.study_sessions.models import STUDY_SESSIONS_TABLES_CQL
from learnpath.users.models import USERS_TABLES_CQL


logger = structlog.get_logger(__name__)

# Feature name -> table definitions, created in this order at startup
TABLE_GROUPS: list[tuple[str, list[str]]] = [
    ("users", USERS_TABLES_CQL),
    ("catalog", CATALOG_TABLES_CQL),
    ("progress", PROGRESS_TABLES_CQL),
    ("points", POINTS_TABLES_CQL),
    ("quizzes", QUIZZES_TABLES_CQL),
    ("achievements", ACHIEVEMENTS_TABLES_CQL),
    ("certificates", CERTIFICATES_TABLES_CQL),
    ("study_sessions", STUDY_SESSIONS_TABLES_CQL),
]


class AsyncCassandraConnection:
    """Async Cassandra connection manager.

    Manages cluster connection and session lifecycle. Connecting is
    synchronous; queries go through aexecute().
    """

    _cluster: Cluster | None = None
    _session = None  # Session type from cassandra_asyncio

    @classmethod
    def connect(cls):
        """Establish connection to Cassandra cluster.

        Returns:
            Active Cassandra session with aexecute() support

        Raises:
            ConnectionError: If connection fails
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

        cls._session.default_timeout = settings.cassandra_request_timeout
        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
            protocol_version=settings.cassandra_protocol_version,
        )
        return cls._session

    @classmethod
    def get_session(cls):
        """Get active session, connecting if necessary."""
        if cls._session is None:
            return cls.connect()
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close connection to Cassandra."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_cluster_closed")


async def init_keyspace(session, keyspace: str) -> None:
    """Create keyspace if not exists.

    Args:
        session: Active Cassandra session with aexecute()
        keyspace: Keyspace name
    """
    settings = get_settings()

    if settings.is_production:
        replication = """
            'class': 'NetworkTopologyStrategy',
            'datacenter1': 3
        """
    else:
        replication = """
            'class': 'SimpleStrategy',
            'replication_factor': 1
        """

    cql = f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """

    await session.aexecute(cql)
    logger.info("keyspace_created", keyspace=keyspace)


async def init_tables(session, keyspace: str) -> None:
    """Create every feature's tables if they don't exist."""
    for feature, tables in TABLE_GROUPS:
        for cql_template in tables:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("tables_created", feature=feature, keyspace=keyspace)


async def init_async_cassandra():
    """Initialize Cassandra connection and schema.

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = get_settings()

    session = AsyncCassandraConnection.connect()
    await init_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_tables(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    """Shutdown Cassandra connection."""
    AsyncCassandraConnection.disconnect()
