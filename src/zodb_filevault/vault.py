from zodb_filevault import catalog
from zodb_filevault import users
from zodb_filevault.coordinator import FileService
from zodb_filevault.coordinator import UploadCoordinator
from zodb_filevault.ledger import DEFAULT_CAPACITY
from zodb_filevault.ledger import QuotaLedger
from zodb_filevault.ledger import utcnow
from zodb_filevault.orchestrator import StorageOrchestrator
from zodb_filevault.stats import UsageStats

import contextlib
import logging
import transaction
import ZODB


logger = logging.getLogger(__name__)


class FileVault:
    """Process-wide owner of the database and the provider adapters.

    Build it once at startup, open one ``session()`` per request and
    ``close()`` it at shutdown.
    """

    def __init__(
        self,
        db,
        orchestrator,
        max_capacity=DEFAULT_CAPACITY,
        strict_quota=False,
        conflict_retries=3,
        clock=utcnow,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.max_capacity = max_capacity
        self.strict_quota = strict_quota
        self.conflict_retries = conflict_retries
        self.clock = clock
        self.bootstrap()

    @classmethod
    def from_config(cls, config, clock=utcnow):
        """Build a vault from a configuration loaded with ``load_config``."""
        providers = [factory.open(config.call_timeout) for factory in config.providers]
        orchestrator = StorageOrchestrator(providers)
        db = ZODB.DB(config.storage.open())
        logger.info(
            "File vault using providers %s",
            ", ".join(p.provider_id for p in orchestrator.providers),
        )
        return cls(
            db,
            orchestrator,
            max_capacity=config.max_capacity,
            strict_quota=config.strict_quota,
            conflict_retries=config.conflict_retries,
            clock=clock,
        )

    def bootstrap(self):
        with self.db.transaction("filevault bootstrap") as conn:
            root = conn.root()
            catalog.bootstrap(root)
            users.bootstrap(root)

    @contextlib.contextmanager
    def session(self):
        tm = transaction.TransactionManager()
        conn = self.db.open(transaction_manager=tm)
        try:
            yield VaultSession(self, conn, tm)
        finally:
            tm.abort()
            conn.close()

    def close(self):
        self.db.close()


class VaultSession:
    """Components bound to one connection and transaction manager."""

    def __init__(self, vault, connection, transaction_manager):
        self.connection = connection
        self.transaction_manager = transaction_manager
        root = connection.root()
        self.catalog = catalog.FileCatalog(root, vault.clock)
        self.users = users.UserStore(root)
        self.ledger = QuotaLedger(
            self.users,
            transaction_manager,
            clock=vault.clock,
            default_capacity=vault.max_capacity,
            strict=vault.strict_quota,
            retries=vault.conflict_retries,
        )
        self.coordinator = UploadCoordinator(
            self.catalog,
            vault.orchestrator,
            self.ledger,
            transaction_manager,
            retries=vault.conflict_retries,
        )
        self.files = FileService(self.coordinator)
        self.stats = UsageStats(self.users, self.ledger)
