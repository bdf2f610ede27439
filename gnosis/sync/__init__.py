from gnosis.sync.outbox import FlushResult, Outbox, PersistenceIntent, SyncWorker

__all__ = ["FlushResult", "Outbox", "PersistenceIntent", "SyncWorker"]
