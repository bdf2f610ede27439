# SQLAlchemy storage
from gnosis.db.database import get_engine, init_db, session_scope
from gnosis.db.models import Base
from gnosis.db.repository import SqlRepository

__all__ = ["Base", "SqlRepository", "get_engine", "init_db", "session_scope"]
