from sqlalchemy import BigInteger, Integer, JSON
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()


# JSONB on PostgreSQL, generic JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


# ============================================================================
# ENUMS
# ============================================================================

class SyncStatus(str, enum.Enum):
    """Terminal outcome of the last sync attempt for a dataset"""
    SUCCESS = "success"
    ERROR = "error"
    NEVER_RUN = "never_run"


class UpsertOutcome(str, enum.Enum):
    """Result of writing one record into a dataset store"""
    INSERTED = "inserted"
    SKIPPED = "skipped"
