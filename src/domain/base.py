from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement


def utc_now() -> datetime:
    """Naive UTC timestamp, the storage format of every table."""
    return datetime.now(UTC).replace(tzinfo=None)


class store_utc_now(FunctionElement):
    """Store-side naive UTC timestamp, for server defaults"""

    type = DateTime()
    inherit_cache = True


@compiles(store_utc_now)
def _default_utc_now(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(store_utc_now, "postgresql")
def _postgresql_utc_now(element, compiler, **kw):
    return "TIMEZONE('utc', CURRENT_TIMESTAMP)"
