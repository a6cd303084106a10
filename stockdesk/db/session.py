from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockdesk.core.config import settings

engine_kwargs: dict[str, object] = {
    # Detect and recover from stale pooled connections.
    "pool_pre_ping": True,
}

if settings.database_url.lower().startswith("sqlite"):
    # Request threads share the pool; SQLite waits on the file lock instead of failing fast.
    engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
else:
    # Networked databases (Postgres) get a tuned pool and row-level locks for adjustments.
    engine_kwargs.update(
        {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout_seconds,
            "pool_recycle": settings.db_pool_recycle_seconds,
        }
    )

engine = create_engine(settings.database_url, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
