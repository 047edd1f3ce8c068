from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from mealplanner.config import SQLALCHEMY_DATABASE_URL

connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables."""
    import mealplanner.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=engine)
