# agenda/db.py

import os

from sqlmodel import SQLModel, create_engine, Session

# SQLite database (file-based) unless DATABASE_URL says otherwise
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")

# Engine = connection to the database
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)


def init_db(bind=None):
    from . import models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind or engine)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
