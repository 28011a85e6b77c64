from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os

from Security.security_config import load_environment

load_environment()

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in your .env file.")


def is_sqlite_database(url):
    return url is not None and url.startswith("sqlite")


connect_args = {"check_same_thread": False} if is_sqlite_database(DATABASE_URL) else {}

# Bound values are pre-encryption plaintext, keep them out of error messages
engine = create_engine(DATABASE_URL, pool_pre_ping=True, hide_parameters=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
