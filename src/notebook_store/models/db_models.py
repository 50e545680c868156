"""SQLAlchemy database models for the notebook store."""
import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from notebook_store.config import NotebookConfig

# Create base class for SQLAlchemy models
Base = declarative_base()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class DBFolder(Base):
    """Database model for a folder."""
    __tablename__ = "folders"
    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    notes = relationship("DBNote", back_populates="folder")

    def __repr__(self) -> str:
        """Return string representation of folder."""
        return f"<Folder(id='{self.id}', name='{self.name}')>"


class DBNote(Base):
    """Database model for the live (head) state of a note."""
    __tablename__ = "notes"
    id = Column(String(255), primary_key=True)
    title = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    folder_id = Column(
        String(255),
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # "metadata" is reserved on declarative classes, so the attribute differs
    note_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)

    # Relationships
    folder = relationship("DBFolder", back_populates="notes")
    versions = relationship(
        "DBNoteVersion",
        back_populates="note",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DBNoteVersion.version",
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}', version={self.version})>"


class DBNoteVersion(Base):
    """Database model for one immutable snapshot in a note's history."""
    __tablename__ = "note_versions"
    note_id = Column(
        String(255),
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    version = Column(Integer, primary_key=True)
    title = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    snapshot_metadata = Column("metadata", JSON, nullable=False, default=dict)
    saved_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    note = relationship("DBNote", back_populates="versions")

    def __repr__(self) -> str:
        """Return string representation of version."""
        return f"<NoteVersion(note_id='{self.note_id}', version={self.version})>"


class DBSetting(Base):
    """Database model for a key/value setting."""
    __tablename__ = "settings"
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Setting(key='{self.key}')>"


def _casefold(value):
    """SQL ``casefold(x)``: full Unicode case folding, unlike SQLite's lower()."""
    return value.casefold() if isinstance(value, str) else value


def init_db(notebook_config: Optional[NotebookConfig] = None) -> Engine:
    """Create the engine and schema with hardened SQLite configuration.

    Applies:
    - WAL (Write-Ahead Logging) mode for atomic writes (file databases)
    - NORMAL synchronous mode
    - Foreign key enforcement
    - A busy timeout so concurrent writers wait instead of failing
    - A ``casefold`` SQL function used by case-insensitive search and sorting

    In-memory databases share one connection through StaticPool and are
    meant for single-threaded use (tests, scratch stores).

    Args:
        notebook_config: Store configuration. Defaults are used if None.

    Returns:
        Engine with all tables created.
    """
    cfg = notebook_config or NotebookConfig()

    if cfg.in_memory_db:
        engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # SQLite is single-writer, so a small pool is ideal
        engine = create_engine(
            cfg.get_db_url(),
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_pre_ping=True,
            connect_args={
                "check_same_thread": False,
                "timeout": cfg.busy_timeout_ms / 1000,
            },
        )

    in_memory = cfg.in_memory_db
    busy_timeout = cfg.busy_timeout_ms

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
        cursor.close()
        dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory for the database.

    ``expire_on_commit`` is disabled so rows converted to models after a
    commit do not trigger a reload.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
