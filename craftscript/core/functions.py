"""Custom functions — named CraftScript bodies stored per actor.

A custom function is called like a command with named arguments only::

    build_wall(length: 5, item: "cobblestone");

Its body is ordinary script text, parsed on first use in a run.

Storage
-------
``SqliteFunctionStore`` maps ``craftscript_functions`` (current body) and
``craftscript_function_versions`` (every saved body) with SQLAlchemy; each
save bumps ``current_version`` and appends a version row.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import (
    JSON, Engine, Float, ForeignKey, String, Text, UniqueConstraint,
    create_engine, select,
)
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker,
)
from sqlalchemy.pool import StaticPool

from craftscript.core.constants import KEYWORDS
from craftscript.core.errors import RegistrationError


@dataclass(frozen=True)
class FunctionArg:
    name:     str
    type:     str = "any"
    optional: bool = False
    default:  Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.optional:
            d["optional"] = True
        if self.default is not None:
            d["default"] = self.default
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "FunctionArg":
        return cls(
            name=d["name"],
            type=d.get("type", "any"),
            optional=bool(d.get("optional", False)),
            default=d.get("default"),
        )


@dataclass(frozen=True)
class CustomFunction:
    actor_id:        str
    name:            str
    body:            str
    args:            tuple[FunctionArg, ...] = ()
    description:     str | None = None
    current_version: int = 1
    created_by:      str | None = None
    created_at:      float = field(default_factory=time.time)
    updated_at:      float = field(default_factory=time.time)


class FunctionStore(Protocol):
    def get_function(self, actor_id: str, name: str) -> CustomFunction | None: ...


def _check_name(name: str) -> None:
    if not name.isidentifier() or name in KEYWORDS:
        raise RegistrationError(f"invalid function name: {name!r}")


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryFunctionStore:
    def __init__(self) -> None:
        self._functions: dict[tuple[str, str], CustomFunction] = {}

    def save_function(
        self,
        actor_id:    str,
        name:        str,
        body:        str,
        args:        tuple[FunctionArg, ...] | list[FunctionArg] = (),
        description: str | None = None,
        created_by:  str | None = None,
    ) -> CustomFunction:
        _check_name(name)
        prev = self._functions.get((actor_id, name))
        func = CustomFunction(
            actor_id=actor_id, name=name, body=body, args=tuple(args),
            description=description,
            current_version=prev.current_version + 1 if prev else 1,
            created_by=created_by if prev is None else prev.created_by,
            created_at=prev.created_at if prev else time.time(),
        )
        self._functions[(actor_id, name)] = func
        return func

    def get_function(self, actor_id: str, name: str) -> CustomFunction | None:
        return self._functions.get((actor_id, name))

    def delete_function(self, actor_id: str, name: str) -> bool:
        return self._functions.pop((actor_id, name), None) is not None


# ---------------------------------------------------------------------------
# SQLite (SQLAlchemy)
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


class FunctionRecord(Base):
    """Current state of one stored function."""

    __tablename__ = "craftscript_functions"

    id:              Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    actor_id:        Mapped[str] = mapped_column(String(100), nullable=False)
    name:            Mapped[str] = mapped_column(String(100), nullable=False)
    description:     Mapped[str | None] = mapped_column(Text)
    args:            Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    body:            Mapped[str] = mapped_column(Text, nullable=False)
    current_version: Mapped[int] = mapped_column(nullable=False, default=1)
    created_at:      Mapped[float] = mapped_column(Float, nullable=False)
    updated_at:      Mapped[float] = mapped_column(Float, nullable=False)
    created_by:      Mapped[str | None] = mapped_column(String(100))

    versions: Mapped[list["FunctionVersionRecord"]] = relationship(
        "FunctionVersionRecord",
        back_populates="function",
        cascade="all, delete-orphan",
        order_by="FunctionVersionRecord.version.desc()",
    )

    __table_args__ = (UniqueConstraint("actor_id", "name"),)


class FunctionVersionRecord(Base):
    """Immutable snapshot written on every save."""

    __tablename__ = "craftscript_function_versions"

    id:          Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    function_id: Mapped[int] = mapped_column(
        ForeignKey("craftscript_functions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version:     Mapped[int] = mapped_column(nullable=False)
    body:        Mapped[str] = mapped_column(Text, nullable=False)
    args:        Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at:  Mapped[float] = mapped_column(Float, nullable=False)
    created_by:  Mapped[str | None] = mapped_column(String(100))

    function: Mapped["FunctionRecord"] = relationship("FunctionRecord", back_populates="versions")

    __table_args__ = (UniqueConstraint("function_id", "version"),)


def _sqlite_engine(db_path: str) -> Engine:
    if db_path == ":memory:":
        # every session shares the one in-memory connection
        return create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(f"sqlite:///{db_path}")


class SqliteFunctionStore:
    """Versioned function storage in a SQLite file (or ``":memory:"``)."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        self._engine = _sqlite_engine(self.db_path)
        Base.metadata.create_all(self._engine)
        self._session = sessionmaker(self._engine, expire_on_commit=False)

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------

    def save_function(
        self,
        actor_id:    str,
        name:        str,
        body:        str,
        args:        tuple[FunctionArg, ...] | list[FunctionArg] = (),
        description: str | None = None,
        created_by:  str | None = None,
    ) -> CustomFunction:
        """Create the function or store a new version of it."""
        _check_name(name)
        now = time.time()
        args_data = [a.to_dict() for a in args]
        with self._session.begin() as session:
            record = session.scalar(_select_function(actor_id, name))
            if record is None:
                record = FunctionRecord(
                    actor_id=actor_id, name=name, body=body, args=args_data,
                    description=description, current_version=1,
                    created_at=now, updated_at=now, created_by=created_by,
                )
                session.add(record)
            else:
                record.description = description
                record.args = args_data
                record.body = body
                record.current_version += 1
                record.updated_at = now
            record.versions.append(FunctionVersionRecord(
                version=record.current_version, body=body, args=args_data,
                created_at=now, created_by=created_by,
            ))
            return _to_function(record)

    def get_function(self, actor_id: str, name: str) -> CustomFunction | None:
        with self._session() as session:
            record = session.scalar(_select_function(actor_id, name))
            return _to_function(record) if record is not None else None

    def list_functions(self, actor_id: str) -> list[CustomFunction]:
        with self._session() as session:
            records = session.scalars(
                select(FunctionRecord)
                .where(FunctionRecord.actor_id == actor_id)
                .order_by(FunctionRecord.name)
            ).all()
            return [_to_function(r) for r in records]

    def list_versions(self, actor_id: str, name: str) -> list[int]:
        """Stored version numbers, newest first."""
        with self._session() as session:
            record = session.scalar(_select_function(actor_id, name))
            return [v.version for v in record.versions] if record is not None else []

    def get_version(self, actor_id: str, name: str, version: int) -> str | None:
        """Body text of one stored version."""
        with self._session() as session:
            return session.scalar(
                select(FunctionVersionRecord.body)
                .join(FunctionVersionRecord.function)
                .where(
                    FunctionRecord.actor_id == actor_id,
                    FunctionRecord.name == name,
                    FunctionVersionRecord.version == version,
                )
            )

    def delete_function(self, actor_id: str, name: str) -> bool:
        with self._session.begin() as session:
            record = session.scalar(_select_function(actor_id, name))
            if record is None:
                return False
            session.delete(record)
        return True


def _select_function(actor_id: str, name: str):
    return select(FunctionRecord).where(
        FunctionRecord.actor_id == actor_id,
        FunctionRecord.name == name,
    )


def _to_function(record: FunctionRecord) -> CustomFunction:
    return CustomFunction(
        actor_id=record.actor_id,
        name=record.name,
        body=record.body,
        args=tuple(FunctionArg.from_dict(a) for a in record.args or ()),
        description=record.description,
        current_version=record.current_version,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
