# services/api/adapters/sqlite/__init__.py
from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from cachetools import TTLCache
from fastapi import HTTPException
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    event,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

# ---- Engine (SQLite) with WAL & pragmas -------------------------------------

def _ensure_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)

def make_engine(db_url: str) -> Engine:
    # Create data dir if sqlite file
    if db_url.startswith("sqlite:///"):
        file_path = db_url.replace("sqlite:///", "", 1)
        _ensure_dir(file_path)

    engine = create_engine(db_url, future=True, pool_pre_ping=True)

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

# ---- Schema via SQLAlchemy Core ---------------------------------------------

metadata = MetaData()

files = Table(
    "files",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False),
    Column("batch_id", String, nullable=False),
    Column("filename", String, nullable=False),  # <uuid>.<ext>
    Column("original_name", String, nullable=False),
    Column("relative_path", Text),
    Column("mime_type", String, nullable=False),
    Column("size", Integer, nullable=False, default=0),
    Column("storage_key", Text, nullable=False),
    Column("url", Text, nullable=False),
    Column("source", String, nullable=False, default="editor"),
    Column("created_at", DateTime, nullable=False, default=_utcnow),
    Column("updated_at", DateTime, nullable=False, default=_utcnow),
)

file_drafts = Table(
    "file_drafts",
    metadata,
    Column("id", String, primary_key=True),
    Column("file_id", String, ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String, nullable=False),
    Column("content", Text, nullable=False),
    Column("updated_at", DateTime, nullable=False, default=_utcnow),
    UniqueConstraint("file_id", "user_id", name="uq_draft_file_user"),
)

Index("idx_files_user_created", files.c.user_id, files.c.created_at)
Index("idx_files_batch", files.c.user_id, files.c.batch_id)


def _stored_filename(original_name: str) -> str:
    ext = original_name.rsplit(".", 1)[-1] if "." in original_name else "file"
    return f"{uuid4()}.{ext}"

# ---- Adapter implementation --------------------------------------------------

@dataclass(frozen=True)
class SqliteAdapter:
    engine: Engine
    list_cache_ttl: int = 5
    _list_cache: TTLCache = field(init=False, repr=False, compare=False)
    _cache_lock: threading.Lock = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_list_cache", TTLCache(maxsize=256, ttl=max(self.list_cache_ttl, 1)))
        object.__setattr__(self, "_cache_lock", threading.Lock())

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/markify.db", list_cache_ttl: int = 5) -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng, list_cache_ttl=list_cache_ttl)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

    def dispose(self) -> None:
        self.engine.dispose()

    # Listing cache (per user, invalidated on every write for that user)
    def _invalidate(self, user_id: str) -> None:
        with self._cache_lock:
            for key in [k for k in self._list_cache.keys() if k[0] == user_id]:
                self._list_cache.pop(key, None)

    # Files
    def create_files(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        now = _utcnow()
        stored: List[Dict[str, Any]] = []
        for r in rows:
            stored.append(
                dict(
                    id=str(uuid4()),
                    user_id=r["user_id"],
                    batch_id=r["batch_id"],
                    filename=_stored_filename(r["original_name"]),
                    original_name=r["original_name"],
                    relative_path=r.get("relative_path"),
                    mime_type=r["mime_type"],
                    size=int(r.get("size") or 0),
                    storage_key=r["storage_key"],
                    url=r["url"],
                    source=r.get("source") or "editor",
                    created_at=now,
                    updated_at=now,
                )
            )
        if not stored:
            return []

        with self.engine.begin() as conn:
            conn.execute(insert(files), stored)

        for user_id in {r["user_id"] for r in stored}:
            self._invalidate(user_id)
        return stored

    def list_files(
        self,
        user_id: str,
        source: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
    ) -> Tuple[List[Dict[str, Any]], int]:
        key = (user_id, source, page, limit)
        with self._cache_lock:
            cached = self._list_cache.get(key)
        if cached is not None:
            rows, total = cached
            return [dict(r) for r in rows], total

        cond = files.c.user_id == user_id
        if source:
            cond = and_(cond, files.c.source == source)

        with self.engine.begin() as conn:
            total = conn.execute(select(func.count()).select_from(files).where(cond)).scalar_one()
            q = (
                select(files)
                .where(cond)
                .order_by(files.c.created_at.desc(), files.c.relative_path.asc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            rows = [dict(r) for r in conn.execute(q).mappings().all()]

        with self._cache_lock:
            self._list_cache[key] = (rows, total)
        return [dict(r) for r in rows], total

    def get_file(self, file_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(select(files).where(files.c.id == file_id)).mappings().first()
            return dict(row) if row else None

    def delete_files(self, user_id: str, ids: List[str]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        cond = and_(files.c.user_id == user_id, files.c.id.in_(ids))
        with self.engine.begin() as conn:
            rows = [dict(r) for r in conn.execute(select(files).where(cond)).mappings().all()]
            if rows:
                conn.execute(delete(files).where(files.c.id.in_([r["id"] for r in rows])))
        self._invalidate(user_id)
        return rows

    def rename_file(self, user_id: str, file_id: str, new_name: str) -> Dict[str, Any]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(files).where(and_(files.c.id == file_id, files.c.user_id == user_id))
            ).mappings().first()
            if not row:
                raise HTTPException(status_code=404, detail="File not found")

            rel = row["relative_path"]
            if rel:
                parts = rel.split("/")
                parts[-1] = new_name
                new_rel = "/".join(parts)
            else:
                new_rel = new_name

            conn.execute(
                update(files)
                .where(files.c.id == file_id)
                .values(original_name=new_name, relative_path=new_rel, updated_at=_utcnow())
            )
            res = conn.execute(select(files).where(files.c.id == file_id)).mappings().first()
        self._invalidate(user_id)
        return dict(res)

    def rename_folder(self, user_id: str, batch_id: str, old_path: str, new_name: str) -> int:
        old_parts = [p for p in old_path.split("/") if p]
        if not old_parts:
            raise HTTPException(status_code=400, detail="old_path must not be empty")
        depth = len(old_parts)

        updated = 0
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(files.c.id, files.c.relative_path).where(
                    and_(
                        files.c.user_id == user_id,
                        files.c.batch_id == batch_id,
                        files.c.relative_path.startswith("/".join(old_parts), autoescape=True),
                    )
                )
            ).all()

            for r in rows:
                parts = (r.relative_path or "").split("/")
                # Folder segments only: the last segment is the file itself
                if len(parts) <= depth or parts[:depth] != old_parts:
                    continue
                parts[depth - 1] = new_name
                conn.execute(
                    update(files)
                    .where(files.c.id == r.id)
                    .values(relative_path="/".join(parts), updated_at=_utcnow())
                )
                updated += 1

        self._invalidate(user_id)
        return updated

    # Drafts
    def get_draft(self, file_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(file_drafts).where(
                    and_(file_drafts.c.file_id == file_id, file_drafts.c.user_id == user_id)
                )
            ).mappings().first()
            return dict(row) if row else None

    def upsert_draft(self, file_id: str, user_id: str, content: str) -> Dict[str, Any]:
        now = _utcnow()
        stmt = sqlite_insert(file_drafts).values(
            id=str(uuid4()),
            file_id=file_id,
            user_id=user_id,
            content=content,
            updated_at=now,
        )
        # Single statement, so concurrent first saves cannot both insert
        stmt = stmt.on_conflict_do_update(
            index_elements=[file_drafts.c.file_id, file_drafts.c.user_id],
            set_={"content": content, "updated_at": now},
        )
        cond = and_(file_drafts.c.file_id == file_id, file_drafts.c.user_id == user_id)
        with self.engine.begin() as conn:
            conn.execute(stmt)
            row = conn.execute(select(file_drafts).where(cond)).mappings().first()
            return dict(row)

    def delete_draft(self, file_id: str, user_id: str) -> int:
        with self.engine.begin() as conn:
            res = conn.execute(
                delete(file_drafts).where(
                    and_(file_drafts.c.file_id == file_id, file_drafts.c.user_id == user_id)
                )
            )
            return res.rowcount or 0
