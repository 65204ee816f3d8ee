# src/rentfolio/adapters/kv_store.py
from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, Session, SQLModel, create_engine


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


# ---------- SQL-backed store ----------

class KeyValueRow(SQLModel, table=True):
    __tablename__ = "kv_entries"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class SqlKeyValueStore:
    def __init__(self, uri: str = "sqlite:///rentfolio.db"):
        self.engine = create_engine(uri, echo=False)
        SQLModel.metadata.create_all(self.engine)

    def get(self, key: str) -> str | None:
        with Session(self.engine) as session:
            row = session.get(KeyValueRow, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with Session(self.engine) as session:
            row = session.get(KeyValueRow, key)
            if row:
                row.value = value
                row.updated_at = datetime.utcnow()
            else:
                row = KeyValueRow(key=key, value=value)
            session.add(row)
            session.commit()

    def remove(self, key: str) -> None:
        with Session(self.engine) as session:
            row = session.get(KeyValueRow, key)
            if row:
                session.delete(row)
                session.commit()
