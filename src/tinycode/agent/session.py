"""
Session persistence for conversations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import structlog
from sqlalchemy import delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..llm.base import Message, Role
from ..models import SessionRecord, init_database

logger = structlog.get_logger()

SHORT_ID_LENGTH = 8
DEFAULT_TITLE = "New session..."


@dataclass
class AgentSession:
    """The state one conversation threads through the agent loop."""

    id: str = field(default_factory=lambda: str(uuid4()))
    messages: list[Message] = field(default_factory=list)
    history: str = ""
    stop_reason: str | None = None

    @property
    def short_id(self) -> str:
        return self.id[:SHORT_ID_LENGTH]


@dataclass
class SessionData:
    """A stored session as read back from the database."""

    id: str
    title: str
    messages: list[Message]
    history: str
    stop_reason: str | None
    provider: str
    model: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionData":
        return cls(
            id=record.id,
            title=record.title,
            messages=[Message.from_dict(m) for m in record.messages or []],
            history=record.history or "",
            stop_reason=record.stop_reason,
            provider=record.provider,
            model=record.model,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_agent_session(self) -> AgentSession:
        return AgentSession(
            id=self.id,
            messages=list(self.messages),
            history=self.history,
            stop_reason=self.stop_reason,
        )


def session_title(messages: list[Message]) -> str:
    """First four words of the first plain-text user message."""
    for message in messages:
        if message.role == Role.USER and isinstance(message.content, str):
            words = message.content.split()[:4]
            return " ".join(words) + "..."
    return DEFAULT_TITLE


class SessionStore:
    """Stores sessions in a SQL database (SQLite by default)."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._sessionmaker: async_sessionmaker | None = None

    async def init(self) -> None:
        """Create the database and tables if needed."""
        if self._sessionmaker is not None:
            return

        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self._sessionmaker = await init_database(self.database_url)
        logger.debug("Session store ready", database_url=self.database_url)

    @property
    def sessionmaker(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            raise RuntimeError("SessionStore.init() has not been awaited")
        return self._sessionmaker

    def create(self) -> AgentSession:
        """A fresh, empty session. Nothing is stored until the first save."""
        return AgentSession()

    async def save(
        self,
        id: str,
        messages: list[Message],
        history: str,
        stop_reason: str | None,
        provider: str,
        model: str | None,
    ) -> None:
        """Insert or update a session."""
        async with self.sessionmaker() as db:
            record = await db.get(SessionRecord, id)
            if record is None:
                record = SessionRecord(id=id)
                db.add(record)

            record.title = session_title(messages)
            record.messages = [m.to_dict() for m in messages]
            record.history = history
            record.stop_reason = stop_reason
            record.provider = provider
            record.model = model

            await db.commit()

        logger.debug("Session saved", session_id=id, messages=len(messages))

    async def load(self, id: str) -> SessionData | None:
        async with self.sessionmaker() as db:
            record = await db.get(SessionRecord, id)
            return SessionData.from_record(record) if record else None

    async def list_sessions(self) -> list[SessionData]:
        """All sessions, most recently updated first."""
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(SessionRecord).order_by(SessionRecord.updated_at.desc())
            )
            return [SessionData.from_record(r) for r in result.scalars().all()]

    async def remove(self, id: str) -> bool:
        async with self.sessionmaker() as db:
            result = await db.execute(delete(SessionRecord).where(SessionRecord.id == id))
            await db.commit()

        removed = result.rowcount > 0
        if removed:
            logger.info("Session removed", session_id=id)
        return removed

    async def load_last(self) -> SessionData | None:
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(SessionRecord).order_by(SessionRecord.updated_at.desc()).limit(1)
            )
            record = result.scalar_one_or_none()
            return SessionData.from_record(record) if record else None

    async def resolve_id(self, session_id: str) -> str:
        """Expand an 8-character short id to the full id when it is unambiguous."""
        if len(session_id) != SHORT_ID_LENGTH:
            return session_id

        async with self.sessionmaker() as db:
            result = await db.execute(
                select(SessionRecord.id).where(SessionRecord.id.startswith(session_id))
            )
            matches = list(result.scalars().all())

        return matches[0] if len(matches) == 1 else session_id

    async def close(self) -> None:
        if self._sessionmaker is not None:
            await self._sessionmaker.kw["bind"].dispose()
            self._sessionmaker = None
