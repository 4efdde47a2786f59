"""SQL-backed stores using SQLModel over an async SQLAlchemy engine (SQLite or PostgreSQL)."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Column, Numeric, UniqueConstraint, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, SQLModel

from tipster.models import (
    BonusPrediction,
    ContextDocument,
    PredictedValue,
    Prediction,
    PredictionJustification,
    PredictionRecord,
)
from tipster.stores.base import DocumentStore, PredictionStore, expected_next_index

logger = logging.getLogger(__name__)


class ContextDocumentRow(SQLModel, table=True):
    """One version of a context document."""

    __tablename__ = "context_documents"
    __table_args__ = (UniqueConstraint("name", "community", "version", name="uq_document_version"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255, index=True, description="Canonical document name")
    community: str = Field(max_length=100, index=True)
    version: int = Field(description="0-based, strictly increasing per (name, community)")
    content: str
    created_at: datetime = Field(description="UTC, stored naive")


class PredictionRow(SQLModel, table=True):
    """One stored prediction at a given reprediction index."""

    __tablename__ = "predictions"
    __table_args__ = (
        UniqueConstraint("subject_key", "model", "community", "reprediction_index", name="uq_prediction_index"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    subject_key: str = Field(max_length=500, index=True, description="Match key or bonus question text")
    model: str = Field(max_length=100, index=True)
    community: str = Field(max_length=100, index=True)
    kind: str = Field(max_length=10, description="'match' or 'bonus'")
    value: dict = Field(sa_column=Column(JSON), description="Goals or selected option ids")
    token_usage_json: str = Field(default="{}")
    cost: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(14, 6)))
    context_document_names: list = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(description="UTC, stored naive")
    reprediction_index: int = Field(default=0)


def get_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite") and "+aiosqlite" not in url:
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def create_engine(url: str) -> AsyncEngine:
    database_url = get_database_url(url)
    engine_kwargs = {"echo": False}

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10

    return create_async_engine(database_url, **engine_kwargs)


def create_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    logger.info("Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully.")


def _to_db_time(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _encode_value(value: PredictedValue) -> tuple[str, dict]:
    if isinstance(value, BonusPrediction):
        return "bonus", {
            "questionId": value.question_id,
            "selectedOptionIds": list(value.selected_option_ids),
        }
    return "match", {
        "home": value.home_goals,
        "away": value.away_goals,
        "justification": value.justification.to_dict() if value.justification else None,
    }


def _decode_value(kind: str, data: dict) -> PredictedValue:
    if kind == "bonus":
        return BonusPrediction(
            question_id=data["questionId"],
            selected_option_ids=tuple(data["selectedOptionIds"]),
        )
    justification = data.get("justification")
    return Prediction(
        home_goals=data["home"],
        away_goals=data["away"],
        justification=PredictionJustification.from_dict(justification) if justification else None,
    )


def _document_from_row(row: ContextDocumentRow) -> ContextDocument:
    return ContextDocument(
        name=row.name,
        content=row.content,
        version=row.version,
        created_at=_from_db_time(row.created_at),
        community=row.community,
    )


def _record_from_row(row: PredictionRow) -> PredictionRecord:
    return PredictionRecord(
        subject_key=row.subject_key,
        model=row.model,
        community=row.community,
        value=_decode_value(row.kind, row.value),
        token_usage_json=row.token_usage_json,
        cost=Decimal(str(row.cost)) if row.cost is not None else Decimal("0"),
        context_document_names=tuple(row.context_document_names or ()),
        created_at=_from_db_time(row.created_at),
        reprediction_index=row.reprediction_index,
    )


def _apply_record(row: PredictionRow, record: PredictionRecord) -> None:
    kind, value = _encode_value(record.value)
    row.kind = kind
    row.value = value
    row.token_usage_json = record.token_usage_json
    row.cost = record.cost
    row.context_document_names = list(record.context_document_names)


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_maker: sessionmaker):
        self._session_maker = session_maker

    async def _latest_row(self, session: AsyncSession, name: str, community: str) -> Optional[ContextDocumentRow]:
        result = await session.execute(
            select(ContextDocumentRow)
            .where(ContextDocumentRow.name == name, ContextDocumentRow.community == community)
            .order_by(ContextDocumentRow.version.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_latest(self, name: str, community: str) -> Optional[ContextDocument]:
        async with self._session_maker() as session:
            row = await self._latest_row(session, name, community)
            return _document_from_row(row) if row else None

    async def save(self, name: str, content: str, community: str) -> Optional[int]:
        async with self._session_maker() as session:
            latest = await self._latest_row(session, name, community)
            if latest is not None and latest.content == content:
                logger.debug(f"Document {name} unchanged for {community}")
                return None

            version = latest.version + 1 if latest is not None else 0
            session.add(
                ContextDocumentRow(
                    name=name,
                    community=community,
                    version=version,
                    content=content,
                    created_at=_to_db_time(datetime.now(timezone.utc)),
                )
            )
            await session.commit()
            logger.info(f"Saved {name} v{version} for {community}")
            return version

    async def get_document(self, name: str, version: int, community: str) -> Optional[ContextDocument]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(ContextDocumentRow).where(
                    ContextDocumentRow.name == name,
                    ContextDocumentRow.community == community,
                    ContextDocumentRow.version == version,
                )
            )
            row = result.scalars().first()
            return _document_from_row(row) if row else None

    async def list_document_names(self, community: str) -> list[str]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(ContextDocumentRow.name)
                .where(ContextDocumentRow.community == community)
                .distinct()
                .order_by(ContextDocumentRow.name)
            )
            return list(result.scalars().all())


class SqlPredictionStore(PredictionStore):
    def __init__(self, session_maker: sessionmaker):
        self._session_maker = session_maker

    @staticmethod
    def _key_filter(subject_key: str, model: str, community: str):
        return (
            PredictionRow.subject_key == subject_key,
            PredictionRow.model == model,
            PredictionRow.community == community,
        )

    async def _latest_row(
        self, session: AsyncSession, subject_key: str, model: str, community: str
    ) -> Optional[PredictionRow]:
        result = await session.execute(
            select(PredictionRow)
            .where(*self._key_filter(subject_key, model, community))
            .order_by(PredictionRow.reprediction_index.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get(self, subject_key: str, model: str, community: str) -> Optional[PredictionRecord]:
        async with self._session_maker() as session:
            row = await self._latest_row(session, subject_key, model, community)
            return _record_from_row(row) if row else None

    async def get_reprediction_index(self, subject_key: str, model: str, community: str) -> Optional[int]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(func.max(PredictionRow.reprediction_index)).where(
                    *self._key_filter(subject_key, model, community)
                )
            )
            return result.scalar()

    async def save(self, record: PredictionRecord, override_created_at: bool = False) -> PredictionRecord:
        async with self._session_maker() as session:
            row = await self._latest_row(session, record.subject_key, record.model, record.community)
            if row is None:
                kind, value = _encode_value(record.value)
                row = PredictionRow(
                    subject_key=record.subject_key,
                    model=record.model,
                    community=record.community,
                    kind=kind,
                    value=value,
                    created_at=_to_db_time(record.created_at),
                    reprediction_index=0,
                )
            elif override_created_at:
                row.created_at = _to_db_time(record.created_at)

            _apply_record(row, record)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _record_from_row(row)

    async def save_reprediction(self, record: PredictionRecord, reprediction_index: int) -> PredictionRecord:
        async with self._session_maker() as session:
            latest = await self._latest_row(session, record.subject_key, record.model, record.community)
            expected = expected_next_index(latest.reprediction_index if latest else None)
            if reprediction_index != expected:
                raise ValueError(
                    f"Reprediction index {reprediction_index} for {record.subject_key} is not contiguous "
                    f"(expected {expected})"
                )

            kind, value = _encode_value(record.value)
            row = PredictionRow(
                subject_key=record.subject_key,
                model=record.model,
                community=record.community,
                kind=kind,
                value=value,
                created_at=_to_db_time(record.created_at),
                reprediction_index=reprediction_index,
            )
            _apply_record(row, record)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info(f"[REPREDICT] Stored {record.subject_key} ({record.model}) at index {reprediction_index}")
            return _record_from_row(row)

    async def get_history(self, subject_key: str, model: str, community: str) -> list[PredictionRecord]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(PredictionRow)
                .where(*self._key_filter(subject_key, model, community))
                .order_by(PredictionRow.reprediction_index)
            )
            return [_record_from_row(row) for row in result.scalars().all()]

    async def list_records(
        self, model: Optional[str] = None, community: Optional[str] = None
    ) -> list[PredictionRecord]:
        query = select(PredictionRow)
        if model is not None:
            query = query.where(PredictionRow.model == model)
        if community is not None:
            query = query.where(PredictionRow.community == community)
        query = query.order_by(PredictionRow.id)

        async with self._session_maker() as session:
            result = await session.execute(query)
            return [_record_from_row(row) for row in result.scalars().all()]
