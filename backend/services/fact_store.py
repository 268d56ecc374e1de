"""Fact store - cursor queries and idempotent upserts for source fact tables."""

import logging
from datetime import date
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_session_local
from integrations.exceptions import CursorQueryFailed
from integrations.source_protocol import FactRow
from models import FACT_MODELS
from models.utils import utcnow

logger = logging.getLogger(__name__)

# Never rewritten by an upsert
_SYSTEM_COLUMNS = frozenset({"id", "created_at", "updated_at"})


class FactStore:
    """Reads cursors from and writes rows to the per-source fact tables.

    Every public method opens its own short-lived session. Writes for one
    report date are committed together and never share a transaction with
    another date, so a failure on one date cannot roll back another.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        """Initialize with an optional session factory for dependency injection.

        Args:
            session_factory: Callable returning a new Session. Defaults to
                the application's sessionmaker.
        """
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            self._session_factory = get_session_local()
        return self._session_factory

    @staticmethod
    def model_for(source: str) -> type:
        """Return the ORM model backing a store key.

        Raises:
            ValueError: If the source has no fact table.
        """
        if source not in FACT_MODELS:
            raise ValueError(f"No fact table for source '{source}'")
        return FACT_MODELS[source]

    def max_date(self, org_id: int, source: str) -> date | None:
        """Return the latest persisted date for (org, source), or None.

        Raises:
            CursorQueryFailed: If the query itself fails.
        """
        model = self.model_for(source)
        try:
            with self.session_factory() as session:
                return session.execute(
                    select(func.max(model.date)).where(model.org_id == org_id)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.warning("Cursor query failed for %s (org %s): %s", source, org_id, exc)
            raise CursorQueryFailed(source, exc) from exc

    def existing_dates(self, org_id: int, source: str, dates: list[date]) -> set[date]:
        """Return the subset of ``dates`` that already have at least one row.

        Raises:
            CursorQueryFailed: If the query itself fails.
        """
        if not dates:
            return set()
        model = self.model_for(source)
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(model.date)
                    .where(model.org_id == org_id, model.date.in_(dates))
                    .distinct()
                ).scalars()
                return set(rows)
        except SQLAlchemyError as exc:
            logger.warning("Existing-dates query failed for %s (org %s): %s", source, org_id, exc)
            raise CursorQueryFailed(source, exc) from exc

    def upsert(
        self,
        org_id: int,
        source: str,
        natural_key: dict[str, Any],
        report_date: date,
        measures: dict[str, Any],
    ) -> int:
        """Insert or fully replace one fact row.

        Returns:
            Number of rows written (always 1).
        """
        row = FactRow(natural_key=natural_key, report_date=report_date, measures=measures)
        return self.upsert_rows(org_id, source, [row])

    def upsert_rows(self, org_id: int, source: str, rows: list[FactRow]) -> int:
        """Upsert a batch of rows for one source in a single transaction.

        Measures missing from a row are written as NULL, so a re-sync
        replaces the previous values instead of merging with them. Columns
        listed in the model's ``__preserved_columns__`` keep their stored
        value when the incoming value is NULL or empty.

        Returns:
            Number of rows written.
        """
        if not rows:
            return 0
        model = self.model_for(source)
        with self.session_factory() as session:
            try:
                for row in rows:
                    session.execute(self._build_upsert(session, model, org_id, row))
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.debug("Upserted %d %s row(s) for org %s", len(rows), source, org_id)
        return len(rows)

    def _build_upsert(self, session: Session, model: type, org_id: int, row: FactRow):
        table = model.__table__
        conflict_columns = list(model.__natural_key__)
        preserved = set(getattr(model, "__preserved_columns__", ()))
        fixed = {"org_id", "date", *row.natural_key}
        missing = set(conflict_columns) - fixed
        if missing:
            raise ValueError(
                f"Natural key for {table.name} is missing: {', '.join(sorted(missing))}"
            )
        measure_columns = [
            c.name for c in table.columns
            if c.name not in _SYSTEM_COLUMNS and c.name not in fixed
        ]

        unknown = set(row.measures) - set(measure_columns)
        if unknown:
            raise ValueError(
                f"Unknown column(s) for {table.name}: {', '.join(sorted(unknown))}"
            )

        values = {"org_id": org_id, "date": row.report_date, **row.natural_key}
        for column in measure_columns:
            values[column] = row.measures.get(column)

        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(table).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(table).values(**values)
        else:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")

        update_set = {}
        for column in values:
            if column in conflict_columns:
                continue
            if column in preserved:
                update_set[column] = func.coalesce(
                    func.nullif(stmt.excluded[column], ""), table.c[column]
                )
            else:
                update_set[column] = stmt.excluded[column]
        update_set["updated_at"] = utcnow()

        return stmt.on_conflict_do_update(index_elements=conflict_columns, set_=update_set)
