"""
SQL Durable Store

LinkStore implementation on top of SQLModel and the async SQLAlchemy engine.

Every operation opens its own short-lived session. Background analytics
jobs outlive the request that triggered them, so they cannot share a
request-scoped session.

Consistency:
- Code uniqueness is enforced by the unique indexes on links.code and
  links.alias; an IntegrityError on insert becomes ConflictError
- Click and counter increments are single UPDATE statements evaluated by
  the database, so concurrent increments are never lost
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import String, cast, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from shortlink.core.exceptions import ConflictError, DatabaseError
from shortlink.db.interface import SORTABLE_FIELDS, LinkQuery, LinkStore
from shortlink.db.models import ClickEvent, Counter, Link, as_utc, utcnow
from shortlink.db.session import build_session_maker, init_db

logger = logging.getLogger(__name__)


def _normalize(link: Optional[Link]) -> Optional[Link]:
    if link is not None:
        link.created_at = as_utc(link.created_at)
        link.expires_at = as_utc(link.expires_at)
        link.last_accessed_at = as_utc(link.last_accessed_at)
    return link


class SQLLinkStore(LinkStore):
    """Durable store backed by a relational database."""

    def __init__(self, engine: AsyncEngine, session_maker: Optional[async_sessionmaker] = None):
        self.engine = engine
        self.session_maker = session_maker or build_session_maker(engine)

    async def create_schema(self) -> None:
        await init_db(self.engine)

    async def find_by_code(self, code: str) -> Optional[Link]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(Link).where(Link.code == code))
                return _normalize(result.scalar_one_or_none())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to read link '{code}'", original_error=e)

    async def find_by_alias_or_code(self, code: str) -> Optional[Link]:
        try:
            async with self.session_maker() as session:
                statement = select(Link).where(or_(Link.code == code, Link.alias == code)).limit(1)
                result = await session.execute(statement)
                return _normalize(result.scalars().first())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to read link '{code}'", original_error=e)

    async def insert_unique(self, link: Link) -> Link:
        try:
            async with self.session_maker() as session:
                session.add(link)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise ConflictError(link.code, original_error=e)
                await session.refresh(link)
                return _normalize(link)
        except ConflictError:
            raise
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to insert link '{link.code}'", original_error=e)

    async def update_active_flag(self, code: str, active: bool) -> bool:
        statement = update(Link).where(Link.code == code).values(active=active)
        try:
            async with self.session_maker() as session:
                result = await session.execute(statement)
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to update link '{code}'", original_error=e)

    async def update_link(
        self,
        code: str,
        tags: Optional[list[str]] = None,
        custom_domain: Optional[str] = None,
    ) -> Optional[Link]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(Link).where(Link.code == code))
                link = result.scalar_one_or_none()
                if link is None:
                    return None
                if tags is not None:
                    link.tags = list(tags)
                if custom_domain is not None:
                    link.custom_domain = custom_domain or None
                session.add(link)
                await session.commit()
                await session.refresh(link)
                return _normalize(link)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to update link '{code}'", original_error=e)

    async def increment_clicks(self, code: str) -> None:
        # Evaluated by the database, so concurrent increments serialize there
        statement = (
            update(Link)
            .where(Link.code == code)
            .values(clicks=Link.clicks + 1, last_accessed_at=utcnow())
        )
        try:
            async with self.session_maker() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to increment clicks for '{code}'", original_error=e)

    async def increment_counter(self, namespace: str) -> int:
        statement = (
            update(Counter)
            .where(Counter.namespace == namespace)
            .values(value=Counter.value + 1)
            .returning(Counter.value)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_maker() as session:
                value = (await session.execute(statement)).scalar_one_or_none()
                if value is None:
                    # First use: create the row; a concurrent creator makes us retry the update
                    session.add(Counter(namespace=namespace, value=1))
                    try:
                        await session.commit()
                        return 1
                    except IntegrityError:
                        await session.rollback()
                        value = (await session.execute(statement)).scalar_one()
                await session.commit()
                return value
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to increment counter '{namespace}'", original_error=e)

    async def append_click_event(self, code: str, event: ClickEvent) -> None:
        event.code = code
        try:
            async with self.session_maker() as session:
                session.add(event)
                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to append click event for '{code}'", original_error=e)

    async def list_click_events(self, code: str, since: datetime) -> Sequence[ClickEvent]:
        statement = (
            select(ClickEvent)
            .where(ClickEvent.code == code, ClickEvent.timestamp >= since)
            .order_by(ClickEvent.timestamp, ClickEvent.id)
        )
        try:
            async with self.session_maker() as session:
                events = list((await session.execute(statement)).scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to list click events for '{code}'", original_error=e)
        for event in events:
            event.timestamp = as_utc(event.timestamp)
        return events

    def _filtered(self, statement, query: Optional[LinkQuery]):
        statement = statement.where(Link.active == True)  # noqa: E712
        if query is None:
            return statement
        if query.search:
            pattern = f"%{query.search}%"
            statement = statement.where(
                or_(
                    Link.destination_url.ilike(pattern),
                    Link.code.ilike(pattern),
                    Link.alias.ilike(pattern),
                )
            )
        if query.tag:
            # JSON list membership, matched on the serialized form
            statement = statement.where(cast(Link.tags, String).like(f'%"{query.tag}"%'))
        return statement

    async def count_active(self, query: Optional[LinkQuery] = None) -> int:
        statement = self._filtered(select(func.count(Link.id)), query)
        try:
            async with self.session_maker() as session:
                return (await session.execute(statement)).scalar() or 0
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to count links", original_error=e)

    async def list_active(self, query: LinkQuery) -> Sequence[Link]:
        sort_field = query.sort_by if query.sort_by in SORTABLE_FIELDS else "created_at"
        column = getattr(Link, sort_field)
        ordering = column.asc() if query.order == "asc" else column.desc()
        statement = (
            self._filtered(select(Link), query)
            .order_by(ordering, Link.code)
            .offset(query.offset)
            .limit(query.limit)
        )
        try:
            async with self.session_maker() as session:
                links = (await session.execute(statement)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to list links", original_error=e)
        return [_normalize(link) for link in links]

    async def list_all_active(self) -> Sequence[Link]:
        statement = self._filtered(select(Link), None)
        try:
            async with self.session_maker() as session:
                links = (await session.execute(statement)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to list links", original_error=e)
        return [_normalize(link) for link in links]

    async def ping(self) -> bool:
        try:
            async with self.session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.engine.dispose()
