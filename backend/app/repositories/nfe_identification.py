"""
NF-e Identification Repository

Cache-aside access to ``nfe_identifications``:
- reads probe the cache first and populate it on a miss;
- writes go to the database, then invalidate the affected cache entries.
"""

from typing import Any, List, Optional, Tuple, Union
from uuid import UUID, uuid4

import structlog
from opentelemetry import trace
from sqlalchemy import text

from ..domain.cache.value_objects import CacheKey, TTL
from ..domain.nfe.models import (
    NFeIdentification,
    NFeIdentificationCreate,
    NFeIdentificationFilters,
    NFeIdentificationPage,
    NFeIdentificationUpdate,
)
from ..infrastructure.repositories.cache_repository import RedisCacheRepository
from .base import CachedRepository
from .exceptions import (
    CreationFailedError,
    InvalidRecordError,
    RecordNotFoundError,
    RepositoryError,
    UpdateFailedError,
)
from .nfe_identification_mapper import (
    canonical_identifier,
    identifier_to_storage,
    record_to_row,
    row_to_record,
)
from .nfe_identification_queries import (
    DELETE_SQL,
    INSERT_SQL,
    SELECT_BY_ID_SQL,
    UPDATE_SQL,
    build_filtered_query,
)

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

DEFAULT_TTL = TTL.minutes(5)

# Fields a new record cannot be created without
REQUIRED_CREATE_FIELDS = ("c_uf", "n_nf")


class NFeIdentificationRepository(CachedRepository):
    """Repository for NF-e identification records."""

    def __init__(
        self,
        database: Any,
        cache: RedisCacheRepository,
        ttl: TTL = DEFAULT_TTL,
    ):
        super().__init__(database, cache, ttl)

    async def _fetch(self, session: Any, storage_key: str) -> Optional[NFeIdentification]:
        result = await session.execute(
            text(SELECT_BY_ID_SQL), {"internal_key": storage_key}
        )
        row = result.mappings().first()
        if row is None:
            return None
        return row_to_record(row)

    async def find_all(
        self,
        page: int,
        page_size: int,
        filters: Optional[NFeIdentificationFilters] = None,
    ) -> Tuple[List[NFeIdentification], int]:
        """
        Return one page of records and the total number of matching records.

        Args:
            page: 1-indexed page number
            page_size: Records per page
            filters: Optional filters; absent or empty values do not filter

        Returns:
            ``(records, total_count)`` where ``total_count`` ignores pagination

        Raises:
            ValueError: If page or page_size is below 1
            BackingStoreError: If the database query fails
            RecordParseError: If a stored row cannot be decoded
        """
        filters = filters or NFeIdentificationFilters()
        query = build_filtered_query(filters, page, page_size)
        cache_key = CacheKey.nfe_list(page, page_size, filters.as_tuple())

        with tracer.start_as_current_span("nfe_identification.find_all") as span:
            span.set_attribute("nfe.page", page)
            span.set_attribute("nfe.page_size", page_size)

            cached = await self._cache_get(cache_key, NFeIdentificationPage)
            if cached is not None:
                span.set_attribute("cache.hit", True)
                logger.debug(
                    "NFe identification page served from cache",
                    page=page,
                    page_size=page_size,
                    total_count=cached.total_count,
                )
                return cached.records, cached.total_count

            span.set_attribute("cache.hit", False)

            try:
                async with self._backing_store("find_all") as session:
                    count_result = await session.execute(
                        text(query.count_sql), query.count_params
                    )
                    total_count = count_result.scalar_one()

                    rows_result = await session.execute(
                        text(query.select_sql), query.select_params
                    )
                    rows = rows_result.mappings().all()

                records = [row_to_record(row) for row in rows]
            except RepositoryError as e:
                logger.error(
                    "Failed to list NFe identifications",
                    page=page,
                    page_size=page_size,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            await self._cache_set(
                cache_key,
                NFeIdentificationPage(records=records, total_count=total_count),
            )

            logger.info(
                "NFe identifications listed",
                page=page,
                page_size=page_size,
                returned=len(records),
                total_count=total_count,
            )
            return records, total_count

    async def find_by_id(
        self, internal_key: Union[str, UUID]
    ) -> Optional[NFeIdentification]:
        """Return the record with this identifier, or ``None`` if absent."""
        # Malformed identifiers are rejected before the cache is touched
        internal_key = canonical_identifier(internal_key)
        cache_key = CacheKey.nfe_item(internal_key)

        with tracer.start_as_current_span("nfe_identification.find_by_id") as span:
            span.set_attribute("nfe.internal_key", internal_key)

            cached = await self._cache_get(cache_key, NFeIdentification)
            if cached is not None:
                span.set_attribute("cache.hit", True)
                logger.debug("NFe identification served from cache", internal_key=internal_key)
                return cached

            span.set_attribute("cache.hit", False)

            try:
                async with self._backing_store("find_by_id") as session:
                    record = await self._fetch(session, identifier_to_storage(internal_key))
            except RepositoryError as e:
                logger.error(
                    "Failed to load NFe identification",
                    internal_key=internal_key,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            if record is None:
                logger.info("NFe identification not found", internal_key=internal_key)
                return None

            await self._cache_set(cache_key, record)
            logger.debug("NFe identification loaded", internal_key=internal_key)
            return record

    async def create(self, data: NFeIdentificationCreate) -> NFeIdentification:
        """
        Insert a new record under a freshly generated identifier.

        The stored row is read back in the same transaction, so the returned
        record carries the server-assigned audit timestamps.
        """
        for field in REQUIRED_CREATE_FIELDS:
            value = getattr(data, field)
            if value is None or not value.strip():
                logger.warning("Rejected NFe identification create", field=field)
                raise InvalidRecordError(field, "must not be empty")

        internal_key = str(uuid4())
        storage_key = identifier_to_storage(internal_key)
        params = record_to_row(data)
        params["internal_key"] = storage_key

        with tracer.start_as_current_span("nfe_identification.create") as span:
            span.set_attribute("nfe.internal_key", internal_key)

            try:
                async with self._backing_store("create") as session:
                    await session.execute(text(INSERT_SQL), params)
                    record = await self._fetch(session, storage_key)
                    if record is None:
                        raise CreationFailedError(internal_key)
            except RepositoryError as e:
                logger.error(
                    "Failed to create NFe identification",
                    internal_key=internal_key,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            await self._invalidate(CacheKey.nfe_list_pattern())

            logger.info(
                "NFe identification created",
                internal_key=internal_key,
                n_nf=record.n_nf,
            )
            return record

    async def update(
        self, internal_key: Union[str, UUID], data: NFeIdentificationUpdate
    ) -> NFeIdentification:
        """
        Apply a partial update. Fields left as ``None`` keep their stored
        value; ``updated_at`` is always refreshed.
        """
        internal_key = canonical_identifier(internal_key)
        storage_key = identifier_to_storage(internal_key)
        params = record_to_row(data)
        params["internal_key"] = storage_key

        with tracer.start_as_current_span("nfe_identification.update") as span:
            span.set_attribute("nfe.internal_key", internal_key)

            try:
                async with self._backing_store("update") as session:
                    result = await session.execute(text(UPDATE_SQL), params)
                    if result.rowcount == 0:
                        raise UpdateFailedError(internal_key)
                    record = await self._fetch(session, storage_key)
                    if record is None:
                        raise UpdateFailedError(internal_key)
            except RepositoryError as e:
                logger.error(
                    "Failed to update NFe identification",
                    internal_key=internal_key,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            await self._invalidate(
                CacheKey.nfe_item(internal_key), CacheKey.nfe_list_pattern()
            )

            logger.info("NFe identification updated", internal_key=internal_key)
            return record

    async def delete(self, internal_key: Union[str, UUID]) -> None:
        """Delete a record; raises ``RecordNotFoundError`` if it does not exist."""
        internal_key = canonical_identifier(internal_key)

        with tracer.start_as_current_span("nfe_identification.delete") as span:
            span.set_attribute("nfe.internal_key", internal_key)

            try:
                async with self._backing_store("delete") as session:
                    result = await session.execute(
                        text(DELETE_SQL),
                        {"internal_key": identifier_to_storage(internal_key)},
                    )
                    if result.rowcount == 0:
                        raise RecordNotFoundError(internal_key)
            except RepositoryError as e:
                logger.error(
                    "Failed to delete NFe identification",
                    internal_key=internal_key,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            await self._invalidate(
                CacheKey.nfe_item(internal_key), CacheKey.nfe_list_pattern()
            )

            logger.info("NFe identification deleted", internal_key=internal_key)
