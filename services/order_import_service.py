"""
Order import wizard orchestration.

One import session per uploaded workbook, kept in the preview cache:

    upload  → parse first sheet, suggest column mapping, seed value mappings
    mapping → merge user changes, re-seed value mappings, re-validate
    preview → rows/errors/flags recomputed from the current state
    confirm → large-batch gate, optional hierarchy auto-create, bulk upsert

Validation is recomputed on every read so the preview always reflects the
current mapping. Only confirm talks to the database for writes; a failed
confirm leaves the session in place for a retry.
"""

import asyncio
import hashlib
from io import BytesIO
from threading import Event
from typing import Optional
import structlog

from config import get_settings, Settings
from exceptions import (
    HierarchyCreationError,
    ImportInProgressError,
    ImportMappingError,
    ImportRowsInvalidError,
    ImportSessionNotFoundError,
    ImportTimeoutError,
    LargeImportNotAcknowledgedError,
    ValidationError,
)
from models.hierarchy import HierarchyFieldOption
from models.order import (
    BulkImportSummary,
    OrderField,
    OrderImportResult,
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
)
from models.order_import import (
    FieldOption,
    ImportBuildResult,
    ImportPreview,
    ImportRow,
    ImportSession,
    MappingUpdate,
    ValueMappingEntry,
)
from parsers.orders_excel_parser import parse_orders_workbook, suggest_field_mapping
from services import preview_cache_service
from services.hierarchy_import_service import HierarchyCreationReport, HierarchyPathResolver
from services.hierarchy_service import HierarchyService, get_hierarchy_service
from services.import_validation_service import (
    build_import_rows,
    build_preview_rows,
    errors_to_csv,
    hierarchy_field_options,
    is_import_enabled,
    is_large_import,
    missing_required_mappings,
)
from services.order_service import ImportProgress, OrderService, get_order_service
from services.value_mapping_service import (
    seed_priority_mapping,
    seed_status_mapping,
    unique_column_values,
)

logger = structlog.get_logger(__name__)


class OrderImportService:
    """
    Import wizard business logic.

    Collaborators are passed in; when omitted the shared service
    singletons are used.
    """

    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        hierarchy_service: Optional[HierarchyService] = None,
        settings: Optional[Settings] = None,
    ):
        self._order_service = order_service
        self._hierarchy_service = hierarchy_service
        self.settings = settings or get_settings()

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = get_order_service()
        return self._order_service

    @property
    def hierarchy_service(self) -> HierarchyService:
        if self._hierarchy_service is None:
            self._hierarchy_service = get_hierarchy_service()
        return self._hierarchy_service

    # ===================
    # SESSION LIFECYCLE
    # ===================

    def start_session(
        self,
        content: bytes,
        filename: Optional[str],
        tenant_id: Optional[str] = None,
    ) -> ImportPreview:
        """
        Parse an uploaded workbook and open a wizard session.

        Args:
            content: Raw .xlsx bytes
            filename: Original file name
            tenant_id: Owning tenant

        Returns:
            ImportPreview for the mapping step

        Raises:
            ExcelParseError: Unreadable file
            EmptyWorkbookError: No data rows
        """
        file_hash = hashlib.sha256(content).hexdigest()
        workbook = parse_orders_workbook(BytesIO(content), filename=filename)

        levels = self.hierarchy_service.list_levels(tenant_id)
        mapping = suggest_field_mapping(workbook.headers, hierarchy_field_options(levels))

        session = ImportSession(
            session_id=preview_cache_service.new_preview_id(),
            tenant_id=tenant_id,
            file_name=filename or "",
            file_hash=file_hash,
            headers=workbook.headers,
            rows=workbook.rows,
            levels=levels,
            mapping=mapping,
        )
        self._seed_value_mappings(session)
        self._save(session)

        logger.info(
            "import_session_started",
            session_id=session.session_id,
            filename=filename,
            row_count=len(session.rows),
            mapped_fields=len(mapping)
        )
        return self._build_preview(session)

    def get_preview(self, session_id: str) -> ImportPreview:
        """Current state of a session, re-validated."""
        return self._build_preview(self._load(session_id))

    def update_mapping(self, session_id: str, update: MappingUpdate) -> ImportPreview:
        """
        Apply mapping/value-mapping/flag changes and re-validate.

        Raises:
            ImportSessionNotFoundError: Unknown or expired session
            ValidationError: Unknown field key or column
        """
        session = self._load(session_id)

        if update.mapping is not None:
            known_keys = {f.value for f in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS)}
            known_keys |= {opt.key for opt in hierarchy_field_options(session.levels)}
            mapping = dict(session.mapping)
            for key, header in update.mapping.items():
                if key not in known_keys:
                    raise ValidationError(
                        message=f"Unknown import field: {key}",
                        code="IMPORT_UNKNOWN_FIELD",
                        details={"field": key}
                    )
                if not header:
                    mapping.pop(key, None)
                elif header not in session.headers:
                    raise ValidationError(
                        message=f"Column not found in workbook: {header}",
                        code="IMPORT_UNKNOWN_COLUMN",
                        details={"column": header, "headers": session.headers}
                    )
                else:
                    mapping[key] = header
            session.mapping = mapping

        if update.status_mapping:
            session.status_mapping = {**session.status_mapping, **update.status_mapping}
            session.defaulted_status_values = [
                v for v in session.defaulted_status_values if v not in update.status_mapping
            ]
        if update.priority_mapping:
            session.priority_mapping = {**session.priority_mapping, **update.priority_mapping}
            session.defaulted_priority_values = [
                v for v in session.defaulted_priority_values if v not in update.priority_mapping
            ]

        if update.create_hierarchy_items is not None:
            session.create_hierarchy_items = update.create_hierarchy_items
        if update.acknowledge_large_import is not None:
            session.acknowledge_large_import = update.acknowledge_large_import
        if update.step is not None:
            session.step = update.step

        self._seed_value_mappings(session)
        self._save(session)

        logger.info(
            "import_mapping_updated",
            session_id=session_id,
            mapped_fields=len(session.mapping),
            step=session.step
        )
        return self._build_preview(session)

    def export_errors(self, session_id: str) -> str:
        """CSV (row,error) of the current validation errors."""
        session = self._load(session_id)
        return errors_to_csv(self._validate(session).errors)

    def cancel(self, session_id: str) -> None:
        """Discard a session."""
        preview_cache_service.delete_preview(session_id)
        logger.info("import_session_cancelled", session_id=session_id)

    # ===================
    # COMMIT
    # ===================

    async def confirm(
        self,
        session_id: str,
        acknowledge_large_import: bool = False,
        author_name: Optional[str] = None,
        author_role: Optional[str] = None,
    ) -> OrderImportResult:
        """
        Commit a session's rows.

        Args:
            session_id: Wizard session
            acknowledge_large_import: User confirmed the large-batch warning
            author_name: Importing user, recorded on comments created from Notes
            author_role: That user's role

        Returns:
            OrderImportResult with inserted/updated counts

        Raises:
            ImportMappingError: Required fields unmapped
            ImportRowsInvalidError: Any row error exists
            LargeImportNotAcknowledgedError: Large batch without acknowledgment
            HierarchyCreationError: Hierarchy items could not all be created
            ImportInProgressError: A previous confirm is still writing
            ImportTimeoutError: Bulk write exceeded the timeout
            DatabaseError: Bulk write failed
        """
        session = self._load(session_id)
        if session.is_importing:
            raise ImportInProgressError(session_id)

        if acknowledge_large_import:
            session.acknowledge_large_import = True

        missing = missing_required_mappings(session.mapping)
        if missing:
            raise ImportMappingError(missing)

        result = self._validate(session)
        if result.errors:
            logger.warning(
                "import_confirm_rejected",
                session_id=session_id,
                error_count=len(result.errors)
            )
            raise ImportRowsInvalidError([e.model_dump() for e in result.errors])

        threshold = self.settings.large_import_threshold
        if is_large_import(len(session.rows), threshold) and not session.acknowledge_large_import:
            raise LargeImportNotAcknowledgedError(len(session.rows), threshold)

        session.is_importing = True
        self._save(session)

        logger.info(
            "import_confirm_started",
            session_id=session_id,
            row_count=len(result.rows),
            create_hierarchy_items=session.create_hierarchy_items
        )

        handed_to_worker = False
        try:
            rows = result.rows
            nodes_created = 0
            if session.create_hierarchy_items:
                report = await asyncio.to_thread(self._create_hierarchy_items, session, rows)
                if not report.success:
                    raise HierarchyCreationError(
                        [r.model_dump() for r in report.results]
                    )
                rows = report.rows
                nodes_created = len(report.created)

            handed_to_worker = True
            summary = await self._commit(session, rows, author_name, author_role)
        finally:
            if not handed_to_worker:
                self._release(session)

        preview_cache_service.delete_preview(session_id)

        message = f"Imported {summary.total} orders"
        if summary.updated > 0:
            message += f" ({summary.updated} updated, {summary.inserted} inserted)"

        logger.info(
            "import_confirm_complete",
            session_id=session_id,
            inserted=summary.inserted,
            updated=summary.updated,
            hierarchy_nodes_created=nodes_created
        )

        return OrderImportResult(
            success=True,
            inserted=summary.inserted,
            updated=summary.updated,
            hierarchy_nodes_created=nodes_created,
            message=message,
            tenant_id=session.tenant_id,
        )

    async def _commit(
        self,
        session: ImportSession,
        rows: list[ImportRow],
        author_name: Optional[str],
        author_role: Optional[str],
    ) -> BulkImportSummary:
        """
        Run the bulk upsert in a worker thread, bounded by the import timeout.

        On timeout the cancel flag stops further chunks; the chunk in flight
        may still land. The session stays marked as importing until the
        worker has actually returned, so a retry can't overlap it. Upserts
        are keyed on order_number and note comments are deduplicated, so a
        retry after that is safe.
        """
        cancel_event = Event()
        progress = ImportProgress()
        timeout = self.settings.import_timeout_seconds

        def write() -> BulkImportSummary:
            try:
                return self.order_service.bulk_import(
                    rows,
                    session.tenant_id,
                    chunk_size=self.settings.import_chunk_size,
                    author_name=author_name,
                    author_role=author_role,
                    cancel_event=cancel_event,
                    progress=progress,
                )
            finally:
                self._release(session)

        try:
            return await asyncio.wait_for(asyncio.to_thread(write), timeout=timeout)
        except asyncio.TimeoutError:
            cancel_event.set()
            logger.error(
                "import_commit_timed_out",
                timeout_seconds=timeout,
                chunks_committed=progress.chunks_committed,
                chunks_total=progress.chunks_total
            )
            raise ImportTimeoutError(timeout, progress.chunks_committed, progress.chunks_total)

    def _create_hierarchy_items(
        self,
        session: ImportSession,
        rows: list[ImportRow],
    ) -> HierarchyCreationReport:
        mapped_level_ids = {
            opt.level_id
            for opt in hierarchy_field_options(session.levels)
            if session.mapping.get(opt.key)
        }
        if not mapped_level_ids:
            return HierarchyCreationReport(rows=list(rows))

        existing = self.hierarchy_service.list_nodes(session.tenant_id)
        resolver = HierarchyPathResolver(
            self.hierarchy_service,
            session.levels,
            existing,
            tenant_id=session.tenant_id,
        )
        return resolver.resolve_rows(rows, mapped_level_ids)

    # ===================
    # HELPERS
    # ===================

    def _load(self, session_id: str) -> ImportSession:
        session = preview_cache_service.retrieve_preview(session_id)
        if session is None:
            raise ImportSessionNotFoundError(session_id)
        return session

    def _save(self, session: ImportSession) -> None:
        preview_cache_service.store_preview(
            session,
            ttl_minutes=self.settings.import_session_ttl_minutes,
            preview_id=session.session_id,
        )

    def _release(self, session: ImportSession) -> None:
        """Clear the importing flag; a session discarded meanwhile stays discarded."""
        session.is_importing = False
        if preview_cache_service.retrieve_preview(session.session_id) is session:
            self._save(session)

    def _seed_value_mappings(self, session: ImportSession) -> None:
        """Propose targets for raw status/priority values not mapped yet."""
        status_values = unique_column_values(
            session.rows, session.mapping.get(OrderField.STATUS.value)
        )
        seed = seed_status_mapping(status_values, session.status_mapping)
        session.status_mapping = seed.mapping
        session.defaulted_status_values = _merge_unique(session.defaulted_status_values, seed.defaulted)

        priority_values = unique_column_values(
            session.rows, session.mapping.get(OrderField.PRIORITY.value)
        )
        seed = seed_priority_mapping(priority_values, session.priority_mapping)
        session.priority_mapping = seed.mapping
        session.defaulted_priority_values = _merge_unique(session.defaulted_priority_values, seed.defaulted)

    def _hierarchy_fields(self, session: ImportSession) -> list[HierarchyFieldOption]:
        return hierarchy_field_options(session.levels)

    def _validate(self, session: ImportSession) -> ImportBuildResult:
        return build_import_rows(
            session.rows,
            session.mapping,
            session.status_mapping,
            session.priority_mapping,
            self._hierarchy_fields(session),
        )

    def _build_preview(self, session: ImportSession) -> ImportPreview:
        result = self._validate(session)
        threshold = self.settings.large_import_threshold

        status_values = unique_column_values(
            session.rows, session.mapping.get(OrderField.STATUS.value)
        )
        priority_values = unique_column_values(
            session.rows, session.mapping.get(OrderField.PRIORITY.value)
        )

        return ImportPreview(
            session_id=session.session_id,
            file_name=session.file_name,
            step=session.step,
            headers=session.headers,
            fields=[
                FieldOption(key=f.value, label=f.label, required=f.required)
                for f in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS)
            ],
            hierarchy_fields=self._hierarchy_fields(session),
            mapping=session.mapping,
            status_values=[
                ValueMappingEntry(
                    raw=value,
                    value=session.status_mapping[value].value,
                    defaulted=value in session.defaulted_status_values,
                )
                for value in status_values
            ],
            priority_values=[
                ValueMappingEntry(
                    raw=value,
                    value=session.priority_mapping[value].value,
                    defaulted=value in session.defaulted_priority_values,
                )
                for value in priority_values
            ],
            create_hierarchy_items=session.create_hierarchy_items,
            acknowledge_large_import=session.acknowledge_large_import,
            row_count=len(session.rows),
            valid_row_count=len(result.rows),
            error_count=len(result.errors),
            errors=result.errors,
            preview_rows=build_preview_rows(session.rows, session.mapping),
            large_import=is_large_import(len(session.rows), threshold),
            import_enabled=is_import_enabled(
                len(session.rows),
                len(result.errors),
                session.acknowledge_large_import,
                is_importing=session.is_importing,
                threshold=threshold,
            ),
            expires_in_minutes=self.settings.import_session_ttl_minutes,
        )


def _merge_unique(current: list[str], extra: list[str]) -> list[str]:
    return current + [v for v in extra if v not in current]


# Singleton instance for convenience
_order_import_service: Optional[OrderImportService] = None


def get_order_import_service() -> OrderImportService:
    """Get or create OrderImportService instance."""
    global _order_import_service
    if _order_import_service is None:
        _order_import_service = OrderImportService()
    return _order_import_service
