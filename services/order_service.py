"""
Order service for bulk Excel imports.

Upserts validated import rows into `orders` (conflict on order_number),
reports how many were inserted vs updated, and turns Notes into order
comments.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event
from typing import Optional
import structlog

from config import get_supabase_client
from models.order import BulkImportSummary
from models.order_import import ImportRow
from exceptions import DatabaseError, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 500


@dataclass
class ImportProgress:
    """Chunk counters shared with the caller while a write runs in a worker thread."""
    chunks_total: int = 0
    chunks_committed: int = 0


class OrderService:
    """
    Order persistence.

    Handles bulk upsert of imported orders.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"
        self.comments_table = "order_comments"

    def bulk_import(
        self,
        rows: list[ImportRow],
        tenant_id: Optional[str],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        author_name: Optional[str] = None,
        author_role: Optional[str] = None,
        cancel_event: Optional[Event] = None,
        progress: Optional[ImportProgress] = None,
    ) -> BulkImportSummary:
        """
        Upsert imported orders.

        Args:
            rows: Validated rows, in file order
            tenant_id: Owning tenant (required)
            chunk_size: Rows per upsert request
            author_name: Author recorded on comments created from Notes
            author_role: Role recorded on those comments
            cancel_event: When set, no further chunks are started
            progress: Updated after each committed chunk

        Returns:
            BulkImportSummary with inserted/updated counts

        Raises:
            ValidationError: If tenant_id is missing
            DatabaseError: If any query fails (message surfaced verbatim)
        """
        progress = progress or ImportProgress()

        if not rows:
            logger.info("orders_bulk_import_empty")
            return BulkImportSummary()

        if not tenant_id:
            raise ValidationError(
                message="Missing tenant assignment.",
                code="TENANT_REQUIRED"
            )

        # Last occurrence wins if a caller passes duplicates
        unique_rows: dict[str, ImportRow] = {}
        for row in rows:
            unique_rows[row.order_number] = row
        deduped = list(unique_rows.values())

        logger.info(
            "orders_bulk_import_started",
            tenant_id=tenant_id,
            row_count=len(deduped),
            chunk_size=chunk_size
        )

        existing = self._existing_order_numbers(list(unique_rows), chunk_size)

        synced_at = datetime.now(timezone.utc).isoformat()
        payload = [self._to_record(row, tenant_id, synced_at) for row in deduped]
        chunks = [payload[i:i + chunk_size] for i in range(0, len(payload), chunk_size)]
        progress.chunks_total = len(chunks)

        order_ids: dict[str, str] = {}
        for chunk in chunks:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "orders_bulk_import_cancelled",
                    chunks_committed=progress.chunks_committed,
                    chunks_total=progress.chunks_total
                )
                break
            try:
                result = (
                    self.db.table(self.table)
                    .upsert(chunk, on_conflict="order_number")
                    .execute()
                )
            except Exception as e:
                logger.error(
                    "orders_upsert_failed",
                    chunk=progress.chunks_committed + 1,
                    error=str(e)
                )
                raise DatabaseError("upsert", str(e), details={
                    "chunks_committed": progress.chunks_committed,
                    "chunks_total": progress.chunks_total,
                })
            for record in result.data or []:
                order_ids[record["order_number"]] = record["id"]
            progress.chunks_committed += 1

        updated = sum(1 for number in order_ids if number in existing)
        inserted = len(order_ids) - updated

        if cancel_event is not None and cancel_event.is_set():
            # The caller stopped waiting; nothing more is written after that
            logger.warning(
                "orders_bulk_import_comments_skipped",
                chunks_committed=progress.chunks_committed,
                chunks_total=progress.chunks_total
            )
            return BulkImportSummary(
                inserted=inserted,
                updated=updated,
                chunks_committed=progress.chunks_committed,
                chunks_total=progress.chunks_total,
            )

        comments_created = self._create_note_comments(
            deduped, order_ids, tenant_id, author_name, author_role
        )

        summary = BulkImportSummary(
            inserted=inserted,
            updated=updated,
            chunks_committed=progress.chunks_committed,
            chunks_total=progress.chunks_total,
            comments_created=comments_created,
        )

        logger.info(
            "orders_bulk_import_complete",
            tenant_id=tenant_id,
            inserted=summary.inserted,
            updated=summary.updated,
            comments=comments_created
        )
        return summary

    def _existing_order_numbers(self, order_numbers: list[str], chunk_size: int) -> set[str]:
        """Order numbers already in the table (drives inserted vs updated)."""
        existing: set[str] = set()
        for i in range(0, len(order_numbers), chunk_size):
            batch = order_numbers[i:i + chunk_size]
            try:
                result = (
                    self.db.table(self.table)
                    .select("id, order_number")
                    .in_("order_number", batch)
                    .execute()
                )
            except Exception as e:
                logger.error("existing_orders_lookup_failed", error=str(e))
                raise DatabaseError("select", str(e))
            existing.update(record["order_number"] for record in result.data or [])
        return existing

    @staticmethod
    def _to_record(row: ImportRow, tenant_id: str, synced_at: str) -> dict:
        return {
            "tenant_id": tenant_id,
            "order_number": row.order_number,
            "customer_name": row.customer_name,
            "product_name": row.product_name,
            "quantity": row.quantity,
            "hierarchy": row.hierarchy,
            "due_date": row.due_date,
            "priority": row.priority.value,
            "status": row.status.value,
            "source": "excel",
            "external_id": None,
            "source_payload": row.source_payload,
            "synced_at": synced_at,
        }

    def _create_note_comments(
        self,
        rows: list[ImportRow],
        order_ids: dict[str, str],
        tenant_id: str,
        author_name: Optional[str],
        author_role: Optional[str],
    ) -> int:
        """
        Insert one comment per order with Notes.

        An order that already carries the same message is skipped, so
        re-running an import does not duplicate comments.
        """
        comments = [
            {
                "order_id": order_ids[row.order_number],
                "tenant_id": tenant_id,
                "message": row.notes,
                "author_name": author_name or "System",
                "author_role": author_role,
            }
            for row in rows
            if row.notes and row.order_number in order_ids
        ]
        if not comments:
            return 0

        already = self._existing_comments([c["order_id"] for c in comments])
        comments = [c for c in comments if (c["order_id"], c["message"]) not in already]
        if not comments:
            logger.info("order_comments_already_present")
            return 0

        try:
            self.db.table(self.comments_table).insert(comments).execute()
        except Exception as e:
            logger.error("order_comments_insert_failed", count=len(comments), error=str(e))
            raise DatabaseError("insert", str(e))
        return len(comments)

    def _existing_comments(self, order_ids: list[str]) -> set[tuple[str, str]]:
        """(order_id, message) pairs already stored for the given orders."""
        existing: set[tuple[str, str]] = set()
        for i in range(0, len(order_ids), DEFAULT_CHUNK_SIZE):
            batch = order_ids[i:i + DEFAULT_CHUNK_SIZE]
            try:
                result = (
                    self.db.table(self.comments_table)
                    .select("order_id, message")
                    .in_("order_id", batch)
                    .execute()
                )
            except Exception as e:
                logger.error("existing_comments_lookup_failed", error=str(e))
                raise DatabaseError("select", str(e))
            existing.update((r["order_id"], r["message"]) for r in result.data or [])
        return existing


# Singleton instance for convenience
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create OrderService instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
