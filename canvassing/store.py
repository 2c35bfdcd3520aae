"""
canvassing/store.py

Persistence for purchase requests and canvass sessions.

SqlRequestStore is the table store keyed by PR number. It only flushes; the
caller decides when to commit (same rule as the audit helper). Any
SQLAlchemyError is rolled back and re-raised as StoreUnavailable.

RequestRegistry sits in front of the store for intake and listing. When a
write fails the request is kept in process memory, flagged "pending sync" and
a one-time notice is returned. There is no retry and no durable queue: a
restart loses pending records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .divisions import DEFAULT_CANVASSERS, DEFAULT_DIVISIONS
from .errors import RequestNotFound, StoreUnavailable
from .models import BacMember, CanvassSessionRecord, Division, PurchaseRequestRecord
from .purchase_requests import HIGH_VALUE_THRESHOLD, PR_STATUSES, PurchaseRequest, generate_pr_number
from .roster import DEFAULT_BAC_MEMBERS
from .utils import elapsed_label, format_long_date, format_php, money
from .workflow import CanvassSession, WorkflowContext

logger = logging.getLogger(__name__)

PENDING_SYNC_NOTICE = "Could not reach the server. Record will sync when online."


class SqlRequestStore:
    def __init__(self, db, threshold: Decimal = HIGH_VALUE_THRESHOLD):
        self.db = db
        self.threshold = threshold

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _unavailable(self, what: str, exc: Exception) -> StoreUnavailable:
        try:
            self.db.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after %s", what)
        logger.warning("Store failure during %s: %s", what, exc)
        return StoreUnavailable(f"Could not {what}.", operation=what)

    def commit(self) -> None:
        try:
            self.db.session.commit()
        except SQLAlchemyError as exc:
            raise self._unavailable("save changes", exc) from exc

    # ------------------------------------------------------------------
    # purchase requests
    # ------------------------------------------------------------------
    def insert_request(self, pr: PurchaseRequest, created_by=None) -> PurchaseRequestRecord:
        """Insert request + items. Flushes so the row has an id."""
        try:
            record = PurchaseRequestRecord.from_domain(pr)
            if created_by is not None:
                record.created_by_id = created_by.id
            self.db.session.add(record)
            self.db.session.flush()
        except SQLAlchemyError as exc:
            raise self._unavailable("store the purchase request", exc) from exc
        return record

    def fetch_requests(self) -> list[PurchaseRequestRecord]:
        try:
            return (
                PurchaseRequestRecord.query
                .order_by(PurchaseRequestRecord.created_at.desc(), PurchaseRequestRecord.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable("read purchase requests", exc) from exc

    def get_request(self, pr_no: str) -> Optional[PurchaseRequestRecord]:
        try:
            return PurchaseRequestRecord.query.filter_by(pr_no=pr_no).first()
        except SQLAlchemyError as exc:
            raise self._unavailable("read the purchase request", exc) from exc

    def require_request(self, pr_no: str) -> PurchaseRequestRecord:
        record = self.get_request(pr_no)
        if record is None:
            raise RequestNotFound(f"No purchase request {pr_no}.", pr_no=pr_no)
        return record

    def update_status(self, pr_no: str, status: str) -> PurchaseRequestRecord:
        if status not in PR_STATUSES:
            raise ValueError(f"Unknown status: {status}")
        record = self.require_request(pr_no)
        try:
            record.status = status
            self.db.session.flush()
        except SQLAlchemyError as exc:
            raise self._unavailable("update the request status", exc) from exc
        return record

    def request_numbers(self) -> list[str]:
        try:
            return [row.pr_no for row in self.db.session.query(PurchaseRequestRecord.pr_no).all()]
        except SQLAlchemyError as exc:
            raise self._unavailable("read request numbers", exc) from exc

    # ------------------------------------------------------------------
    # master data
    # ------------------------------------------------------------------
    def master_data(self) -> dict:
        """
        Active BAC members and divisions for opening a new session.

        Falls back to the built-in defaults when a table is empty (fresh
        install without `flask seed-defaults`).
        """
        try:
            members = (
                BacMember.query.filter_by(is_active=True)
                .order_by(BacMember.sort_order.asc(), BacMember.id.asc())
                .all()
            )
            divisions = (
                Division.query.filter_by(is_active=True)
                .order_by(Division.sort_order.asc(), Division.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable("read master data", exc) from exc

        data = {
            "bac_members": [(m.name, m.designation) for m in members] or list(DEFAULT_BAC_MEMBERS),
            "divisions": list(DEFAULT_DIVISIONS),
            "canvassers": dict(DEFAULT_CANVASSERS),
        }
        if divisions:
            data["divisions"] = [d.section for d in divisions]
            data["canvassers"] = {d.section: d.canvasser_name for d in divisions if d.canvasser_name}
        return data

    # ------------------------------------------------------------------
    # canvass sessions
    # ------------------------------------------------------------------
    def get_session_record(self, pr_no: str) -> Optional[CanvassSessionRecord]:
        try:
            return CanvassSessionRecord.query.filter_by(pr_no=pr_no).first()
        except SQLAlchemyError as exc:
            raise self._unavailable("read the canvass session", exc) from exc

    def load_session(self, pr_no: str, context: WorkflowContext) -> Optional[CanvassSession]:
        record = self.get_session_record(pr_no)
        if record is None:
            return None
        pr = record.purchase_request.to_domain(self.threshold)
        return CanvassSession.from_dict(pr, record.state, context)

    def save_session(self, session: CanvassSession) -> CanvassSessionRecord:
        record = self.get_session_record(session.pr.pr_no)
        try:
            if record is None:
                pr_record = self.require_request(session.pr.pr_no)
                record = CanvassSessionRecord(pr_id=pr_record.id, pr_no=pr_record.pr_no)
                self.db.session.add(record)
            record.apply_snapshot(session.to_dict())
            self.db.session.flush()
        except SQLAlchemyError as exc:
            raise self._unavailable("save the canvass session", exc) from exc
        return record


# ---------------------------------------------------------------------
# Intake / listing with local fallback
# ---------------------------------------------------------------------
@dataclass
class RequestEntry:
    pr: PurchaseRequest
    created_at: datetime
    pending_sync: bool = False


@dataclass
class SubmitResult:
    pr: PurchaseRequest
    record: Optional[PurchaseRequestRecord] = None
    pending_sync: bool = False
    notice: Optional[str] = None


@dataclass
class RequestRegistry:
    store: SqlRequestStore
    # utc, to match the created_at column defaults
    clock: Callable[[], datetime] = datetime.utcnow
    pending: list[RequestEntry] = field(default_factory=list)
    # True when the last listing came from the local list only
    offline: bool = False

    def submit(self, pr: PurchaseRequest, created_by=None, on_insert=None) -> SubmitResult:
        """
        Store a new request, or keep it locally when the store is down.

        on_insert(record) runs after the flush and before the commit (audit rows).
        """
        try:
            record = self.store.insert_request(pr, created_by=created_by)
            if on_insert is not None:
                on_insert(record)
            self.store.commit()
        except StoreUnavailable:
            self.pending.insert(0, RequestEntry(pr=pr, created_at=self.clock(), pending_sync=True))
            logger.warning("Request %s kept locally, pending sync", pr.pr_no, extra={"pr_no": pr.pr_no})
            return SubmitResult(pr=pr, pending_sync=True, notice=PENDING_SYNC_NOTICE)

        logger.info("Request %s stored", pr.pr_no, extra={"pr_no": pr.pr_no})
        return SubmitResult(pr=pr, record=record)

    def all(self) -> list[RequestEntry]:
        """Pending-sync entries first (newest first), then stored ones."""
        try:
            records = self.store.fetch_requests()
        except StoreUnavailable:
            self.offline = True
            return list(self.pending)

        self.offline = False
        stored = [
            RequestEntry(pr=r.to_domain(self.store.threshold), created_at=r.created_at or self.clock())
            for r in records
        ]
        return list(self.pending) + stored

    def find_pending(self, pr_no: str) -> Optional[RequestEntry]:
        for entry in self.pending:
            if entry.pr.pr_no == pr_no:
                return entry
        return None

    def next_number(self, year: int) -> str:
        numbers = [entry.pr.pr_no for entry in self.pending]
        try:
            numbers.extend(self.store.request_numbers())
        except StoreUnavailable:
            logger.warning("Numbering from local requests only")
        return generate_pr_number(numbers, year)


def request_row(entry: RequestEntry, now: datetime) -> dict:
    """List row shown on the requests screen."""
    pr = entry.pr
    return {
        "pr_no": pr.pr_no,
        "item_description": f"{pr.office_section} procurement request",
        "office_section": pr.office_section,
        "purpose": pr.purpose,
        "quantity": len(pr.items),
        "amount": str(money(pr.total)),
        "amount_display": format_php(pr.total),
        "is_high_value": pr.is_high_value,
        "status": pr.status,
        "date": format_long_date(pr.pr_date),
        "elapsed": elapsed_label(entry.created_at, now),
        "pending_sync": entry.pending_sync,
    }
