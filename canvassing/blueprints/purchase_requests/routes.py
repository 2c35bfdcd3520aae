"""
canvassing/blueprints/purchase_requests/routes.py

Purchase request intake and listing (JSON).

Includes:
- list with search, section/status filters, pagination and stats
- next PR number
- intake (201 stored, 202 kept locally pending sync)
- detail, status change, edit (refused once canvassing has started)

IMPORTANT:
- Totals and the high-value flag are derived from items server-side; values
  sent by the client are ignored.
"""

from __future__ import annotations

import logging
import math
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import RequestLocked, RequestNotFound, StoreUnavailable, ValidationFailed
from ...models import PurchaseRequestItem
from ...purchase_requests import (
    PR_STATUSES,
    SECTIONS,
    STATUS_DRAFT,
    STATUS_PENDING,
    UNITS,
    from_intake,
    intake_problems,
)
from ...security import bac_required
from ...store import request_row
from ...utils import ZERO, format_php, money

logger = logging.getLogger(__name__)

requests_bp = Blueprint("purchase_requests", __name__, url_prefix="/requests")

EDITABLE_FIELDS = (
    "office_section",
    "responsibility_code",
    "purpose",
    "budget_number",
    "pap_code",
    "proposal_file_name",
)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _services() -> dict:
    return current_app.extensions["canvassing"]


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed("Expected a JSON object body.")
    return data


def _parse_date(value) -> date | None:
    """ISO date from the client, None when blank."""
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed(f"Invalid date: {raw}", field="date") from None


def _parse_page(value) -> int:
    try:
        return max(int(value), 1)
    except (TypeError, ValueError):
        return 1


def _clean_text(data: dict) -> dict:
    """Header fields as strings; JSON numbers and nulls included."""
    cleaned = dict(data)
    for name in EDITABLE_FIELDS:
        if name in cleaned:
            cleaned[name] = "" if cleaned[name] is None else str(cleaned[name])
    return cleaned


def _items(data: dict) -> list:
    """Line item rows from the body; each row must be a JSON object."""
    rows = data.get("items") or []
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise ValidationFailed("items must be a list of objects.", field="items")
    return rows


def _matches(entry, q: str, section: str, status: str) -> bool:
    pr = entry.pr
    if section and pr.office_section != section:
        return False
    if status and pr.status != status:
        return False
    if q:
        haystack = " ".join(
            [pr.pr_no, pr.office_section, pr.purpose] + [item.desc for item in pr.items]
        ).lower()
        if q.lower() not in haystack:
            return False
    return True


def _stats(entries) -> dict:
    by_status = {status: 0 for status in PR_STATUSES}
    total_amount = sum((entry.pr.total for entry in entries), ZERO)
    for entry in entries:
        by_status[entry.pr.status] = by_status.get(entry.pr.status, 0) + 1
    return {
        "total": len(entries),
        "by_status": by_status,
        "high_value": sum(1 for entry in entries if entry.pr.is_high_value),
        "pending_sync": sum(1 for entry in entries if entry.pending_sync),
        "total_amount": str(money(total_amount)),
        "total_amount_display": format_php(total_amount),
    }


def _detail(record) -> dict:
    store = _services()["store"]
    pr = record.to_domain(store.threshold)
    data = pr.to_dict()
    data["total_display"] = format_php(pr.total)
    data["pending_sync"] = False
    data["canvass"] = None
    if record.canvass_session is not None:
        data["canvass"] = {
            "stage": record.canvass_session.stage,
            "bac_no": record.canvass_session.bac_no,
            "completed": record.canvass_session.completed_at is not None,
        }
    return data


# ---------------------------------------------------------------------
# List / lookup
# ---------------------------------------------------------------------
@requests_bp.route("/", methods=["GET"])
@login_required
def list_requests():
    registry = _services()["registry"]
    page_size = current_app.config.get("REQUESTS_PAGE_SIZE", 7)

    q = (request.args.get("q") or "").strip()
    section = (request.args.get("section") or "").strip()
    status = (request.args.get("status") or "").strip()
    page = _parse_page(request.args.get("page"))

    entries = registry.all()
    filtered = [entry for entry in entries if _matches(entry, q, section, status)]

    pages = max(math.ceil(len(filtered) / page_size), 1)
    page = min(page, pages)
    start = (page - 1) * page_size
    now = registry.clock()

    return jsonify({
        "requests": [request_row(entry, now) for entry in filtered[start:start + page_size]],
        "page": page,
        "pages": pages,
        "page_size": page_size,
        "total": len(filtered),
        "stats": _stats(entries),
        "offline": registry.offline,
        "filters": {"sections": SECTIONS, "statuses": PR_STATUSES, "units": UNITS},
    })


@requests_bp.route("/next-number", methods=["GET"])
@login_required
def next_number():
    registry = _services()["registry"]
    year = _services()["context"].today().year
    return jsonify({"pr_no": registry.next_number(year)})


@requests_bp.route("/<pr_no>", methods=["GET"])
@login_required
def get_request(pr_no: str):
    services = _services()
    record = services["store"].get_request(pr_no)
    if record is not None:
        return jsonify({"request": _detail(record)})

    pending = services["registry"].find_pending(pr_no)
    if pending is not None:
        data = pending.pr.to_dict()
        data["total_display"] = format_php(pending.pr.total)
        data["pending_sync"] = True
        data["canvass"] = None
        return jsonify({"request": data})

    raise RequestNotFound(f"No purchase request {pr_no}.", pr_no=pr_no)


# ---------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------
def _is_taken(pr_no: str) -> bool:
    services = _services()
    if services["registry"].find_pending(pr_no) is not None:
        return True
    try:
        return services["store"].get_request(pr_no) is not None
    except StoreUnavailable:
        # checked again by the unique constraint once the store is back
        return False


@requests_bp.route("/", methods=["POST"])
@bac_required
def create_request():
    """
    Submit a new purchase request.

    201: stored. 202: the store was unreachable; the request is kept locally
    and flagged pending sync, with a one-time notice.
    """
    services = _services()
    store = services["store"]
    registry = services["registry"]
    data = _body()

    pr_no = str(data.get("pr_no") or "").strip()
    if not pr_no:
        pr_no = registry.next_number(services["context"].today().year)
    elif _is_taken(pr_no):
        raise ValidationFailed(f"PR number {pr_no} is already used.", field="pr_no")

    status = str(data.get("status") or STATUS_PENDING).strip()
    if status not in (STATUS_DRAFT, STATUS_PENDING):
        raise ValidationFailed("New requests start as draft or pending.", field="status")

    intake = _clean_text(data)
    intake["items"] = _items(data)
    intake["date"] = _parse_date(data.get("date")) or services["context"].today()
    intake["status"] = status
    pr = from_intake(pr_no, intake, threshold=store.threshold)

    problems = intake_problems(pr)
    if problems:
        raise ValidationFailed("Purchase request is incomplete.", problems=problems)

    def _audit(record):
        log_action(record, "CREATE", after=serialize_model(record), key=record.pr_no)

    result = registry.submit(pr, created_by=current_user, on_insert=_audit)

    payload = pr.to_dict()
    payload["total_display"] = format_php(pr.total)
    payload["pending_sync"] = result.pending_sync
    if result.pending_sync:
        return jsonify({"request": payload, "notice": result.notice}), 202
    return jsonify({"request": payload}), 201


# ---------------------------------------------------------------------
# Status / edit
# ---------------------------------------------------------------------
@requests_bp.route("/<pr_no>/status", methods=["POST"])
@bac_required
def change_status(pr_no: str):
    """Status stays editable after canvassing starts; content does not."""
    store = _services()["store"]
    data = _body()

    status = str(data.get("status") or "").strip()
    if status not in PR_STATUSES:
        raise ValidationFailed(f"Status must be one of: {', '.join(PR_STATUSES)}.", field="status")

    record = store.require_request(pr_no)
    before = serialize_model(record)
    store.update_status(pr_no, status)
    log_action(record, "STATUS", before=before, after=serialize_model(record), key=pr_no)
    store.commit()

    logger.info("Request %s status %s -> %s", pr_no, before["status"], status, extra={"pr_no": pr_no})
    return jsonify({"request": _detail(record)})


@requests_bp.route("/<pr_no>", methods=["PATCH"])
@bac_required
def edit_request(pr_no: str):
    """Edit header fields and/or replace the line items before canvassing."""
    store = _services()["store"]
    data = _body()

    record = store.require_request(pr_no)
    if record.canvassing_started:
        raise RequestLocked(f"Canvassing has started for {pr_no}; only the status can change.", pr_no=pr_no)

    current = record.to_domain(store.threshold)
    merged = {name: getattr(current, name) for name in EDITABLE_FIELDS}
    merged["date"] = current.pr_date
    merged["status"] = current.status
    merged["items"] = [
        {"desc": i.desc, "stock": i.stock, "unit": i.unit, "qty": str(i.qty), "price": str(i.unit_cost)}
        for i in current.items
    ]
    cleaned = _clean_text(data)
    for name in EDITABLE_FIELDS:
        if name in cleaned:
            merged[name] = cleaned[name]
    if "date" in data:
        merged["date"] = _parse_date(data["date"])
    if "items" in data:
        merged["items"] = _items(data)

    updated = from_intake(pr_no, merged, threshold=store.threshold)
    problems = intake_problems(updated)
    if problems:
        raise ValidationFailed("Purchase request is incomplete.", problems=problems)

    before = serialize_model(record)

    record.pr_date = updated.pr_date
    record.office_section = updated.office_section
    record.responsibility_code = updated.responsibility_code or None
    record.purpose = updated.purpose
    record.budget_number = updated.budget_number
    record.pap_code = updated.pap_code
    record.proposal_file_name = updated.proposal_file_name

    if "items" in data:
        record.items.clear()
        # old rows must be gone before new line numbers are inserted
        store.db.session.flush()
        for item in updated.items:
            record.items.append(
                PurchaseRequestItem(
                    line_no=item.id,
                    description=item.desc,
                    stock_no=item.stock or None,
                    unit=item.unit or None,
                    quantity=item.qty,
                    unit_cost=item.unit_cost,
                )
            )
    record.recalc_totals(store.threshold)

    store.db.session.flush()
    log_action(record, "UPDATE", before=before, after=serialize_model(record), key=pr_no)
    store.commit()

    return jsonify({"request": _detail(record)})
