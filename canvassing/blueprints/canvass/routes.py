"""
canvassing/blueprints/canvass/routes.py

Canvass session API: one endpoint per workflow action.

Every mutating route follows the same cycle:
    load session -> apply one operation -> save snapshot -> audit -> commit
and answers with the full session view, so the client never has to compute
predicates, awards or overdue flags itself.

Workflow errors (StageLocked, StageIncomplete, ...) propagate to the JSON
error handlers registered in create_app().
"""

from __future__ import annotations

import logging
from dataclasses import replace

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ...audit import log_action
from ...errors import RequestNotApproved, SessionNotStarted, ValidationFailed
from ...purchase_requests import STATUS_APPROVED, STATUS_PROCESSING
from ...quotes import QUOTE_TEXT_FIELDS
from ...security import bac_required
from ...utils import format_php
from ...workflow import MODES_OF_PROCUREMENT, STAGE_ORDER, CanvassSession

logger = logging.getLogger(__name__)

canvass_bp = Blueprint("canvass", __name__, url_prefix="/canvass")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _services() -> dict:
    return current_app.extensions["canvassing"]


def _body() -> dict:
    """JSON object body; an empty body counts as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailed("Expected a JSON object body.")
    return data


def _optional_text(data: dict, name: str):
    if name not in data:
        return None
    value = data[name]
    return "" if value is None else str(value)


def _context():
    return _services()["context"].for_user(current_user.full_name)


def _load(pr_no: str) -> CanvassSession:
    store = _services()["store"]
    session = store.load_session(pr_no, _context())
    if session is None:
        store.require_request(pr_no)
        raise SessionNotStarted(f"Canvassing has not started for {pr_no}.", pr_no=pr_no)
    return session


def _view(session: CanvassSession) -> dict:
    context = session.context
    today = context.today()
    window = context.return_window_days
    recommendation = session.recommendation()

    divisions = []
    for assignment in session.divisions:
        row = assignment.to_dict()
        row["overdue"] = assignment.is_overdue(today, window)
        due = assignment.due_date(window)
        row["due_date"] = due.isoformat() if due else None
        divisions.append(row)

    aaa = session.aaa_roster
    return {
        "session": session.to_dict(),
        "request": session.pr.to_dict(),
        "divisions": divisions,
        "stages": session.stage_strip(),
        "stage_complete": {stage: session.is_stage_complete(stage) for stage in STAGE_ORDER},
        "can_advance": session.can_advance(),
        "finished": session.is_finished,
        "progress": {
            "bac_signed": session.bac_roster.signed_count,
            "bac_total": len(session.bac_roster),
            "released": session.divisions.released_count,
            "returned": session.divisions.returned_count,
            "divisions_total": len(session.divisions),
            "aaa_signed": aaa.signed_count if aaa is not None else 0,
            "aaa_total": len(aaa) if aaa is not None else 0,
        },
        "overdue": [a.section for a in session.divisions.overdue(today, window)],
        "recommendation": recommendation.to_dict(),
        "modes_of_procurement": MODES_OF_PROCUREMENT,
    }


def _save(session: CanvassSession, action: str, detail: dict | None = None, status: int = 200):
    """Persist, audit and commit one workflow action."""
    store = _services()["store"]
    record = store.save_session(session)
    log_action(record, action, after=detail, key=session.pr.pr_no)
    store.commit()
    return jsonify(_view(session)), status


def _value_error(exc: ValueError):
    return ValidationFailed(str(exc))


# ---------------------------------------------------------------------
# Start / view
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>", methods=["POST"])
@bac_required
def start(pr_no: str):
    """
    Open the canvass session for an approved request.

    Idempotent: a second call returns the existing session with 200.
    """
    store = _services()["store"]
    record = store.require_request(pr_no)

    existing = store.load_session(pr_no, _context())
    if existing is not None:
        return jsonify(_view(existing))

    if record.status != STATUS_APPROVED:
        raise RequestNotApproved(
            f"{pr_no} is {record.status}; only approved requests can be canvassed.",
            pr_no=pr_no,
            status=record.status,
        )

    master = store.master_data()
    context = replace(
        _context(),
        bac_members=master["bac_members"],
        divisions=master["divisions"],
        canvassers=master["canvassers"],
    )
    session = CanvassSession(record.to_domain(store.threshold), context)
    logger.info("Canvass started for %s", pr_no, extra={"pr_no": pr_no})
    return _save(session, "START", status=201)


@canvass_bp.route("/<pr_no>", methods=["GET"])
@login_required
def view(pr_no: str):
    return jsonify(_view(_load(pr_no)))


@canvass_bp.route("/<pr_no>/awards", methods=["GET"])
@login_required
def awards(pr_no: str):
    """Abstract of awards, recomputed from the current quotes."""
    session = _load(pr_no)
    recommendation = session.recommendation()

    data = recommendation.to_dict()
    for item in session.pr.items:
        award = recommendation.item_awards.get(item.id)
        row = data["items"][str(item.id)]
        if row is not None:
            row["price_display"] = format_php(award.price)
            row["desc"] = item.desc
    for row, total in zip(data["supplier_totals"], recommendation.supplier_totals):
        row["total_display"] = format_php(total.total)
    if recommendation.awardee is not None:
        data["awardee"]["total_display"] = format_php(recommendation.awardee.total)

    return jsonify({"pr_no": pr_no, "awards": data})


# ---------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/advance", methods=["POST"])
@bac_required
def advance(pr_no: str):
    session = _load(pr_no)
    previous = session.stage
    session.advance()

    detail = {"from": previous, "to": session.stage}
    if session.is_finished:
        store = _services()["store"]
        store.update_status(pr_no, STATUS_PROCESSING)
        detail["summary"] = session.summary.to_dict()
    return _save(session, "ADVANCE", detail)


@canvass_bp.route("/<pr_no>/navigate/<stage>", methods=["POST"])
@login_required
def navigate(pr_no: str, stage: str):
    """Review a reached stage. Viewers may navigate too; nothing is completed or reset."""
    session = _load(pr_no)
    session.navigate(stage)
    store = _services()["store"]
    store.save_session(session)
    store.commit()
    return jsonify(_view(session))


# ---------------------------------------------------------------------
# Step 6: PR received
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/receive", methods=["POST"])
@bac_required
def receive(pr_no: str):
    data = _body()
    session = _load(pr_no)
    bac_no = _optional_text(data, "bac_no")
    session.receive(
        bac_no=session.bac_no if bac_no is None else bac_no,
        received_by=_optional_text(data, "received_by"),
        notes=_optional_text(data, "notes"),
    )
    return _save(session, "RECEIVE", {"bac_no": session.bac_no, "received_by": session.received_by})


# ---------------------------------------------------------------------
# Step 7: BAC resolution
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/resolution", methods=["POST"])
@bac_required
def resolution(pr_no: str):
    data = _body()
    session = _load(pr_no)
    try:
        session.set_resolution(
            resolution_no=_optional_text(data, "resolution_no"),
            mode_of_procurement=_optional_text(data, "mode_of_procurement"),
            basis=_optional_text(data, "basis"),
        )
    except ValueError as exc:
        raise _value_error(exc) from exc
    return _save(
        session,
        "RESOLUTION",
        {"resolution_no": session.resolution_no, "mode_of_procurement": session.mode_of_procurement},
    )


@canvass_bp.route("/<pr_no>/resolution/sign/<int:index>", methods=["POST"])
@bac_required
def sign_resolution(pr_no: str, index: int):
    session = _load(pr_no)
    signatory = session.sign_resolution(index)
    return _save(session, "SIGN_RESOLUTION", signatory.to_dict())


# ---------------------------------------------------------------------
# Step 8: release canvass
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/divisions/release-all", methods=["POST"])
@bac_required
def release_all(pr_no: str):
    session = _load(pr_no)
    released = session.release_all()
    return _save(session, "RELEASE", {"sections": [a.section for a in released]})


@canvass_bp.route("/<pr_no>/divisions/<section>/release", methods=["POST"])
@bac_required
def release(pr_no: str, section: str):
    session = _load(pr_no)
    assignment = session.release(section)
    return _save(session, "RELEASE", assignment.to_dict())


# ---------------------------------------------------------------------
# Step 9: collect canvass
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/divisions/<section>/return", methods=["POST"])
@bac_required
def mark_returned(pr_no: str, section: str):
    session = _load(pr_no)
    assignment = session.mark_returned(section)
    return _save(session, "RETURN", assignment.to_dict())


@canvass_bp.route("/<pr_no>/quotes", methods=["POST"])
@bac_required
def add_quote(pr_no: str):
    session = _load(pr_no)
    quote = session.add_quote()
    return _save(session, "ADD_QUOTE", {"quote_id": quote.id}, status=201)


@canvass_bp.route("/<pr_no>/quotes/<int:quote_id>", methods=["PATCH"])
@bac_required
def update_quote(pr_no: str, quote_id: int):
    """
    Update supplier details and/or unit prices.

    Body: any of the supplier text fields plus "unit_prices": {item_id: price}.
    Prices are stored as typed; bad numbers are just "no bid".
    """
    data = _body()
    unknown = sorted(set(data) - set(QUOTE_TEXT_FIELDS) - {"unit_prices"})
    if unknown:
        raise ValidationFailed(f"Unknown quote fields: {', '.join(unknown)}", fields=unknown)

    prices = data.get("unit_prices") or {}
    if not isinstance(prices, dict):
        raise ValidationFailed("unit_prices must be an object keyed by item id.", field="unit_prices")

    session = _load(pr_no)
    fields = {name: data[name] for name in QUOTE_TEXT_FIELDS if name in data}
    try:
        quote = session.update_quote(quote_id, **fields)
        for item_id, value in prices.items():
            session.set_price(quote_id, int(item_id), value)
    except ValueError as exc:
        raise _value_error(exc) from exc

    return _save(session, "UPDATE_QUOTE", quote.to_dict())


@canvass_bp.route("/<pr_no>/quotes/<int:quote_id>", methods=["DELETE"])
@bac_required
def remove_quote(pr_no: str, quote_id: int):
    session = _load(pr_no)
    session.remove_quote(quote_id)
    return _save(session, "REMOVE_QUOTE", {"quote_id": quote_id})


# ---------------------------------------------------------------------
# Step 10: abstract of awards
# ---------------------------------------------------------------------
@canvass_bp.route("/<pr_no>/abstract", methods=["POST"])
@bac_required
def abstract(pr_no: str):
    data = _body()
    session = _load(pr_no)
    aaa_no = _optional_text(data, "aaa_no")
    session.set_aaa_no(session.aaa_no if aaa_no is None else aaa_no)
    return _save(session, "ABSTRACT", {"aaa_no": session.aaa_no})


@canvass_bp.route("/<pr_no>/abstract/sign/<int:index>", methods=["POST"])
@bac_required
def sign_abstract(pr_no: str, index: int):
    session = _load(pr_no)
    signatory = session.sign_abstract(index)
    return _save(session, "SIGN_ABSTRACT", signatory.to_dict())
