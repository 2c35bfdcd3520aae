"""
Canvassing Service – Domain Models

Tables:
- users: login accounts (role: admin / bac / viewer)
- bac_members, divisions: master data used to open new canvass sessions
- purchase_requests + purchase_request_items: intake records keyed by PR number
- canvass_sessions: one per purchase request; full workflow snapshot in `state`
  plus the columns worth querying (stage, numbers, award)
- audit_logs: who changed what

IMPORTANT:
- Workflow rules live in canvassing/workflow.py. Models only store state and
  convert to/from the plain workflow values.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db
from .purchase_requests import HIGH_VALUE_THRESHOLD, LineItem, PurchaseRequest
from .utils import ZERO, money

ROLE_ADMIN = "admin"
ROLE_BAC = "bac"
ROLE_VIEWER = "viewer"
ROLES = [ROLE_ADMIN, ROLE_BAC, ROLE_VIEWER]


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Matched against roster names when signer identity is enforced
    full_name = db.Column(db.String(150), nullable=False)
    designation = db.Column(db.String(150), nullable=True)

    role = db.Column(db.String(20), nullable=False, default=ROLE_VIEWER, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_manage(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_BAC)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "designation": self.designation,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.username}>"


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
class BacMember(db.Model):
    """Default BAC / PARPO signatory, copied into each new session's roster."""

    __tablename__ = "bac_members"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, unique=True)
    designation = db.Column(db.String(150), nullable=False)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Division(db.Model):
    """Division receiving canvass sheets, with its designated canvasser."""

    __tablename__ = "divisions"

    id = db.Column(db.Integer, primary_key=True)
    section = db.Column(db.String(50), nullable=False, unique=True, index=True)
    canvasser_name = db.Column(db.String(150), nullable=True)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)


# ---------------------------------------------------------------------
# Purchase requests
# ---------------------------------------------------------------------
class PurchaseRequestRecord(db.Model):
    __tablename__ = "purchase_requests"

    id = db.Column(db.Integer, primary_key=True)

    pr_no = db.Column(db.String(30), nullable=False, unique=True, index=True)
    pr_date = db.Column(db.Date, nullable=True)

    office_section = db.Column(db.String(50), nullable=False, index=True)
    responsibility_code = db.Column(db.String(50), nullable=True)
    purpose = db.Column(db.Text, nullable=False)

    # High-value only
    budget_number = db.Column(db.String(100), nullable=True)
    pap_code = db.Column(db.String(100), nullable=True)
    proposal_file_name = db.Column(db.String(255), nullable=True)

    total_cost = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    is_high_value = db.Column(db.Boolean, default=False, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        "PurchaseRequestItem",
        back_populates="purchase_request",
        cascade="all, delete-orphan",
        order_by="PurchaseRequestItem.line_no",
    )

    canvass_session = db.relationship(
        "CanvassSessionRecord",
        back_populates="purchase_request",
        uselist=False,
        cascade="all, delete-orphan",
    )

    created_by = db.relationship("User")

    @classmethod
    def from_domain(cls, pr: PurchaseRequest) -> "PurchaseRequestRecord":
        record = cls(
            pr_no=pr.pr_no,
            pr_date=pr.pr_date,
            office_section=pr.office_section,
            responsibility_code=pr.responsibility_code or None,
            purpose=pr.purpose,
            budget_number=pr.budget_number,
            pap_code=pr.pap_code,
            proposal_file_name=pr.proposal_file_name,
            status=pr.status,
        )
        for item in pr.items:
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
        record.recalc_totals(pr.threshold)
        return record

    def to_domain(self, threshold: Decimal = HIGH_VALUE_THRESHOLD) -> PurchaseRequest:
        return PurchaseRequest(
            pr_no=self.pr_no,
            pr_date=self.pr_date,
            office_section=self.office_section,
            responsibility_code=self.responsibility_code or "",
            purpose=self.purpose,
            budget_number=self.budget_number,
            pap_code=self.pap_code,
            proposal_file_name=self.proposal_file_name,
            status=self.status,
            items=[line.to_domain() for line in self.items],
            threshold=threshold,
        )

    def recalc_totals(self, threshold: Decimal = HIGH_VALUE_THRESHOLD):
        total = ZERO
        for line in self.items:
            total += line.line_total
        self.total_cost = money(total)
        self.is_high_value = total >= threshold

    @property
    def canvassing_started(self) -> bool:
        return self.canvass_session is not None

    def __repr__(self):
        return f"<PurchaseRequest {self.pr_no}>"


class PurchaseRequestItem(db.Model):
    __tablename__ = "purchase_request_items"

    id = db.Column(db.Integer, primary_key=True)

    pr_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Item id as seen by the workflow (quotes are keyed by it)
    line_no = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=False)
    stock_no = db.Column(db.String(50))
    unit = db.Column(db.String(30))

    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    purchase_request = db.relationship("PurchaseRequestRecord", back_populates="items")

    __table_args__ = (db.UniqueConstraint("pr_id", "line_no", name="uq_pr_item_line"),)

    @property
    def line_total(self) -> Decimal:
        if not self.quantity or not self.unit_cost:
            return ZERO
        return Decimal(str(self.quantity)) * Decimal(str(self.unit_cost))

    def to_domain(self) -> LineItem:
        return LineItem(
            id=self.line_no,
            desc=self.description,
            stock=self.stock_no or "",
            unit=self.unit or "",
            qty=Decimal(str(self.quantity or 0)),
            unit_cost=Decimal(str(self.unit_cost or 0)),
        )


# ---------------------------------------------------------------------
# Canvass sessions
# ---------------------------------------------------------------------
class CanvassSessionRecord(db.Model):
    __tablename__ = "canvass_sessions"

    id = db.Column(db.Integer, primary_key=True)

    pr_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    pr_no = db.Column(db.String(30), nullable=False, unique=True, index=True)

    stage = db.Column(db.String(30), nullable=False, index=True)
    bac_no = db.Column(db.String(50), nullable=True, index=True)
    resolution_no = db.Column(db.String(50), nullable=True)
    mode_of_procurement = db.Column(db.String(80), nullable=True)
    aaa_no = db.Column(db.String(50), nullable=True)

    awarded_supplier = db.Column(db.String(255), nullable=True)
    awarded_total = db.Column(db.Numeric(14, 2), nullable=True)

    # CanvassSession.to_dict() snapshot
    state = db.Column(db.JSON, nullable=False)

    completed_at = db.Column(db.DateTime, nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    purchase_request = db.relationship("PurchaseRequestRecord", back_populates="canvass_session")

    def apply_snapshot(self, snapshot: dict):
        """Copy a session snapshot into the row (queryable columns + JSON)."""
        self.stage = snapshot["stage"]
        self.bac_no = snapshot.get("bac_no") or None
        self.resolution_no = snapshot.get("resolution_no") or None
        self.mode_of_procurement = snapshot.get("mode_of_procurement") or None
        self.aaa_no = snapshot.get("aaa_no") or None

        summary = snapshot.get("summary")
        if summary:
            self.awarded_supplier = summary.get("awarded_supplier")
            self.awarded_total = Decimal(summary.get("awarded_total") or "0")
            if self.completed_at is None:
                self.completed_at = datetime.utcnow()

        # New dict object so the JSON change is detected
        self.state = dict(snapshot)


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)
    # PR number the change belongs to, when there is one
    entity_key = db.Column(db.String(50), nullable=True, index=True)

    action = db.Column(db.String(30), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
