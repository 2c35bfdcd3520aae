"""
canvassing/workflow.py

Canvass & resolution workflow (steps 6-10 of the procurement process).

Stages, in order:
  pr_received -> bac_resolution -> release_canvass -> collect_canvass -> aaa_preparation

Rules:
- advance() moves from the frontier stage to the next one only when the
  frontier's completion predicate holds. It never skips and never goes back.
- navigate() lets a caller revisit any reached stage for review. Completion
  state is never reset by navigation.
- Operations that belong to a stage the session has not reached, or to a
  stage already completed, raise StageLocked, so review is read-only.
  Once the abstract of awards is signed and advanced the session is
  finished.
- The last advance() builds the CanvassSummary handed back to the caller.

Sessions are plain in-memory objects. WorkflowContext carries what they need
from the outside (clock, acting identity, master data); persistence is the
caller's job (see canvassing/store.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from .awards import AwardRecommendation, recommend
from .divisions import DEFAULT_CANVASSERS, DEFAULT_DIVISIONS, RETURN_WINDOW_DAYS, DivisionTracker
from .errors import SignerMismatch, StageIncomplete, StageLocked, WorkflowFinished
from .purchase_requests import PurchaseRequest
from .quotes import QuoteLedger, SupplierQuote
from .roster import DEFAULT_BAC_MEMBERS, SignatureRoster
from .utils import ZERO, money

logger = logging.getLogger(__name__)

PR_RECEIVED = "pr_received"
BAC_RESOLUTION = "bac_resolution"
RELEASE_CANVASS = "release_canvass"
COLLECT_CANVASS = "collect_canvass"
AAA_PREPARATION = "aaa_preparation"

STAGE_ORDER = [PR_RECEIVED, BAC_RESOLUTION, RELEASE_CANVASS, COLLECT_CANVASS, AAA_PREPARATION]

STAGE_META = {
    PR_RECEIVED: {"step": 6, "label": "PR Received"},
    BAC_RESOLUTION: {"step": 7, "label": "BAC Resolution"},
    RELEASE_CANVASS: {"step": 8, "label": "Release Canvass"},
    COLLECT_CANVASS: {"step": 9, "label": "Collect Canvass"},
    AAA_PREPARATION: {"step": 10, "label": "Prepare AAA"},
}

MODES_OF_PROCUREMENT = [
    "Small Value Procurement (SVP)",
    "Competitive Bidding",
    "Direct Contracting",
    "Shopping",
    "Negotiated Procurement",
]

DEFAULT_BASIS = (
    "The procurement amount is below the threshold for competitive bidding "
    "as prescribed under RA 9184 and its IRR."
)


def stage_index(stage: str) -> int:
    try:
        return STAGE_ORDER.index(stage)
    except ValueError:
        raise StageLocked(f"Unknown stage: {stage}", stage=stage) from None


@dataclass
class WorkflowContext:
    """
    Everything a session needs from its surroundings.

    Built once per process by the app factory and narrowed per request with
    for_user(). Never reconstructed mid-session.
    """

    store: Any = None
    clock: Callable[[], datetime] = datetime.now
    user: Optional[str] = None
    enforce_signer_identity: bool = False
    return_window_days: int = RETURN_WINDOW_DAYS
    bac_members: list = field(default_factory=lambda: list(DEFAULT_BAC_MEMBERS))
    divisions: list = field(default_factory=lambda: list(DEFAULT_DIVISIONS))
    canvassers: dict = field(default_factory=lambda: dict(DEFAULT_CANVASSERS))

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def for_user(self, user: Optional[str]) -> "WorkflowContext":
        return replace(self, user=user)


@dataclass
class CanvassSummary:
    pr_no: str
    bac_no: str
    resolution_no: str
    mode_of_procurement: str
    aaa_no: str
    awarded_supplier: Optional[str]
    awarded_total: Decimal
    suppliers: list[dict]
    bac_members: list[dict]
    aaa_members: list[dict]

    def to_dict(self) -> dict:
        return {
            "pr_no": self.pr_no,
            "bac_no": self.bac_no,
            "resolution_no": self.resolution_no,
            "mode_of_procurement": self.mode_of_procurement,
            "aaa_no": self.aaa_no,
            "awarded_supplier": self.awarded_supplier,
            "awarded_total": str(money(self.awarded_total)),
            "suppliers": self.suppliers,
            "bac_members": self.bac_members,
            "aaa_members": self.aaa_members,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CanvassSummary":
        return cls(
            pr_no=data["pr_no"],
            bac_no=data.get("bac_no") or "",
            resolution_no=data.get("resolution_no") or "",
            mode_of_procurement=data.get("mode_of_procurement") or "",
            aaa_no=data.get("aaa_no") or "",
            awarded_supplier=data.get("awarded_supplier"),
            awarded_total=Decimal(data.get("awarded_total") or "0"),
            suppliers=data.get("suppliers") or [],
            bac_members=data.get("bac_members") or [],
            aaa_members=data.get("aaa_members") or [],
        )


class CanvassSession:
    """One canvass of one purchase request."""

    def __init__(self, pr: PurchaseRequest, context: Optional[WorkflowContext] = None):
        self.pr = pr
        self.context = context or WorkflowContext()
        year = self.context.now().year

        self.stage = PR_RECEIVED
        self.viewing = PR_RECEIVED
        self.completed: set[str] = set()
        self.finished = False
        self.summary: Optional[CanvassSummary] = None

        # step 6
        self.bac_no = ""
        self.received_by = self.context.bac_members[0][0] if self.context.bac_members else ""
        self.notes = ""

        # step 7
        self.resolution_no = f"{year}-RES-{pr.last_four}"
        self.mode_of_procurement = MODES_OF_PROCUREMENT[0]
        self.basis = DEFAULT_BASIS
        self.bac_roster = SignatureRoster.from_members(self.context.bac_members)

        # steps 8-9
        self.divisions = DivisionTracker.for_sections(self.context.divisions, self.context.canvassers)
        self.quotes = QuoteLedger()
        self.quotes.add()

        # step 10
        self.aaa_no = f"{year}-AAA-{pr.last_four}"
        self.aaa_roster: Optional[SignatureRoster] = None

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------
    def _require_reached(self, stage: str) -> None:
        if self.finished:
            raise WorkflowFinished("Canvassing is complete; the session is read-only.", pr_no=self.pr.pr_no)
        if stage_index(stage) > stage_index(self.stage):
            raise StageLocked(
                f"{STAGE_META[stage]['label']} is not open yet.",
                stage=stage,
                current=self.stage,
            )
        if stage in self.completed:
            raise StageLocked(
                f"{STAGE_META[stage]['label']} is complete and can only be reviewed.",
                stage=stage,
                current=self.stage,
            )

    def is_stage_complete(self, stage: str) -> bool:
        if stage == PR_RECEIVED:
            return bool(self.bac_no.strip()) and bool(self.received_by.strip())
        if stage == BAC_RESOLUTION:
            return self.bac_roster.is_complete()
        if stage == RELEASE_CANVASS:
            return self.divisions.all_released()
        if stage == COLLECT_CANVASS:
            return (
                self.divisions.all_returned()
                and self.quotes.has_usable_quote()
                and self.recommendation().awardee is not None
            )
        if stage == AAA_PREPARATION:
            return self.aaa_roster is not None and self.aaa_roster.is_complete()
        raise StageLocked(f"Unknown stage: {stage}", stage=stage)

    def can_advance(self) -> bool:
        return not self.finished and self.is_stage_complete(self.stage)

    def advance(self) -> str:
        """Complete the frontier stage; returns the new frontier."""
        if self.finished:
            raise WorkflowFinished("Canvassing is already complete.", pr_no=self.pr.pr_no)
        if not self.is_stage_complete(self.stage):
            raise StageIncomplete(
                f"{STAGE_META[self.stage]['label']} is not complete yet.",
                stage=self.stage,
            )

        self.completed.add(self.stage)

        if self.stage == AAA_PREPARATION:
            self.finished = True
            self.summary = self._build_summary()
            logger.info(
                "Canvass for %s complete, awarded to %s (%s)",
                self.pr.pr_no,
                self.summary.awarded_supplier,
                self.summary.awarded_total,
            )
            return self.stage

        previous = self.stage
        self.stage = STAGE_ORDER[stage_index(previous) + 1]
        self.viewing = self.stage
        if self.stage == AAA_PREPARATION:
            self.aaa_roster = self.bac_roster.reset_copy()

        logger.info("Canvass for %s advanced %s -> %s", self.pr.pr_no, previous, self.stage)
        return self.stage

    def navigate(self, stage: str) -> str:
        """Show a reached stage; does not touch completion state."""
        if stage_index(stage) > stage_index(self.stage):
            raise StageLocked(
                f"{STAGE_META[stage]['label']} is not open yet.",
                stage=stage,
                current=self.stage,
            )
        self.viewing = stage
        return stage

    # ------------------------------------------------------------------
    # Step 6: PR received
    # ------------------------------------------------------------------
    def receive(self, bac_no: str, received_by: Optional[str] = None, notes: Optional[str] = None) -> None:
        self._require_reached(PR_RECEIVED)
        self.bac_no = (bac_no or "").strip()
        if received_by is not None:
            self.received_by = received_by.strip()
        if notes is not None:
            self.notes = notes.strip()

    # ------------------------------------------------------------------
    # Step 7: BAC resolution
    # ------------------------------------------------------------------
    def set_resolution(
        self,
        resolution_no: Optional[str] = None,
        mode_of_procurement: Optional[str] = None,
        basis: Optional[str] = None,
    ) -> None:
        self._require_reached(BAC_RESOLUTION)
        if resolution_no is not None:
            self.resolution_no = resolution_no.strip()
        if mode_of_procurement is not None:
            if mode_of_procurement not in MODES_OF_PROCUREMENT:
                raise ValueError(f"Unknown mode of procurement: {mode_of_procurement}")
            self.mode_of_procurement = mode_of_procurement
        if basis is not None:
            self.basis = basis.strip()

    def _check_signer(self, roster: SignatureRoster, index: int) -> None:
        signatory = roster[index]
        if self.context.enforce_signer_identity and self.context.user != signatory.name:
            raise SignerMismatch(
                f"Only {signatory.name} can sign this entry.",
                signatory=signatory.name,
                user=self.context.user,
            )

    def sign_resolution(self, index: int):
        self._require_reached(BAC_RESOLUTION)
        self._check_signer(self.bac_roster, index)
        signatory = self.bac_roster.sign(index, self.context.now())
        logger.info("BAC resolution for %s signed by %s", self.pr.pr_no, signatory.name)
        return signatory

    # ------------------------------------------------------------------
    # Step 8: release canvass
    # ------------------------------------------------------------------
    def release(self, section: str):
        self._require_reached(RELEASE_CANVASS)
        return self.divisions.release(section, self.context.today())

    def release_all(self):
        self._require_reached(RELEASE_CANVASS)
        return self.divisions.release_all(self.context.today())

    # ------------------------------------------------------------------
    # Step 9: collect canvass
    # ------------------------------------------------------------------
    def mark_returned(self, section: str):
        self._require_reached(COLLECT_CANVASS)
        return self.divisions.mark_returned(section, self.context.today())

    def add_quote(self) -> SupplierQuote:
        self._require_reached(COLLECT_CANVASS)
        return self.quotes.add()

    def update_quote(self, quote_id: int, **fields) -> SupplierQuote:
        self._require_reached(COLLECT_CANVASS)
        return self.quotes.update(quote_id, **fields)

    def set_price(self, quote_id: int, item_id: int, value) -> SupplierQuote:
        self._require_reached(COLLECT_CANVASS)
        if self.pr.item(int(item_id)) is None:
            raise ValueError(f"Purchase request {self.pr.pr_no} has no item {item_id}")
        return self.quotes.set_price(quote_id, item_id, value)

    def remove_quote(self, quote_id: int) -> None:
        self._require_reached(COLLECT_CANVASS)
        self.quotes.remove(quote_id)

    # ------------------------------------------------------------------
    # Step 10: abstract of awards
    # ------------------------------------------------------------------
    def set_aaa_no(self, aaa_no: str) -> None:
        self._require_reached(AAA_PREPARATION)
        self.aaa_no = (aaa_no or "").strip()

    def sign_abstract(self, index: int):
        self._require_reached(AAA_PREPARATION)
        self._check_signer(self.aaa_roster, index)
        signatory = self.aaa_roster.sign(index, self.context.now())
        logger.info("Abstract of awards for %s signed by %s", self.pr.pr_no, signatory.name)
        return signatory

    def recommendation(self) -> AwardRecommendation:
        return recommend(self.pr.items, self.quotes)

    def _build_summary(self) -> CanvassSummary:
        awardee = self.recommendation().awardee
        return CanvassSummary(
            pr_no=self.pr.pr_no,
            bac_no=self.bac_no,
            resolution_no=self.resolution_no,
            mode_of_procurement=self.mode_of_procurement,
            aaa_no=self.aaa_no,
            awarded_supplier=awardee.supplier_name if awardee else None,
            awarded_total=awardee.total if awardee else ZERO,
            suppliers=self.quotes.to_list(),
            bac_members=self.bac_roster.to_list(),
            aaa_members=self.aaa_roster.to_list() if self.aaa_roster else [],
        )

    # ------------------------------------------------------------------
    # Views / snapshots
    # ------------------------------------------------------------------
    def stage_strip(self) -> list[dict]:
        return [
            {
                "stage": stage,
                "step": STAGE_META[stage]["step"],
                "label": STAGE_META[stage]["label"],
                "done": stage in self.completed,
                "active": stage == self.viewing,
            }
            for stage in STAGE_ORDER
        ]

    @property
    def is_finished(self) -> bool:
        return self.finished

    def to_dict(self) -> dict:
        return {
            "pr_no": self.pr.pr_no,
            "stage": self.stage,
            "viewing": self.viewing,
            "completed": [s for s in STAGE_ORDER if s in self.completed],
            "finished": self.finished,
            "bac_no": self.bac_no,
            "received_by": self.received_by,
            "notes": self.notes,
            "resolution_no": self.resolution_no,
            "mode_of_procurement": self.mode_of_procurement,
            "basis": self.basis,
            "bac_roster": self.bac_roster.to_list(),
            "divisions": self.divisions.to_list(),
            "quotes": self.quotes.to_list(),
            "next_quote_id": self.quotes.next_id,
            "aaa_no": self.aaa_no,
            "aaa_roster": self.aaa_roster.to_list() if self.aaa_roster is not None else None,
            "summary": self.summary.to_dict() if self.summary else None,
        }

    @classmethod
    def from_dict(
        cls,
        pr: PurchaseRequest,
        data: dict,
        context: Optional[WorkflowContext] = None,
    ) -> "CanvassSession":
        session = cls(pr, context)
        session.stage = data.get("stage") or PR_RECEIVED
        session.viewing = data.get("viewing") or session.stage
        session.completed = set(data.get("completed") or [])
        session.finished = bool(data.get("finished"))
        session.bac_no = data.get("bac_no") or ""
        session.received_by = data.get("received_by") or ""
        session.notes = data.get("notes") or ""
        session.resolution_no = data.get("resolution_no") or session.resolution_no
        session.mode_of_procurement = data.get("mode_of_procurement") or session.mode_of_procurement
        session.basis = data.get("basis") or session.basis
        session.bac_roster = SignatureRoster.from_list(data.get("bac_roster"))
        session.divisions = DivisionTracker.from_list(data.get("divisions"))
        session.quotes = QuoteLedger.from_list(data.get("quotes"), next_id=data.get("next_quote_id"))
        session.aaa_no = data.get("aaa_no") or session.aaa_no
        if data.get("aaa_roster") is not None:
            session.aaa_roster = SignatureRoster.from_list(data["aaa_roster"])
        if data.get("summary"):
            session.summary = CanvassSummary.from_dict(data["summary"])
        return session
