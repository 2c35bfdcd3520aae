"""
canvassing/seed.py

Seed master data: BAC / PARPO signatories and divisions with their canvassers.

Rules:
- Safe to run multiple times (idempotent). Rows are matched by name / section.
- Existing rows keep their active flag; designation, canvasser and order are
  brought back in line with the defaults.
- Sessions already started keep the roster they were opened with.
"""

from __future__ import annotations

import logging

from .divisions import DEFAULT_CANVASSERS, DEFAULT_DIVISIONS
from .extensions import db
from .models import BacMember, Division
from .roster import DEFAULT_BAC_MEMBERS

logger = logging.getLogger(__name__)


def seed_defaults() -> dict:
    """
    Create default BacMember and Division rows if they don't exist.

    Returns counts of created rows: {"bac_members": n, "divisions": n}.
    """
    created = {"bac_members": 0, "divisions": 0}

    for idx, (name, designation) in enumerate(DEFAULT_BAC_MEMBERS):
        member = BacMember.query.filter_by(name=name).first()
        if member:
            member.designation = designation
            member.sort_order = idx
            continue
        db.session.add(BacMember(name=name, designation=designation, sort_order=idx, is_active=True))
        created["bac_members"] += 1

    db.session.flush()

    for idx, section in enumerate(DEFAULT_DIVISIONS):
        canvasser = DEFAULT_CANVASSERS.get(section)
        division = Division.query.filter_by(section=section).first()
        if division:
            if not division.canvasser_name and canvasser:
                division.canvasser_name = canvasser
            division.sort_order = idx
            continue
        db.session.add(Division(section=section, canvasser_name=canvasser, sort_order=idx, is_active=True))
        created["divisions"] += 1

    db.session.commit()
    logger.info("Seeded %s BAC members and %s divisions", created["bac_members"], created["divisions"])
    return created
