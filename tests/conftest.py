"""
Shared fixtures: app on in-memory SQLite, test client, logged-in users.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from canvassing import create_app
from canvassing.extensions import db
from canvassing.models import User
from canvassing.purchase_requests import LineItem, PurchaseRequest
from canvassing.workflow import WorkflowContext


class FixedClock:
    """Settable clock for workflow contexts."""

    def __init__(self, now=datetime(2026, 2, 26, 9, 30)):
        self.now = now

    def __call__(self):
        return self.now


# ─── App / client ────────────────────────────────────────────────────────────

@pytest.fixture
def app():
    _app = create_app("config.TestingConfig")
    with _app.app_context():
        db.create_all()
        yield _app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(username, role, full_name=None, password="secret"):
    user = User(username=username, full_name=full_name or username.title(), role=role, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def login(client, username, password="secret"):
    resp = client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture
def bac_client(app, client):
    make_user("bac", "bac", full_name="Yvonne M.")
    login(client, "bac")
    return client


@pytest.fixture
def admin_client(app, client):
    make_user("admin", "admin", full_name="System Administrator")
    login(client, "admin")
    return client


@pytest.fixture
def viewer_client(app, client):
    make_user("viewer", "viewer", full_name="Vic Viewer")
    login(client, "viewer")
    return client


# ─── Core values ─────────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def context(clock):
    return WorkflowContext(clock=clock)


@pytest.fixture
def pr():
    return PurchaseRequest(
        pr_no="2026-PR-0042",
        office_section="STOD",
        purpose="Office supplies for Q1",
        pr_date=date(2026, 2, 20),
        items=[
            LineItem(id=1, desc="Bond paper A4", unit="ream", qty=Decimal("10"), unit_cost=Decimal("250")),
            LineItem(id=2, desc="Ballpen black", unit="box", qty=Decimal("2"), unit_cost=Decimal("120")),
        ],
    )


def intake_payload(**overrides):
    payload = {
        "office_section": "STOD",
        "purpose": "Office supplies for Q1",
        "responsibility_code": "RC-01",
        "date": "2026-02-20",
        "items": [
            {"desc": "Bond paper A4", "unit": "ream", "qty": "10", "price": "250"},
            {"desc": "Ballpen black", "unit": "box", "qty": "2", "price": "120"},
        ],
    }
    payload.update(overrides)
    return payload
