"""
Signature rosters.
"""

from datetime import datetime

import pytest

from canvassing.errors import SignatoryNotFound
from canvassing.roster import DEFAULT_BAC_MEMBERS, SignatureRoster

T1 = datetime(2026, 2, 26, 9, 0)
T2 = datetime(2026, 2, 26, 14, 30)


@pytest.fixture
def roster():
    return SignatureRoster.from_members(DEFAULT_BAC_MEMBERS)


class TestSign:

    def test_fresh_roster_is_unsigned(self, roster):
        assert len(roster) == 4
        assert roster.signed_count == 0
        assert not roster.is_complete()

    def test_sign_stamps_time(self, roster):
        signatory = roster.sign(0, T1)
        assert signatory.signed
        assert signatory.signed_at == T1
        assert signatory.to_dict()["signed_at_display"] == "09:00 AM"

    def test_resign_overwrites_timestamp(self, roster):
        roster.sign(1, T1)
        roster.sign(1, T2)
        assert roster[1].signed_at == T2
        assert roster.signed_count == 1

    def test_complete_only_when_all_signed(self, roster):
        for idx in range(len(roster) - 1):
            roster.sign(idx, T1)
        assert not roster.is_complete()
        assert [s.name for s in roster.unsigned()] == ["PARPO II"]
        roster.sign(len(roster) - 1, T1)
        assert roster.is_complete()

    @pytest.mark.parametrize("index", [-1, 4, 99])
    def test_bad_index(self, roster, index):
        with pytest.raises(SignatoryNotFound):
            roster.sign(index, T1)


class TestCopies:

    def test_reset_copy_keeps_members_unsigned(self, roster):
        roster.sign(0, T1)
        fresh = roster.reset_copy()
        assert [s.name for s in fresh] == [s.name for s in roster]
        assert fresh.signed_count == 0
        assert roster.signed_count == 1

    def test_snapshot_keeps_signatures(self, roster):
        roster.sign(2, T2)
        restored = SignatureRoster.from_list(roster.to_list())
        assert restored[2].signed_at == T2
        assert restored[2].designation == "BAC Member"
        assert not restored[0].signed
