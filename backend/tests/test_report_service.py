"""Live dashboard and post-session summary over the recorded ledger."""

import math
from datetime import timedelta

import pytest

from crowdqa.exceptions import NotFoundError, ValidationError
from crowdqa.services.ledger_service import record_click, record_note
from crowdqa.services.report_service import build_live_view, build_summary, get_session_bins
from crowdqa.services.session_service import end_session
from conftest import SESSION_START

pytestmark = pytest.mark.integration


async def _click_at(db, clock, session_id, attendee_id, minute, second=0):
    clock.set(SESSION_START + timedelta(minutes=minute, seconds=second))
    return await record_click(db, session_id, attendee_id, clock=clock)


@pytest.fixture
async def lecture(db, clock, make_session):
    """60-minute session: three clicks in minute 5, one in 6, one in 40."""
    session, (alice, bob, carol) = await make_session(duration_minutes=60, attendees=3)
    await _click_at(db, clock, session.id, alice.id, 5)
    await _click_at(db, clock, session.id, bob.id, 5, 10)
    await _click_at(db, clock, session.id, alice.id, 5, 30)
    await _click_at(db, clock, session.id, alice.id, 6)
    await _click_at(db, clock, session.id, carol.id, 40)
    return session, (alice, bob, carol)


class TestLiveView:
    async def test_peaks_and_threshold(self, db, lecture):
        session, _ = lecture

        view = await build_live_view(db, session.id)

        mean = 5 / 60
        std_dev = math.sqrt(11 / 60 - mean ** 2)
        assert view["session_status"] == "ACTIVE"
        assert view["total_clicks"] == 5
        assert view["unique_attendees"] == 3
        assert view["clicking_attendees"] == 3
        assert len(view["bins"]) == 60
        assert view["stats"]["mean"] == pytest.approx(mean)
        assert view["stats"]["std_dev"] == pytest.approx(std_dev)
        assert view["stats"]["threshold"] == pytest.approx(mean + 1.2 * std_dev)
        assert [b["index"] for b in view["peak_bins"]] == [5, 6, 40]

    async def test_bin_fields(self, db, lecture):
        session, _ = lecture

        bins = (await build_live_view(db, session.id))["bins"]

        assert bins[5]["click_count"] == 3
        assert bins[5]["unique_attendees"] == 2
        assert bins[5]["percentage"] == pytest.approx(200 / 3)
        assert bins[5]["label"] == "5-6"
        assert sum(b["click_count"] for b in bins) == 5

    async def test_repeated_reads_are_identical(self, db, lecture):
        session, _ = lecture
        assert await build_live_view(db, session.id) == await build_live_view(db, session.id)

    async def test_multiplier_override_changes_peaks(self, db, lecture):
        session, _ = lecture

        view = await build_live_view(db, session.id, multiplier=3.0)

        assert view["stats"]["multiplier"] == 3.0
        assert [b["index"] for b in view["peak_bins"]] == [5]

    async def test_not_started_session_has_empty_bins(self, db, make_session):
        session, _ = await make_session(duration_minutes=20, activate=False, attendees=2)

        view = await build_live_view(db, session.id)

        assert view["started_at"] is None
        assert len(view["bins"]) == 20
        assert view["total_clicks"] == 0
        assert view["peak_bins"] == []
        assert view["stats"]["threshold"] == 0.0

    async def test_unknown_session(self, db):
        with pytest.raises(NotFoundError):
            await build_live_view(db, 777)


class TestSessionBins:
    async def test_wider_bins(self, db, lecture):
        session, _ = lecture

        bins = await get_session_bins(db, session.id, bin_width_minutes=5)

        assert len(bins) == 12
        assert bins[1].click_count == 4
        assert bins[8].click_count == 1
        assert sum(b.click_count for b in bins) == 5

    async def test_invalid_width(self, db, lecture):
        session, _ = lecture
        with pytest.raises(ValidationError):
            await get_session_bins(db, session.id, bin_width_minutes=0)

    async def test_late_click_lands_in_final_bin(self, db, clock, make_session):
        session, (attendee,) = await make_session(duration_minutes=15, attendees=1)
        await _click_at(db, clock, session.id, attendee.id, 17)

        bins = await get_session_bins(db, session.id)

        assert len(bins) == 15
        assert bins[-1].click_count == 1
        assert sum(b.click_count for b in bins) == 1


class TestSummary:
    async def test_summary_is_provisional_until_ended(self, db, clock, lecture):
        session, _ = lecture

        provisional = await build_summary(db, session.id)
        assert provisional["is_final"] is False

        clock.set(SESSION_START + timedelta(minutes=60))
        await end_session(db, session.id, clock=clock)
        final = await build_summary(db, session.id)

        assert final["is_final"] is True
        assert final["session_status"] == "ENDED"
        assert final["bins"] == provisional["bins"]

    async def test_summary_aggregates(self, db, lecture):
        session, _ = lecture

        summary = await build_summary(db, session.id)

        assert summary["average_clicks_per_attendee"] == pytest.approx(5 / 3)
        assert summary["max_bin_percentage"] == pytest.approx(200 / 3)
        levels = [interval["level"] for interval in summary["intervals"]]
        assert levels[5] == "PEAK"
        assert levels[0] == "QUIET"
        assert levels.count("PEAK") == 3
        assert summary["insights"][0] == "Peak at minutes 5-6: 3 clicks (66.7% of class)"
        assert len(summary["insights"]) == 3

    async def test_moderate_bin_is_active_not_peak(self, db, clock, make_session):
        session, attendees = await make_session(duration_minutes=15, attendees=4)
        for attendee in attendees:
            await _click_at(db, clock, session.id, attendee.id, 2)
            await _click_at(db, clock, session.id, attendee.id, 2, 30)
        await _click_at(db, clock, session.id, attendees[0].id, 9)

        summary = await build_summary(db, session.id)

        levels = [interval["level"] for interval in summary["intervals"]]
        assert levels[2] == "PEAK"
        assert levels[9] == "ACTIVE"
        assert levels[0] == "QUIET"

    async def test_summary_without_attendees(self, db, make_session):
        session, _ = await make_session(duration_minutes=15)

        summary = await build_summary(db, session.id)

        assert summary["average_clicks_per_attendee"] == 0.0
        assert summary["max_bin_percentage"] == 0.0
        assert summary["insights"] == []

    async def test_notes_are_annotated_with_elapsed_minutes(self, db, clock, lecture):
        session, (alice, bob, _carol) = lecture
        clock.set(SESSION_START + timedelta(minutes=41, seconds=59))
        await record_note(db, session.id, bob.id, "Which rule applies here?", clock=clock)
        clock.set(SESSION_START + timedelta(minutes=42))
        await record_note(db, session.id, alice.id, "Lost after the proof", clock=clock)

        notes = (await build_summary(db, session.id))["notes"]

        assert [n["minutes_elapsed"] for n in notes] == [41, 42]
        assert [n["note"] for n in notes] == ["Which rule applies here?", "Lost after the proof"]
        assert notes[0]["attendee_id"] == bob.id
