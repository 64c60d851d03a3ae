"""Unit tests for the trust and relationship ledger."""

from __future__ import annotations

import logging
import math

import pytest

from trustledger.memory.ledger import active_commitments
from trustledger.memory.ledger import add_commitment
from trustledger.memory.ledger import add_strategic_note
from trustledger.memory.ledger import add_turn_summary
from trustledger.memory.ledger import break_commitment
from trustledger.memory.ledger import build_turn_summary
from trustledger.memory.ledger import cleanup_expired_commitments
from trustledger.memory.ledger import create_initial_memory
from trustledger.memory.ledger import estimate_tokens
from trustledger.memory.ledger import fulfill_commitment
from trustledger.memory.ledger import get_high_priority_notes
from trustledger.memory.ledger import get_recent_events
from trustledger.memory.ledger import get_relationship_summary
from trustledger.memory.ledger import get_trust_description
from trustledger.memory.ledger import record_event
from trustledger.memory.ledger import relationship_commitments
from trustledger.memory.ledger import update_memory_timestamp
from trustledger.memory.ledger import update_trust
from trustledger.models import DEFAULT_ROSTER
from trustledger.models import EventType
from trustledger.models import NotePriority
from trustledger.models import OrderResult
from trustledger.models import Phase
from trustledger.models import Season
from trustledger.models import TurnRef
from trustledger.models import TurnSummary

S1901 = TurnRef(year=1901, season=Season.spring)
F1901 = TurnRef(year=1901, season=Season.fall)
S1902 = TurnRef(year=1902, season=Season.spring)


@pytest.fixture()
def memory():
    return create_initial_memory("ENGLAND", "game-1")


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateInitialMemory:
    def test_neutral_trust_for_every_other_party(self, memory):
        others = [p for p in DEFAULT_ROSTER if p != "ENGLAND"]
        assert list(memory.trust_levels) == others
        assert all(v == 0.0 for v in memory.trust_levels.values())
        assert list(memory.relationships) == others
        assert "ENGLAND" not in memory.relationships

    def test_empty_collections(self, memory):
        assert memory.events == []
        assert memory.commitments == {}
        assert memory.turn_summaries == []
        assert memory.consolidated_blocks == []
        assert memory.current_allies == []
        assert memory.current_enemies == []

    def test_custom_roster(self):
        mem = create_initial_memory("RED", "g", roster=["RED", "BLUE", "GREEN"])
        assert mem.roster == ["RED", "BLUE", "GREEN"]
        assert set(mem.relationships) == {"BLUE", "GREEN"}

    def test_party_must_be_in_roster(self):
        with pytest.raises(ValueError, match="not in the roster"):
            create_initial_memory("PRUSSIA", "g")


# ---------------------------------------------------------------------------
# Trust
# ---------------------------------------------------------------------------


class TestUpdateTrust:
    def test_applies_delta_and_touches_relationship(self, memory):
        assert update_trust(memory, "FRANCE", 0.3, S1901) == pytest.approx(0.3)
        rel = memory.relationships["FRANCE"]
        assert rel.trust_level == pytest.approx(0.3)
        assert rel.last_interaction == S1901

    def test_clamps_to_bounds(self, memory):
        update_trust(memory, "FRANCE", 5.0, S1901)
        update_trust(memory, "GERMANY", -5.0, S1901)
        assert memory.trust_levels["FRANCE"] == 1.0
        assert memory.trust_levels["GERMANY"] == -1.0

    def test_alliance_sets_follow_thresholds(self, memory):
        update_trust(memory, "TURKEY", 0.6, S1901)
        update_trust(memory, "FRANCE", 0.5, S1901)
        update_trust(memory, "GERMANY", -0.7, S1901)
        # Roster order, not update order
        assert memory.current_allies == ["FRANCE", "TURKEY"]
        assert memory.current_enemies == ["GERMANY"]

        update_trust(memory, "FRANCE", -0.2, F1901)
        assert memory.current_allies == ["TURKEY"]

    def test_self_target_is_ignored(self, memory, caplog):
        with caplog.at_level(logging.WARNING):
            assert update_trust(memory, "ENGLAND", 0.5, S1901) is None
        assert "self-targeted" in caplog.text
        assert "ENGLAND" not in memory.trust_levels

    def test_unknown_party_is_ignored(self, memory, caplog):
        with caplog.at_level(logging.WARNING):
            assert update_trust(memory, "PRUSSIA", 0.5, S1901) is None
        assert "PRUSSIA" not in memory.trust_levels

    def test_nan_delta_counts_as_zero(self, memory):
        update_trust(memory, "FRANCE", 0.2, S1901)
        assert update_trust(memory, "FRANCE", math.nan, F1901) == pytest.approx(0.2)


class TestRecordEvent:
    def test_appends_and_moves_trust_for_each_party(self, memory):
        event = record_event(
            memory,
            S1901,
            EventType.attack,
            ["FRANCE", "GERMANY", "ENGLAND"],
            "Joint attack",
            -0.2,
        )
        assert memory.events == [event]
        assert memory.trust_levels["FRANCE"] == pytest.approx(-0.2)
        assert memory.trust_levels["GERMANY"] == pytest.approx(-0.2)
        assert memory.trust_levels["ITALY"] == 0.0

    def test_duplicate_party_moves_trust_once(self, memory):
        record_event(memory, S1901, EventType.cooperation, ["FRANCE", "FRANCE"], "x", 0.1)
        assert memory.trust_levels["FRANCE"] == pytest.approx(0.1)

    def test_zero_delta_does_not_touch_trust(self, memory):
        record_event(memory, S1901, EventType.promise_made, ["FRANCE"], "promise")
        assert memory.trust_levels["FRANCE"] == 0.0


# ---------------------------------------------------------------------------
# Commitments
# ---------------------------------------------------------------------------


class TestCommitments:
    def test_stored_once_and_referenced_by_counterpart(self, memory):
        c = add_commitment(
            memory,
            turn=S1901,
            from_party="ENGLAND",
            to_party="FRANCE",
            description="Stay out of the Channel",
        )
        assert memory.commitments == {c.id: c}
        assert memory.relationships["FRANCE"].commitment_ids == [c.id]
        assert relationship_commitments(memory, "FRANCE") == [c]

    def test_incoming_commitment_indexed_under_sender(self, memory):
        c = add_commitment(
            memory,
            turn=S1901,
            from_party="GERMANY",
            to_party="ENGLAND",
            description="Support into Belgium",
        )
        assert memory.relationships["GERMANY"].commitment_ids == [c.id]

    def test_fulfill_raises_trust_and_records_event(self, memory):
        c = add_commitment(
            memory, turn=S1901, from_party="FRANCE", to_party="ENGLAND", description="DMZ"
        )
        fulfill_commitment(memory, c.id, F1901)
        assert memory.commitments[c.id].fulfilled
        assert memory.trust_levels["FRANCE"] == pytest.approx(0.1)
        assert memory.events[-1].type is EventType.promise_kept

    def test_break_lowers_trust_and_records_event(self, memory):
        c = add_commitment(
            memory, turn=S1901, from_party="FRANCE", to_party="ENGLAND", description="DMZ"
        )
        break_commitment(memory, c.id, F1901)
        assert memory.commitments[c.id].broken
        assert memory.trust_levels["FRANCE"] == pytest.approx(-0.3)
        assert memory.events[-1].type is EventType.promise_broken
        assert memory.events[-1].is_trust_affecting

    def test_unknown_id_warns_and_returns_none(self, memory, caplog):
        with caplog.at_level(logging.WARNING):
            assert fulfill_commitment(memory, "missing", S1901) is None
            assert break_commitment(memory, "missing", S1901) is None
        assert "Unknown commitment id" in caplog.text
        assert memory.events == []

    def test_cleanup_removes_settled_and_expired(self, memory):
        kept = add_commitment(
            memory, turn=S1901, from_party="ENGLAND", to_party="FRANCE", description="a"
        )
        done = add_commitment(
            memory, turn=S1901, from_party="ENGLAND", to_party="FRANCE", description="b"
        )
        expiring = add_commitment(
            memory,
            turn=S1901,
            from_party="ENGLAND",
            to_party="GERMANY",
            description="c",
            expires=F1901,
        )
        future = add_commitment(
            memory,
            turn=S1901,
            from_party="ENGLAND",
            to_party="GERMANY",
            description="d",
            expires=S1902,
        )
        fulfill_commitment(memory, done.id, S1901)

        removed = cleanup_expired_commitments(memory, F1901)

        assert set(removed) == {done.id, expiring.id}
        assert [c.id for c in active_commitments(memory)] == [kept.id, future.id]
        assert memory.relationships["FRANCE"].commitment_ids == [kept.id]
        assert memory.relationships["GERMANY"].commitment_ids == [future.id]

    def test_expiry_without_season_lasts_the_whole_year(self, memory):
        c = add_commitment(
            memory,
            turn=S1901,
            from_party="ENGLAND",
            to_party="FRANCE",
            description="a",
        )
        memory.commitments[c.id].expires_year = 1901
        assert cleanup_expired_commitments(memory, F1901) == []
        winter = TurnRef(year=1901, season=Season.winter)
        assert cleanup_expired_commitments(memory, winter) == [c.id]


# ---------------------------------------------------------------------------
# Notes and turn history
# ---------------------------------------------------------------------------


class TestNotesAndSummaries:
    def test_add_strategic_note_appends_verbatim(self, memory):
        for i in range(25):
            add_strategic_note(memory, turn=S1901, subject=f"s{i}", content="c")
        assert len(memory.strategic_notes) == 25

    def test_high_priority_filter(self, memory):
        add_strategic_note(memory, turn=S1901, subject="a", content="a", priority=NotePriority.low)
        crit = add_strategic_note(
            memory, turn=S1901, subject="b", content="b", priority=NotePriority.critical
        )
        high = add_strategic_note(
            memory, turn=S1901, subject="c", content="c", priority=NotePriority.high
        )
        assert get_high_priority_notes(memory) == [crit, high]

    def test_betrayal_highlight_recorded_once_as_event(self, memory):
        summary = TurnSummary(
            year=1901,
            season=Season.fall,
            diplomatic_highlights=["France betrayed us in the Channel", "Quiet east"],
        )
        add_turn_summary(memory, summary)
        add_turn_summary(memory, summary)

        betrayals = [e for e in memory.events if e.type is EventType.betrayal]
        assert len(betrayals) == 1
        assert betrayals[0].description == "France betrayed us in the Channel"
        assert betrayals[0].trust_delta == 0.0
        assert betrayals[0].parties == []
        assert len(memory.turn_summaries) == 2

    def test_build_turn_summary_from_adjudication(self):
        summary = build_turn_summary(
            1901,
            Season.fall,
            [
                OrderResult(order="F LON -> NTH", success=True),
                OrderResult(order="A LVP -> YOR", success=False, reason="bounced"),
            ],
            centers_before=["LON", "LVP", "EDI"],
            centers_after=["LON", "EDI", "NWY"],
            units_before=3,
            units_after=4,
            highlights=["Russia proposed a DMZ"],
        )
        assert summary.orders_succeeded == ["F LON -> NTH"]
        assert summary.orders_failed == ["A LVP -> YOR"]
        assert summary.territories_gained == ["NWY"]
        assert summary.territories_lost == ["LVP"]
        assert summary.units_built == 1
        assert summary.units_lost == 0

    def test_update_memory_timestamp(self, memory):
        update_memory_timestamp(memory, 1903, Season.fall, Phase.retreat)
        assert memory.last_updated.year == 1903
        assert memory.last_updated.phase is Phase.retreat


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------


class TestReadHelpers:
    @pytest.mark.parametrize(
        ("trust", "label"),
        [
            (0.9, "Very High"),
            (0.5, "High"),
            (0.3, "Moderate"),
            (0.0, "Neutral"),
            (-0.4, "Low"),
            (-0.6, "Very Low"),
            (-0.95, "Hostile"),
        ],
    )
    def test_trust_description_bands(self, trust, label):
        assert get_trust_description(trust) == label

    def test_relationship_summary(self, memory):
        update_trust(memory, "FRANCE", 0.6, S1901)
        update_trust(memory, "GERMANY", -0.6, S1901)
        add_commitment(
            memory, turn=S1901, from_party="ENGLAND", to_party="FRANCE", description="x"
        )
        text = get_relationship_summary(memory)
        assert "- FRANCE: Trust 0.60 (High) (ALLY)" in text
        assert "- GERMANY: Trust -0.60 (Very Low) (ENEMY)" in text
        assert "  Active commitments: 1" in text

    def test_recent_events(self, memory):
        for i in range(12):
            record_event(memory, S1901, EventType.cooperation, [], f"e{i}")
        recent = get_recent_events(memory, 3)
        assert [e.description for e in recent] == ["e9", "e10", "e11"]
        assert get_recent_events(memory, 0) == []

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
