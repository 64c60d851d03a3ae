"""Unit tests for the JSON persistence format."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from trustledger.memory.ledger import add_commitment
from trustledger.memory.ledger import add_turn_summary
from trustledger.memory.ledger import create_initial_memory
from trustledger.memory.ledger import update_trust
from trustledger.memory.serialization import deserialize_memory
from trustledger.memory.serialization import serialize_memory
from trustledger.models import ConsolidatedBlock
from trustledger.models import Season
from trustledger.models import TurnRef
from trustledger.models import TurnSummary

S1901 = TurnRef(year=1901, season=Season.spring)


@pytest.fixture()
def memory():
    mem = create_initial_memory("FRANCE", "game-7")
    update_trust(mem, "ENGLAND", 0.7, S1901)
    add_commitment(
        mem, turn=S1901, from_party="FRANCE", to_party="ENGLAND", description="DMZ"
    )
    add_turn_summary(
        mem,
        TurnSummary(
            year=1901,
            season=Season.spring,
            diplomatic_highlights=["England stabbed Germany"],
        ),
    )
    mem.consolidated_blocks.append(
        ConsolidatedBlock(
            from_year=1901,
            from_season=Season.spring,
            to_year=1901,
            to_season=Season.fall,
            summary="Opening",
        )
    )
    return mem


class TestSerializeMemory:
    def test_mappings_written_as_pair_lists(self, memory):
        data = json.loads(serialize_memory(memory))
        assert ["ENGLAND", 0.7] in data["trust_levels"]
        assert all(isinstance(pair, list) and len(pair) == 2 for pair in data["relationships"])
        (pair,) = data["commitments"]
        assert pair[1]["description"] == "DMZ"

    def test_datetimes_are_iso_strings(self, memory):
        data = json.loads(serialize_memory(memory))
        stamp = data["consolidated_blocks"][0]["consolidated_at"]
        assert isinstance(stamp, str)
        assert "T" in stamp


class TestDeserializeMemory:
    def test_round_trip_preserves_state(self, memory):
        restored = deserialize_memory(serialize_memory(memory))
        assert restored == memory
        assert restored.current_allies == ["ENGLAND"]
        assert restored.relationships["ENGLAND"].is_ally

    def test_accepts_plain_objects(self, memory):
        data = memory.model_dump(mode="json")
        restored = deserialize_memory(json.dumps(data))
        assert restored.trust_levels == memory.trust_levels

    def test_missing_newer_fields_default_to_empty(self):
        legacy = {
            "party": "ITALY",
            "game_id": "old",
            "trust_levels": [["AUSTRIA", -0.2]],
            "relationships": [["AUSTRIA", {"party": "AUSTRIA", "trust_level": -0.2}]],
        }
        restored = deserialize_memory(json.dumps(legacy))
        assert restored.consolidated_blocks == []
        assert restored.full_private_diary == []
        assert restored.commitments == {}
        assert restored.roster == ["ITALY", "AUSTRIA"]

    def test_invalid_document_raises(self):
        with pytest.raises(ValidationError):
            deserialize_memory(json.dumps({"party": "ITALY"}))

    @pytest.mark.parametrize(
        "trust_levels",
        [
            [["AUSTRIA", -0.2, "extra"]],
            [["AUSTRIA"]],
            [[["AUSTRIA"], -0.2]],
            ["AUSTRIA"],
        ],
    )
    def test_malformed_pair_list_raises_validation_error(self, trust_levels):
        document = {"party": "ITALY", "game_id": "old", "trust_levels": trust_levels}
        with pytest.raises(ValidationError):
            deserialize_memory(json.dumps(document))

    def test_non_object_document_raises_validation_error(self):
        with pytest.raises(ValidationError):
            deserialize_memory(json.dumps([["party", "ITALY"]]))
