import json

import pytest

from cadence.domain.errors import CadenceError
from cadence.infrastructure.adapters.deck_file import load_deck


def test_scope_defaults_to_file_stem(tmp_path):
    path = tmp_path / "biology.json"
    path.write_text(
        json.dumps(
            {
                "items": [
                    {"id": "c1", "front": "Q1", "back": "A1", "group": "n1"},
                    {"id": "c2", "front": "Q2", "group": "n1"},
                    {"id": "c3", "front": "Q3"},
                ]
            }
        )
    )

    deck = load_deck(path)

    assert deck.scope == "biology"
    assert deck.item_ids == ["c1", "c2", "c3"]
    assert deck.groups == {"c1": "n1", "c2": "n1"}
    assert deck.get("c2").back == ""
    assert deck.get("nope") is None


def test_duplicate_ids_rejected(tmp_path):
    path = tmp_path / "d.json"
    path.write_text(json.dumps({"items": [{"id": "a", "front": "x"}, {"id": "a", "front": "y"}]}))
    with pytest.raises(CadenceError, match="Duplicate item id"):
        load_deck(path)


def test_missing_deck(tmp_path):
    with pytest.raises(CadenceError):
        load_deck(tmp_path / "missing.json")
