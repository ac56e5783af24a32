"""
Deck files: the item content a CLI study session presents.

A deck is a JSON document:
    {"scope": "biology", "items": [{"id": "c1", "front": "...", "back": "...", "group": "n1"}]}
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from cadence.domain.errors import CadenceError


class DeckItem(BaseModel):
    id: str
    front: str
    back: str = ""
    group: str | None = None


class Deck(BaseModel):
    scope: str | None = None
    items: list[DeckItem] = Field(default_factory=list)

    @field_validator("items")
    @classmethod
    def unique_ids(cls, v: list[DeckItem]) -> list[DeckItem]:
        seen = set()
        for item in v:
            if item.id in seen:
                raise ValueError(f"Duplicate item id: {item.id}")
            seen.add(item.id)
        return v

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]

    @property
    def groups(self) -> dict[str, str]:
        return {item.id: item.group for item in self.items if item.group}

    def get(self, item_id: str) -> DeckItem | None:
        return next((item for item in self.items if item.id == item_id), None)


def load_deck(path: Path) -> Deck:
    """
    Read a deck file. The scope defaults to the file's stem.

    Raises:
        CadenceError: if the file is missing or invalid.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            deck = Deck.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError) as e:
        raise CadenceError(f"Could not read deck {path}: {e}") from e
    except ValidationError as e:
        raise CadenceError(f"Invalid deck {path}: {e}") from e

    if not deck.scope:
        deck.scope = path.stem
    return deck
