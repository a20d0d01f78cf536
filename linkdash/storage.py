from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .models import Card

logger = logging.getLogger(__name__)

_cards_adapter = TypeAdapter(List[Card])


def next_card_id(cards: Sequence[Card]) -> int:
    """One past the largest id in use; gaps are never reused."""
    return max((c.id for c in cards), default=0) + 1


def duplicate_ids(cards: Sequence[Card]) -> List[int]:
    seen: set[int] = set()
    dupes: List[int] = []
    for card in cards:
        if card.id in seen and card.id not in dupes:
            dupes.append(card.id)
        seen.add(card.id)
    return dupes


class CardStore:
    """The whole card list as one JSON document on disk.

    Every write replaces the full document and there is no locking: when two
    writers overlap the last one wins.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def ensure_exists(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("[]", encoding="utf-8")
        logger.info("created empty card document at %s", self.path)

    def read_raw(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def load(self) -> List[Card]:
        # read failures degrade to an empty dashboard
        try:
            return _cards_adapter.validate_json(self.read_raw())
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("cannot load cards from %s: %s", self.path, exc)
            return []

    def replace(self, cards: Sequence[Card]) -> bool:
        dupes = duplicate_ids(cards)
        if dupes:
            logger.error("refusing to write cards with duplicate ids %s", dupes)
            return False
        body = json.dumps([c.model_dump() for c in cards], indent=2, ensure_ascii=False)
        try:
            self.path.write_text(body, encoding="utf-8")
        except OSError as exc:
            logger.error("cannot write cards to %s: %s", self.path, exc)
            return False
        return True

    def add(self, title: str, url: str, color: str) -> Optional[Card]:
        cards = self.load()
        card = Card(id=next_card_id(cards), title=title, url=url, color=color)
        cards.append(card)
        return card if self.replace(cards) else None
