import random
from typing import List, Optional, Sequence

from .errors import InvalidInput
from .session import Card


def fisher_yates(items: list, rng: Optional[random.Random] = None) -> list:
    """Shuffle ``items`` in place so every permutation is equally likely.

    ``rng`` is any object with ``randint``; pass a seeded ``random.Random``
    for reproducible orderings.
    """
    rng = rng or random.Random()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build_deck(image_refs: Sequence[str], rng: Optional[random.Random] = None) -> List[Card]:
    """Build a shuffled deck holding two cards per image reference.

    Card ids are assigned 0..2N-1 in input order before the shuffle, so the
    two cards of image ``k`` carry ids ``2k`` and ``2k + 1``.
    """
    refs = list(image_refs or [])
    if len(refs) < 2:
        raise InvalidInput('At least 2 images are required')
    if any(not isinstance(ref, str) or not ref.strip() for ref in refs):
        raise InvalidInput('Image references must be non-empty strings')
    if len(set(refs)) != len(refs):
        raise InvalidInput('Image references must be unique')

    cards = []
    next_id = 0
    for ref in refs:
        for _ in range(2):
            cards.append(Card(id=next_id, image_ref=ref))
            next_id += 1
    return fisher_yates(cards, rng)
