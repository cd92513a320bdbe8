from __future__ import annotations

import random
from typing import Sequence

from ..errors import OutOfRangeError
from .models import Word


WORDS: tuple[Word, ...] = (
    Word("Apple", "Fruit"),
    Word("Banana", "Fruit"),
    Word("Carrot", "Vegetable"),
    Word("Dragonfruit", "Fruit"),
    Word("Eggplant", "Vegetable"),
    Word("Fig", "Fruit"),
    Word("Grape", "Fruit"),
    Word("Honeydew", "Fruit"),
    Word("Iceberg Lettuce", "Vegetable"),
    Word("Jackfruit", "Fruit"),
    Word("Kale", "Vegetable"),
    Word("Lemon", "Fruit"),
    Word("Mango", "Fruit"),
    Word("Nectarine", "Fruit"),
    Word("Olive", "Fruit"),
    Word("Pepper", "Vegetable"),
    Word("Quince", "Fruit"),
    Word("Radish", "Vegetable"),
    Word("Spinach", "Vegetable"),
    Word("Tomato", "Fruit"),
    Word("Ugli Fruit", "Fruit"),
    Word("Zucchini", "Vegetable"),
    # Animals
    Word("Cat", "Animal"),
    Word("Dog", "Animal"),
    Word("Elephant", "Animal"),
    Word("Tiger", "Animal"),
    Word("Bird", "Animal"),
    Word("Fish", "Animal"),
    Word("Horse", "Animal"),
    Word("Cow", "Animal"),
    # Movies
    Word("Avatar", "Movie"),
    Word("Titanic", "Movie"),
    Word("Batman", "Movie"),
    Word("Superman", "Movie"),
    Word("Star Wars", "Movie"),
    # Sports
    Word("Football", "Sport"),
    Word("Basketball", "Sport"),
    Word("Tennis", "Sport"),
    Word("Soccer", "Sport"),
    Word("Baseball", "Sport"),
    Word("Hockey", "Sport"),
    Word("Golf", "Sport"),
    Word("Cricket", "Sport"),
    Word("Rugby", "Sport"),
    Word("Swimming", "Sport"),
    # Professions
    Word("Doctor", "Profession"),
    Word("Teacher", "Profession"),
    Word("Engineer", "Profession"),
    Word("Artist", "Profession"),
    Word("Chef", "Profession"),
    Word("Pilot", "Profession"),
    Word("Nurse", "Profession"),
)


def pick_random_words(
    count: int,
    rng: random.Random | None = None,
    catalog: Sequence[Word] | None = None,
) -> list[Word]:
    """Pick ``count`` unique words with a partial Fisher-Yates shuffle.

    Only the trailing ``count`` positions are shuffled, so the cost is
    O(count) swaps rather than a shuffle of the whole catalog. Each of those
    positions receives a uniformly random element that has not been placed
    yet, which makes the returned slice a uniform, duplicate-free sample.
    """
    pool = list(WORDS if catalog is None else catalog)
    if count > len(pool):
        raise OutOfRangeError(f"Cannot pick {count} words from a list of {len(pool)}")
    if count <= 0:
        return []

    r = rng or random
    last = len(pool) - 1
    for i in range(last, last - count, -1):
        j = r.randint(0, i)
        pool[i], pool[j] = pool[j], pool[i]

    return pool[-count:]


def categories(catalog: Sequence[Word] | None = None) -> list[str]:
    seen: dict[str, None] = {}
    for w in WORDS if catalog is None else catalog:
        seen.setdefault(w.category, None)
    return list(seen)


def words_in_category(category: str, catalog: Sequence[Word] | None = None) -> list[Word]:
    return [w for w in (WORDS if catalog is None else catalog) if w.category == category]


def pick_secret_word(rng: random.Random | None = None) -> tuple[str, Word]:
    """Returns (prompt, secret word): a category and one of its words."""
    r = rng or random
    prompt = r.choice(categories())
    return prompt, pick_random_words(1, rng=r, catalog=words_in_category(prompt))[0]
