import random

import pytest

from oddword.errors import OutOfRangeError
from oddword.game.models import Word
from oddword.game.words import WORDS, categories, pick_random_words, pick_secret_word, words_in_category


def test_pick_returns_unique_catalog_words():
    rng = random.Random(7)
    for count in (1, 2, 5, len(WORDS) - 1, len(WORDS)):
        picked = pick_random_words(count, rng=rng)
        assert len(picked) == count
        assert len(set(picked)) == count
        assert all(w in WORDS for w in picked)


def test_pick_more_than_catalog_fails():
    with pytest.raises(OutOfRangeError) as exc:
        pick_random_words(len(WORDS) + 1)
    assert exc.value.code == 'count_out_of_range'


def test_pick_zero_or_negative_is_empty():
    assert pick_random_words(0) == []
    assert pick_random_words(-3) == []


def test_pick_is_reproducible_with_seed():
    a = pick_random_words(6, rng=random.Random(42))
    b = pick_random_words(6, rng=random.Random(42))
    assert a == b


def test_pick_from_custom_catalog():
    catalog = [Word('one'), Word('two'), Word('three')]
    picked = pick_random_words(3, rng=random.Random(1), catalog=catalog)
    assert sorted(w.text for w in picked) == ['one', 'three', 'two']


def test_pick_leaves_catalog_untouched():
    before = list(WORDS)
    pick_random_words(10, rng=random.Random(3))
    assert list(WORDS) == before


def test_categories_cover_catalog():
    cats = categories()
    assert {'Fruit', 'Animal', 'Sport'} <= set(cats)
    assert sum(len(words_in_category(c)) for c in cats) == len(WORDS)


def test_secret_word_belongs_to_prompt():
    rng = random.Random(9)
    for _ in range(20):
        prompt, word = pick_secret_word(rng)
        assert word.category == prompt
        assert word in WORDS


@pytest.mark.parametrize('count', [1, 2, 3])
def test_pick_is_uniform_over_catalog(count):
    catalog = [Word(text) for text in ('ant', 'bee', 'cat', 'dog', 'eel')]
    rng = random.Random(2024)
    draws = 20_000
    hits = dict.fromkeys((w.text for w in catalog), 0)

    for _ in range(draws):
        for w in pick_random_words(count, rng=rng, catalog=catalog):
            hits[w.text] += 1

    expected = count / len(catalog)
    for text, n in hits.items():
        assert abs(n / draws - expected) < 0.015, text


def test_empty_catalog_stays_empty():
    assert categories([]) == []
    assert words_in_category('Fruit', []) == []
    assert pick_random_words(0, catalog=[]) == []
    with pytest.raises(OutOfRangeError):
        pick_random_words(1, catalog=[])
