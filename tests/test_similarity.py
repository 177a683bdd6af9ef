import pytest

from reviewguard.worker.agents.antifraud.similarity import normalize, similarity


def test_normalize_drops_case_and_separators():
    assert normalize("OnlyFans_Girl") == "onlyfansgirl"
    assert normalize("  Anna-Maria.Rossi ") == "annamariarossi"
    assert normalize("emoji ✨ name") == "emojiname"
    assert normalize(None) == ""


@pytest.mark.parametrize("a,b,edits", [
    ("kitten", "sitting", 3),
    ("flaw", "lawn", 2),
    ("Bella_Rose", "bellarosa", 1),
])
def test_similarity_is_one_minus_edits_over_longest(a, b, edits):
    longest = max(len(normalize(a)), len(normalize(b)))
    assert similarity(a, b) == pytest.approx(1 - edits / longest)
    assert similarity(b, a) == pytest.approx(1 - edits / longest)


def test_similarity_identity_and_symmetry():
    for name in ("Alessia Rose", "x", "Bella_Belle"):
        assert similarity(name, name) == 1.0
    assert similarity("Alessia Rose", "Alessia Ros") == similarity("Alessia Ros", "Alessia Rose")


def test_similarity_ignores_separators_and_case():
    assert similarity("OnlyFans_Girl", "onlyfansgirl") == 1.0


def test_similarity_one_edit_on_short_name_is_high():
    # "alessiarose" vs "alessiaros": one deletion over 11 chars
    assert similarity("Alessia Rose", "Alessia Ros") == pytest.approx(1 - 1 / 11)


def test_similarity_empty_inputs():
    assert similarity("", "") == 1.0
    assert similarity("", "abc") == 0.0
