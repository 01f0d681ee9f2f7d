from bookhive.domain.tokenizer import normalize, tokenize, tokenize_many


def test_normalize_strips_accents_case_and_whitespace():
    assert normalize("  Éléments de Géométrie ") == "elements de geometrie"


def test_normalize_none_is_empty():
    assert normalize(None) == ""


def test_tokenize_splits_on_non_alphanumerics():
    assert tokenize("The Hitchhiker's Guide, Vol. 2") == [
        "the", "hitchhiker", "s", "guide", "vol", "2",
    ]


def test_tokenize_deduplicates_keeping_first_occurrence():
    assert tokenize("Dune dune DUNE Messiah") == ["dune", "messiah"]


def test_tokenize_empty_and_symbol_only_input():
    assert tokenize("") == []
    assert tokenize("--- !!") == []


def test_tokenize_many_unions_tokens():
    assert tokenize_many(["Frank Herbert", "Brian Herbert"]) == {"frank", "brian", "herbert"}


def test_accented_and_plain_spellings_tokenize_alike():
    assert tokenize("Café") == tokenize("cafe") == ["cafe"]
