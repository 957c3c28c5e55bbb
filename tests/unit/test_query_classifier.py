import pytest

from labeler.models.transaction import RetrievalIntent
from labeler.services.query_classifier import classify_query


@pytest.mark.parametrize(
    "query, expected",
    [
        ("show my highest payments", RetrievalIntent.AMOUNT),
        ("how much did I pay for rent", RetrievalIntent.AMOUNT),
        ("anything over €500", RetrievalIntent.AMOUNT),
        ("transactions last month", RetrievalIntent.DATE),
        ("payments on 2026-05-01", RetrievalIntent.DATE),
        ("what did I spend in 2025", RetrievalIntent.DATE),
        ("which category is netflix", RetrievalIntent.CATEGORY),
        ("what type of expense is this", RetrievalIntent.CATEGORY),
        ("coffee at starbucks", RetrievalIntent.CONTENT),
    ],
)
def test_classify_query(query: str, expected: RetrievalIntent) -> None:
    assert classify_query(query) is expected


def test_amount_beats_date_and_category() -> None:
    # Priority order: amount, date, category
    assert classify_query("highest amount per category last month") is RetrievalIntent.AMOUNT
    assert classify_query("category total by month") is RetrievalIntent.AMOUNT
    assert classify_query("category breakdown by month") is RetrievalIntent.DATE


@pytest.mark.parametrize("query", [None, "", "   \t"])
def test_blank_query_is_content(query) -> None:
    assert classify_query(query) is RetrievalIntent.CONTENT


def test_keywords_match_whole_words_only() -> None:
    # "day" inside "payday", "sum" inside "summer"
    assert classify_query("payday loan") is RetrievalIntent.CONTENT
    assert classify_query("summer camp") is RetrievalIntent.CONTENT


def test_classification_is_case_insensitive_and_deterministic() -> None:
    first = classify_query("LARGEST Transfers")
    assert first is RetrievalIntent.AMOUNT
    assert all(classify_query("LARGEST Transfers") is first for _ in range(5))


def test_combined_is_never_inferred() -> None:
    assert classify_query("combined view of everything") is RetrievalIntent.CONTENT
