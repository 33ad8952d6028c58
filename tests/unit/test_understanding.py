"""Tests for heuristic query understanding."""

from __future__ import annotations

from docqa_engine.query.understanding import (
    expand_query_terms,
    extract_entities,
    keywords,
    normalize_question,
    tokenize,
)


def test_normalize_question():
    assert normalize_question("  what   is\tthe\n total ") == "what is the total"
    assert normalize_question("ｆｕｌｌwidth") == "fullwidth"
    assert normalize_question(None) == ""


def test_tokenize_and_keywords():
    assert tokenize("FIR No. 12/2023!") == ["fir", "no", "12", "2023"]
    assert keywords("Show me the invoices and the invoices from Acme") == ["invoices", "acme"]
    assert keywords("alpha beta gamma delta", limit=2) == ["alpha", "beta"]


def test_expand_query_terms_adds_synonyms():
    terms = expand_query_terms("latest contracts with Globex")
    assert terms[:3] == ["latest", "contracts", "globex"]
    assert "agreement" in terms


def _by_type(text):
    found = {}
    for entity in extract_entities(text):
        found.setdefault(entity.type, []).append(entity.value)
    return found


def test_extract_entities():
    found = _by_type(
        'Find the "Annual Budget Review" report from Acme Corp sent to ops@globex.com on 2024-09-12'
    )
    assert found["title"] == ["Annual Budget Review"]
    assert found["email"] == ["ops@globex.com"]
    assert "2024-09-12" in found["date"]
    assert "report" in found["document_type"]
    assert found["organization"] == ["Acme Corp"]


def test_extract_person_names():
    found = _by_type("letters signed by Ramesh Kumar in March")
    assert found["person"] == ["Ramesh Kumar"]
    assert "letter" in found["document_type"]


def test_extract_category():
    found = _by_type("documents with category: permits")
    assert found["category"] == ["permits"]
