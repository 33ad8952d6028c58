"""Tests for filter extraction, relative dates and query plan construction."""

from __future__ import annotations

from datetime import date

import pytest

from docqa_engine.exceptions import MalformedOutput, ProviderCallError
from docqa_engine.models.domain import DateRange, ExtractedFilters, Intent, RoutingDecision
from docqa_engine.models.schemas import RequestFilters
from docqa_engine.query.filters import (
    FilterExtractor,
    build_query_plan,
    expand_type_synonyms,
    parse_relative_date_range,
)
from docqa_engine.query.understanding import expand_query_terms, extract_entities

TODAY = date(2024, 3, 13)  # a Wednesday


def _decision(question: str) -> RoutingDecision:
    return RoutingDecision(
        intent=Intent.LIST_DOCS,
        scope="org",
        action="search",
        primary_tool="metadata_search",
        confidence=0.9,
        entities=tuple(extract_entities(question)),
        expanded_terms=tuple(expand_query_terms(question)),
    )


@pytest.mark.parametrize(
    "phrase,expected",
    [
        ("today", DateRange(date(2024, 3, 13), date(2024, 3, 13))),
        ("Yesterday", DateRange(date(2024, 3, 12), date(2024, 3, 12))),
        ("last week", DateRange(date(2024, 3, 4), date(2024, 3, 10))),
        ("this month", DateRange(date(2024, 3, 1), date(2024, 3, 13))),
        ("last month", DateRange(date(2024, 2, 1), date(2024, 2, 29))),
        ("2024-09-12", DateRange(date(2024, 9, 12), date(2024, 9, 12))),
        ("2023-02", DateRange(date(2023, 2, 1), date(2023, 2, 28))),
    ],
)
def test_parse_relative_date_range(phrase, expected):
    assert parse_relative_date_range(phrase, today=TODAY) == expected


@pytest.mark.parametrize("phrase", ["", None, "someday", "2024-02-30", "2024-13", "last year"])
def test_parse_relative_date_range_unrecognized(phrase):
    assert parse_relative_date_range(phrase, today=TODAY) is None


def test_last_month_crosses_year():
    assert parse_relative_date_range("last month", today=date(2024, 1, 20)) == DateRange(
        date(2023, 12, 1), date(2023, 12, 31)
    )


def test_expand_type_synonyms():
    types, boosts = expand_type_synonyms("Site Inspection")
    assert types == {"inspection"}
    assert "visit report" in boosts

    types, boosts = expand_type_synonyms("memo")
    assert types == {"memo"}
    assert boosts == set()


async def test_extract_filters_resolves_date(client, provider):
    provider.structured = {"FilterOutput": {"sender": None, "receiver": None, "date": "last month"}}
    extractor = FilterExtractor(client)
    filters = await extractor.extract_filters("invoices from last month", today=TODAY)
    assert filters.sender is None
    assert filters.receiver is None
    assert filters.date_range == DateRange(date(2024, 2, 1), date(2024, 2, 29))


async def test_extract_filters_nothing_mentioned(client, provider):
    provider.structured = {"FilterOutput": {"sender": " ", "receiver": None, "date": None}}
    filters = await FilterExtractor(client).extract_filters("what is the total amount due")
    assert filters == ExtractedFilters()


@pytest.mark.parametrize(
    "error", [ProviderCallError("bad request", status_code=400), MalformedOutput("not json")]
)
async def test_extract_filters_failure_returns_empty(client, provider, error):
    provider.structured = {"FilterOutput": error}
    filters = await FilterExtractor(client).extract_filters("letters from Globex")
    assert filters == ExtractedFilters()


async def test_invoices_from_acme_last_month(client, provider):
    question = "show me invoices from Acme last month"
    provider.structured = {"FilterOutput": {"sender": None, "receiver": None, "date": "last month"}}
    filters = await FilterExtractor(client).extract_filters(question, today=date(2024, 10, 5))

    plan = build_query_plan(question, _decision(question), filters, today=date(2024, 10, 5))

    assert "invoice" in plan.type_filters
    assert plan.date_range == DateRange(date(2024, 9, 1), date(2024, 9, 30))
    assert plan.sender is None
    assert "bill" in plan.boost_terms


def test_plan_falls_back_to_date_entity():
    question = "reports received last week"
    plan = build_query_plan(question, _decision(question), ExtractedFilters(), today=TODAY)
    assert plan.date_range == DateRange(date(2024, 3, 4), date(2024, 3, 10))


def test_caller_filters_override_extracted():
    question = "letters from Acme last month"
    extracted = ExtractedFilters(
        sender="Acme", date_range=DateRange(date(2024, 2, 1), date(2024, 2, 29))
    )
    caller = RequestFilters(sender="Globex", category="Finance", date_start=date(2024, 1, 1))

    plan = build_query_plan(question, _decision(question), extracted, caller, today=TODAY)

    assert plan.sender == "Globex"
    assert "finance" in plan.category_filters
    assert plan.date_range == DateRange(date(2024, 1, 1), date.max)


def test_category_entity_becomes_hard_filter():
    question = "documents with category: permits"
    plan = build_query_plan(question, _decision(question))
    assert "permits" in plan.category_filters


def test_plan_without_decision_scans_question():
    plan = build_query_plan("any site inspection notes?", None)
    assert plan.type_filters == {"inspection"}
    assert plan.terms == set()
