"""Structured filter extraction and query plan construction."""

from __future__ import annotations

import calendar
import re
from datetime import date, timedelta

from pydantic import BaseModel

from docqa_engine.config.constants import TYPE_SYNONYMS
from docqa_engine.exceptions import ReasoningError
from docqa_engine.generation.prompt_templates import FilterPromptInput, render_filter_prompt
from docqa_engine.models.domain import (
    DateRange,
    Entity,
    ExtractedFilters,
    QueryPlan,
    RoutingDecision,
)
from docqa_engine.models.schemas import RequestFilters
from docqa_engine.observability.logger import get_logger
from docqa_engine.query.understanding import tokenize

logger = get_logger("filters")

_ISO_DAY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


class FilterOutput(BaseModel):
    sender: str | None = None
    receiver: str | None = None
    date: str | None = None  # "today", "last month", "2024-09", "2024-09-12"


def parse_relative_date_range(phrase: str | None, today: date | None = None) -> DateRange | None:
    """Resolve a date phrase to an inclusive range, or None when unrecognized."""
    s = (phrase or "").strip().lower()
    if not s:
        return None
    today = today or date.today()

    if s == "today":
        return DateRange(today, today)
    if s == "yesterday":
        day = today - timedelta(days=1)
        return DateRange(day, day)
    if s == "last week":
        # weeks start on Monday
        this_monday = today - timedelta(days=today.weekday())
        last_monday = this_monday - timedelta(days=7)
        return DateRange(last_monday, last_monday + timedelta(days=6))
    if s == "this month":
        return DateRange(today.replace(day=1), today)
    if s == "last month":
        last_day = today.replace(day=1) - timedelta(days=1)
        return DateRange(last_day.replace(day=1), last_day)

    match = _ISO_DAY_RE.match(s)
    if match:
        try:
            day = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
        return DateRange(day, day)

    match = _ISO_MONTH_RE.match(s)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            return None
        last = calendar.monthrange(year, month)[1]
        return DateRange(date(year, month, 1), date(year, month, last))
    return None


def expand_type_synonyms(value: str) -> tuple[set[str], set[str]]:
    """Map a type mention to (canonical types, synonyms to boost).

    A value that matches no synonym group is returned verbatim as its own type.
    """
    value = value.strip().lower()
    types: set[str] = set()
    boosts: set[str] = set()
    if not value:
        return types, boosts
    for canonical, synonyms in TYPE_SYNONYMS.items():
        if any(s in value for s in synonyms):
            types.add(canonical)
            boosts.update(synonyms)
    if not types:
        types.add(value)
    return types, boosts


def _mentions(question: str, synonym: str) -> bool:
    tokens = tokenize(question)
    parts = synonym.split()
    for i in range(len(tokens) - len(parts) + 1):
        window = tokens[i : i + len(parts)]
        # tolerate a plural on the last word
        if window[:-1] == parts[:-1] and window[-1] in (parts[-1], parts[-1] + "s"):
            return True
    return False


class FilterExtractor:
    def __init__(self, client) -> None:
        self._prompt = client.define_prompt(
            "extract_metadata_filters", render_filter_prompt, FilterOutput
        )

    async def extract_filters(
        self, question: str, today: date | None = None
    ) -> ExtractedFilters:
        """Ask the reasoning service for sender, receiver and date. Never raises."""
        try:
            out = await self._prompt(FilterPromptInput(question=question))
        except ReasoningError as e:
            logger.warning("filter_extraction_failed", error=str(e))
            return ExtractedFilters()

        sender = out.sender.strip() if out.sender and out.sender.strip() else None
        receiver = out.receiver.strip() if out.receiver and out.receiver.strip() else None
        date_range = parse_relative_date_range(out.date, today=today) if out.date else None
        logger.info(
            "filters_extracted",
            sender=sender,
            receiver=receiver,
            date_range=bool(date_range),
        )
        return ExtractedFilters(sender=sender, receiver=receiver, date_range=date_range)


def build_query_plan(
    question: str,
    decision: RoutingDecision | None,
    filters: ExtractedFilters | None = None,
    caller_filters: RequestFilters | None = None,
    today: date | None = None,
) -> QueryPlan:
    """Merge routing entities, extracted filters and caller filters into a plan.

    Caller-supplied filters win over extracted ones.
    """
    entities: list[Entity] = list(decision.entities) if decision else []
    plan = QueryPlan(entities=entities)

    if decision:
        plan.terms.update(t.lower() for t in decision.expanded_terms if t)

    for entity in entities:
        if entity.type == "document_type":
            types, boosts = expand_type_synonyms(entity.value)
            plan.type_filters |= types
            plan.boost_terms |= boosts
        elif entity.type == "category":
            plan.category_filters.add(entity.value.lower())

    for canonical, synonyms in TYPE_SYNONYMS.items():
        if any(_mentions(question, s) for s in synonyms):
            plan.type_filters.add(canonical)
            plan.boost_terms.update(synonyms)

    if filters:
        plan.sender = filters.sender
        plan.receiver = filters.receiver
        plan.date_range = filters.date_range

    if plan.date_range is None:
        for entity in entities:
            if entity.type == "date":
                plan.date_range = parse_relative_date_range(entity.value, today=today)
                if plan.date_range:
                    break

    if caller_filters:
        plan.sender = caller_filters.sender or plan.sender
        plan.receiver = caller_filters.receiver or plan.receiver
        if caller_filters.category:
            plan.category_filters.add(caller_filters.category.lower())
        if caller_filters.type:
            types, boosts = expand_type_synonyms(caller_filters.type)
            plan.type_filters |= types
            plan.boost_terms |= boosts
        if caller_filters.date_start or caller_filters.date_end:
            plan.date_range = DateRange(
                caller_filters.date_start or date.min,
                caller_filters.date_end or date.max,
            )

    plan.terms.discard("")
    plan.boost_terms.discard("")
    return plan
