"""All prompt templates for the QA engine.

Each prompt is rendered by a pure function from a small typed record.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docqa_engine.config.constants import INSUFFICIENT_EVIDENCE
from docqa_engine.models.domain import Chunk, ConversationTurn

ROUTER_INTENTS = (
    "FindFiles",
    "Metadata",
    "ContentQA",
    "Linked",
    "Preview",
    "Timeline",
    "Extract",
    "Analysis",
    "Summarize",
    "Compare",
    "Sentiment",
    "Casual",
    "Custom",
)

INTENT_DESCRIPTIONS = {
    "FindFiles": "Searching for documents by properties (title, sender, date, etc.)",
    "Metadata": "Asking about document properties (title, subject, sender, etc.)",
    "ContentQA": "Questions about document content",
    "Linked": "Asking about related/linked documents",
    "Preview": "Wanting to see document content",
    "Timeline": "Chronological queries",
    "Extract": "Structured data extraction",
    "Analysis": "Deep document analysis",
    "Summarize": "Document summarization",
    "Compare": "Document comparison",
    "Sentiment": "Sentiment analysis",
    "Casual": "Casual conversation, greetings, small talk, questions not related to documents",
    "Custom": "Other custom queries",
}

FILTER_EXTRACTION_PROMPT = """You extract simple metadata filters from a short request. Return JSON with keys sender, receiver, date (a natural phrase like "today", "yesterday", "last week", "last month", "this month", or an ISO date YYYY-MM-DD or YYYY-MM). Use null for anything not mentioned.

Question: {question}

Return ONLY JSON."""

DOCUMENT_QA_SYSTEM = """You are a precise QA assistant. Answer the user's question using ONLY the provided document snippets.
Rules:
- Never use outside knowledge and never guess.
- For values, amounts or totals, quote the exact figures with their context.
- Respond in GitHub-Flavored Markdown with concise bullets or short paragraphs.
- When listing rows or values, use a Markdown table with clear headers."""

STRUCTURED_QA_SYSTEM = """You answer a precise question based ONLY on the provided document excerpts. Extract structured data first when needed.
Output format (strict):
- Use GitHub-Flavored Markdown only. Use Markdown tables when listing rows.
- Do NOT invent values. If a field is missing in the excerpts, write "(not visible)".
- Do NOT include JSON or code blocks. Only Markdown prose and tables."""

STRUCTURED_TASKS = {
    "TableExtract": "Detect tables (e.g., month-wise data with units and amounts) and output a Markdown table with clear headers.",
    "VerifySum": "Detect the listed charges/credits with amounts, compute their sum and compare it with the stated total. Give a short explanation, a compact Markdown table of the components and any discrepancy.",
}


@dataclass
class FilterPromptInput:
    question: str


@dataclass
class RouterPromptInput:
    question: str
    conversation: list[ConversationTurn] = field(default_factory=list)


@dataclass
class DocIntentInput:
    question: str


@dataclass
class DocumentQAInput:
    question: str
    title: str
    chunks: list[Chunk]
    mode: str = "PlainQA"  # "PlainQA", "TableExtract", "VerifySum"


def render_filter_prompt(payload: FilterPromptInput) -> str:
    return FILTER_EXTRACTION_PROMPT.format(question=payload.question)


def render_router_prompt(payload: RouterPromptInput) -> str:
    lines = [
        "You are an intelligent document assistant that classifies user intents.",
        "",
        "Classify the following question and provide structured output.",
        "",
        "Context:",
    ]
    lines.extend(f"{turn.role}: {turn.content}" for turn in payload.conversation)
    lines += ["", "Question:", f'"{payload.question}"', "", "Available Intent Types:"]
    lines.extend(f"- {name}: {INTENT_DESCRIPTIONS[name]}" for name in ROUTER_INTENTS)
    lines += [
        "",
        'agentType is "metadata" for questions about document properties or finding files, '
        '"casual" for small talk and "content" otherwise.',
        "",
        "Respond ONLY with JSON with keys intent, agentType, confidence (0 to 1), "
        "needsClarification (boolean) and clarificationQuestion (string or null).",
    ]
    return "\n".join(lines)


def render_doc_intent_prompt(payload: DocIntentInput) -> str:
    question = payload.question[:1000]
    return f"""Classify a user question about a single document into one of:
- PlainQA: direct question answered by quoting or summarizing text.
- TableExtract: build a table from bill-like sections (e.g., BILL MONTH with units/amounts; month-wise values).
- VerifySum: verify or compute totals by summing line items (e.g., charges, credits) and compare to a stated total.

Choose VerifySum when the question asks to verify a total by summing charges or credits, or mentions "verify", "sum", "add up", "discrepancy" or a named total.
Choose TableExtract when the question asks for a month-wise or columnar table.
Otherwise choose PlainQA.
Respond with JSON only: {{"mode": ..., "confidence": ...}}

Question: {question}"""


def format_snippets(chunks: list[Chunk], max_chars: int = 800) -> str:
    """Format chunks as numbered snippets for prompts."""
    return "\n\n".join(
        f"Snippet {i}: {chunk.content[:max_chars]}" for i, chunk in enumerate(chunks, 1)
    )


def render_document_qa_prompt(payload: DocumentQAInput) -> str:
    parts = []
    if payload.mode in STRUCTURED_TASKS:
        parts.append(f"Task ({payload.mode}): {STRUCTURED_TASKS[payload.mode]}")
    else:
        parts.append(f'If the snippets do not contain the answer, say exactly: "{INSUFFICIENT_EVIDENCE}"')
    parts.append(f"Document: {payload.title}")
    parts.append(f"Question: {payload.question}")
    parts.append(f"Snippets:\n{format_snippets(payload.chunks)}")
    return "\n\n".join(parts)


def system_for_mode(mode: str) -> str:
    return STRUCTURED_QA_SYSTEM if mode in STRUCTURED_TASKS else DOCUMENT_QA_SYSTEM
