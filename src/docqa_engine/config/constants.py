"""Fixed vocabularies and user-facing phrases."""

from __future__ import annotations

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does",
        "for", "from", "give", "has", "have", "how", "i", "in", "is", "it",
        "me", "my", "of", "on", "or", "please", "show", "tell", "that", "the",
        "this", "to", "was", "were", "what", "when", "where", "which", "who",
        "with", "you", "all", "any", "find", "list", "about", "there",
    }
)

# canonical document type -> surface synonyms
TYPE_SYNONYMS: dict[str, list[str]] = {
    "inspection": [
        "inspection",
        "inspection report",
        "visit report",
        "site inspection",
        "mpcb inspection",
        "compliance visit",
        "inspection note",
        "inspection findings",
    ],
    "invoice": ["invoice", "bill", "receipt", "payment"],
    "legal": ["legal", "agreement", "contract", "notice"],
    "financial": ["financial", "budget", "cost", "quotation", "demand note"],
}

# Used to widen lexical matching when the reasoning service is unavailable
QUERY_SYNONYMS: dict[str, list[str]] = {
    "document": ["file", "paper", "record"],
    "letter": ["correspondence", "communication", "mail"],
    "report": ["summary", "analysis", "findings"],
    "contract": ["agreement", "deal"],
    "invoice": ["bill", "receipt"],
    "meeting": ["minutes", "discussion"],
    "complaint": ["grievance", "fir"],
}

COUNT_NOUNS = ("accused", "individual", "individuals", "person", "persons", "people")

NUMBER_WORDS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "thirteen": 13, "fourteen": 14, "fifteen": 15, "sixteen": 16,
    "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
}

ORDINAL_WORDS: dict[str, int] = {
    "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5,
    "sixth": 6, "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10,
}

INSUFFICIENT_EVIDENCE = "I don't have enough information in this document to answer that."
NOT_FOUND_MESSAGE = "I could not find the requested information in this folder."
NOT_FOUND_ORG_MESSAGE = "I could not find the requested information in the accessible documents."
NOT_FOUND_DOC_MESSAGE = "I could not find the requested information in this document."
DEGRADED_HEADER = "Relevant excerpts from the document (AI temporarily unavailable):"
MERGED_HEADER = "Here is what I found across top documents in this folder:"
MERGED_ORG_HEADER = "Here is what I found across the top matching documents:"
STRICT_CLARIFY_MESSAGE = (
    "I don't have enough grounded evidence to answer precisely. To narrow this down, "
    "please specify a date range (e.g., 2021-01 to 2021-12), document type "
    "(e.g., inspection, invoice), or sender/receiver."
)
SHORT_QUESTION_CLARIFY = "Could you add a bit more detail about what you are looking for?"
CASUAL_REPLY = "Hello! Ask me anything about your documents and I'll look it up."
NO_MATCHING_DOCUMENTS = "I couldn't find any documents matching those filters."
NO_LINKS_MESSAGE = "No linked documents were found."
LINKED_TARGET_CLARIFY = "Which document's linked documents would you like to see? Open a document or mention it by name."
COUNT_NOT_FOUND_MESSAGE = "I could not determine the count from the available excerpts."
