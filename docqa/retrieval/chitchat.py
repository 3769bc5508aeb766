"""
Chitchat Classifier
--------------------
Cheap pre-filter run before retrieval.  Greetings, thanks, goodbyes and
very short non-questions skip the index and go straight to the
general-knowledge prompt.

Rules (first match wins):
  1. Whole input is a known greeting/closing phrase (optional trailing
     punctuation), case-insensitive.
  2. A single whitespace-delimited token of length <= 4.
  3. At most 10 characters and no interrogative word.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_GREETING = re.compile(
    r"^(hi|hello|hey|iya|hallo|good (morning|afternoon|evening)|thanks|thank you|"
    r"bye|goodbye|sup|yo|what's up|whats up)[\s!.,?]*$",
    re.I,
)

_QUESTION_WORDS = re.compile(r"\b(who|what|when|where|why|how|which|whom|whose)\b", re.I)

MAX_SHORT_TOKEN = 4
MAX_SHORT_MESSAGE = 10


@dataclass(frozen=True)
class ChitchatResult:
    is_chitchat: bool
    reason: str = ""


def classify(question: str | None) -> ChitchatResult:
    if not question:
        return ChitchatResult(False, "empty")
    s = question.strip().lower()

    if _GREETING.match(s):
        return ChitchatResult(True, "greeting")

    tokens = s.split()
    if len(tokens) == 1 and len(tokens[0]) <= MAX_SHORT_TOKEN:
        return ChitchatResult(True, "short_token")

    if len(s) <= MAX_SHORT_MESSAGE and not _QUESTION_WORDS.search(s):
        return ChitchatResult(True, "short_statement")

    return ChitchatResult(False)


def is_likely_chitchat(question: str | None) -> bool:
    return classify(question).is_chitchat
