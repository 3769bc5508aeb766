"""
Leading Refusal Stripper
-------------------------
Removes the literal refusal sentence ("I don't know based on the provided
documents.") and its fragments from the FRONT of buffered model output.

The model answers token by token, so before streaming starts the buffer
may hold any truncation of the sentence ("I d", "I don'", "I don't know
based on the prov").  Every rule therefore has two kinds of alternative:

  - complete forms, which may be followed by more text
  - truncated forms, which only match when they run to the end of input

A truncated form can only hide text while nothing else has arrived yet;
as soon as a non-matching character follows, it stops matching.

Rules are tried in table order, each once per pass, always against the
current start of the string.  Passes repeat until nothing changes, which
makes strip_leading_phrases idempotent.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_APOSTROPHE = "['’`]"
_TRAILING = r"[\s,.:;!()\-]*"


def _truncated(phrase: str) -> str:
    """Regex for any non-empty prefix of `phrase` that ends the input."""
    pattern = ""
    for ch in reversed(phrase):
        if ch == " ":
            piece = r"\s+"
        elif ch in "'’":
            piece = _APOSTROPHE
        else:
            piece = re.escape(ch)
        pattern = f"{piece}(?:{pattern})?" if pattern else piece
    return rf"(?:{pattern})\Z"


_CONTRACTION = _truncated("n't")


@dataclass(frozen=True)
class StripRule:
    name: str
    pattern: re.Pattern[str]

    def apply(self, text: str) -> str:
        match = self.pattern.match(text)
        return text[match.end():] if match else text


def _rule(name: str, body: str) -> StripRule:
    return StripRule(name, re.compile(rf"^(?:{body})", re.IGNORECASE))


STRIP_RULES: tuple[StripRule, ...] = (
    _rule("leading_whitespace", r"\s+"),
    _rule(
        "negation",
        "(?:"
        + "|".join(
            [
                _truncated("i don't"),
                _truncated("don't"),
                _truncated("do not"),
                rf"(?:i\s*)?(?:don{_APOSTROPHE}?t|do\s+not)\b",
                r"i\s+don\b",
            ]
        )
        + ")"
        + _TRAILING,
    ),
    _rule(
        "know_clause",
        rf"(?:{_truncated('know based on the provided documents.')}"
        r"|know\b(?:\s+based\s+on\s+the\s+provided\s+documents\.?)?)"
        + _TRAILING,
    ),
    _rule(
        "split_contraction",
        rf"(?:{_CONTRACTION}|n{_APOSTROPHE}?t\b|{_APOSTROPHE}t\b)" + _TRAILING,
    ),
    _rule("leftover_token", r"(?:i\s+don|don|i)\b" + _TRAILING),
    _rule("leading_punctuation", r"[\s\"'`’.,:;()\-]+"),
)

RULES_BY_NAME: dict[str, StripRule] = {rule.name: rule for rule in STRIP_RULES}


def apply_rules_once(text: str) -> str:
    """One pass over the rule table, in order."""
    for rule in STRIP_RULES:
        text = rule.apply(text)
    return text


def strip_leading_phrases(text: str) -> str:
    """Strip refusal fragments from the start of text until a fixpoint."""
    if not text:
        return text
    while True:
        stripped = apply_rules_once(text)
        if stripped == text:
            return stripped
        text = stripped
