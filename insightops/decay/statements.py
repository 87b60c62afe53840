"""
Statement Extraction

Splits document text into comparable statements so the contradiction and
version-drift evaluators can tell when two texts say different things
about the same subject.

Rules:
- "[numbering] Label: value" lines become labeled statements keyed by the
  normalized label ("2. Core Hours: 10 AM" → subject "core hours")
- other sentences become unlabeled statements keyed by content words
- two statements share a subject when labels match, or (unlabeled) when
  content-word Jaccard similarity is at least 0.5
- they conflict when polarity differs, or both carry numbers and the
  number sets differ
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

SUBJECT_JACCARD = 0.5
MIN_CONTENT_WORDS = 3
EXCERPT_CHARS = 200

_NUMBERING = re.compile(r"^\s*(?:\d{1,2}[.)]|[-*•])\s+")
_LABELED = re.compile(r"^([A-Za-z][A-Za-z0-9 /&'()-]{0,40}?)\s*:\s+(.+)$")
# Inline list items and labels glued onto the previous sentence
_INLINE_SPLIT = re.compile(
    r"(?:(?<=\s)(?=\d{1,2}[.)]\s+[A-Z][^:\n]{0,40}:\s))"
    r"|(?:(?<=[.!?])\s+(?=[A-Z][A-Za-z ]{0,40}:\s))"
)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_NUMBER = re.compile(r"\d+(?:[.,]\d+)*")
_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")
_WORD = re.compile(r"[a-z][a-z']+")
_NEGATION = re.compile(
    r"\b(?:no|not|never|none|without|cannot|no longer|fully remote)\b|n't\b",
    re.IGNORECASE,
)

STOPWORDS = frozenset({
    "the", "and", "for", "are", "was", "were", "is", "be", "been", "being",
    "this", "that", "these", "those", "with", "from", "into", "onto", "per",
    "our", "their", "its", "will", "shall", "should", "would", "can", "may",
    "must", "has", "have", "had", "all", "any", "each", "every", "a", "an",
    "of", "to", "in", "on", "at", "by", "as", "or", "it", "we", "they",
    "you", "your", "now", "also", "than", "then", "there", "here",
    # negation markers carry polarity, not subject
    "no", "not", "never", "none", "without", "cannot",
})


@dataclass(frozen=True)
class Statement:
    """One comparable claim from a document"""
    text: str
    label: Optional[str] = None  # display form of the label, if any
    subject: Optional[str] = None  # normalized label
    words: FrozenSet[str] = frozenset()
    numbers: FrozenSet[str] = frozenset()
    years: FrozenSet[int] = frozenset()
    negated: bool = False

    @property
    def is_labeled(self) -> bool:
        return self.subject is not None

    @property
    def topic(self) -> str:
        """Human-readable subject for reasons and summaries"""
        if self.label:
            return self.label
        return " ".join(self.text.split()[:6])

    @property
    def excerpt(self) -> str:
        return self.text[:EXCERPT_CHARS]


def content_words(text: str) -> FrozenSet[str]:
    return frozenset(
        w for w in _WORD.findall(text.lower())
        if len(w) > 2 and w not in STOPWORDS
    )


def _numbers(text: str) -> FrozenSet[str]:
    return frozenset(n.replace(",", "") for n in _NUMBER.findall(text))


def _make_statement(text: str, label: Optional[str] = None) -> Statement:
    return Statement(
        text=text,
        label=label,
        subject=" ".join(label.lower().split()) if label else None,
        words=content_words(text),
        numbers=_numbers(text),
        years=frozenset(int(y) for y in _YEAR.findall(text)),
        negated=bool(_NEGATION.search(text)),
    )


def _segments(content: str) -> List[str]:
    segments = []
    for line in content.splitlines():
        for part in _INLINE_SPLIT.split(line):
            part = part.strip()
            if part:
                segments.append(part)
    return segments


def extract_statements(content: str) -> List[Statement]:
    """Extract labeled and unlabeled statements, in document order."""
    statements: List[Statement] = []
    if not content:
        return statements

    for segment in _segments(content):
        body = _NUMBERING.sub("", segment)
        match = _LABELED.match(body)
        if match:
            label, value = match.group(1).strip(), match.group(2).strip()
            statements.append(_make_statement(value, label=label))
            continue

        for sentence in _SENTENCE_SPLIT.split(body):
            sentence = sentence.strip()
            if len(content_words(sentence)) >= MIN_CONTENT_WORDS:
                statements.append(_make_statement(sentence))

    return statements


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def same_subject(a: Statement, b: Statement) -> bool:
    if a.is_labeled and b.is_labeled:
        return a.subject == b.subject
    if a.is_labeled or b.is_labeled:
        return False
    return jaccard(a.words, b.words) >= SUBJECT_JACCARD


def conflict_kind(a: Statement, b: Statement) -> Optional[str]:
    """
    Classify how two same-subject statements disagree.

    Returns:
        "polarity", "numbers", or None when they agree
    """
    if not same_subject(a, b):
        return None
    if a.negated != b.negated:
        return "polarity"
    if a.numbers and b.numbers and a.numbers != b.numbers:
        return "numbers"
    return None


def find_conflicts(
    ours: List[Statement],
    theirs: List[Statement],
) -> List[Tuple[Statement, Statement, str]]:
    """Pairs (ours, theirs, kind) that disagree; each of ours reported once."""
    conflicts = []
    for mine in ours:
        for other in theirs:
            kind = conflict_kind(mine, other)
            if kind:
                conflicts.append((mine, other, kind))
                break
    return conflicts
