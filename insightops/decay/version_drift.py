"""
Version Drift Evaluator

Diffs the newest version of a document against the one before it. Flags
large rewrites and statements whose polarity was reversed, and produces
the "what changed" summary shown to reviewers.
"""

import difflib
from typing import List, Optional, Tuple

from ..common.config import DecayConfig
from ..common.schemas import Citation, Document, DocumentVersion, sort_versions
from .signals import DecaySignal
from .statements import extract_statements, find_conflicts

NAME = "version_drift"

MAX_SUMMARY_LINES = 3


def change_ratio(old: str, new: str) -> float:
    """Fraction of words changed between two texts, 0.0 (same) to 1.0."""
    matcher = difflib.SequenceMatcher(None, (old or "").split(), (new or "").split(), autojunk=False)
    return round(1.0 - matcher.ratio(), 2)


def changed_lines(old: str, new: str) -> Tuple[List[str], List[str]]:
    """(removed, added) non-blank lines between two texts."""
    old_lines = [line.strip() for line in (old or "").splitlines() if line.strip()]
    new_lines = [line.strip() for line in (new or "").splitlines() if line.strip()]

    removed, added = [], []
    for line in difflib.unified_diff(old_lines, new_lines, lineterm="", n=0):
        if line.startswith(("---", "+++", "@@")):
            continue
        if line.startswith("-"):
            removed.append(line[1:])
        elif line.startswith("+"):
            added.append(line[1:])
    return removed, added


def summarize_changes(
    old: DocumentVersion,
    new: DocumentVersion,
    ratio: float,
    reversed_topics: List[str],
) -> str:
    removed, added = changed_lines(old.content, new.content)
    parts = [
        f"Version {new.version_number} changed {round(ratio * 100)}% of the content "
        f"of version {old.version_number}."
    ]
    if removed:
        parts.append("Removed: " + "; ".join(removed[:MAX_SUMMARY_LINES]) + ".")
    if added:
        parts.append("Added: " + "; ".join(added[:MAX_SUMMARY_LINES]) + ".")
    if reversed_topics:
        parts.append("Reversed: " + ", ".join(reversed_topics) + ".")
    return " ".join(parts)


class VersionDriftEvaluator:
    """Magnitude and direction of change between the two newest versions."""

    name = NAME

    def __init__(self, config: Optional[DecayConfig] = None):
        self._config = config or DecayConfig()

    @property
    def weight(self) -> float:
        return self._config.weights.get(NAME, 0.0)

    def evaluate(
        self,
        document: Document,
        versions: List[DocumentVersion],
        siblings: List[Document],
    ) -> DecaySignal:
        ordered = sort_versions(versions)
        if len(ordered) < 2:
            return DecaySignal(name=NAME, detected=False, weight=self.weight, details={"summary": ""})

        new, old = ordered[0], ordered[1]
        ratio = change_ratio(old.content, new.content)

        reversals = [
            (mine, theirs)
            for mine, theirs, kind in find_conflicts(
                extract_statements(new.content), extract_statements(old.content)
            )
            if kind == "polarity"
        ]
        reversed_topics = [mine.topic for mine, _ in reversals]

        reasons = []
        if ratio >= self._config.drift_threshold:
            reasons.append(
                f"Version {new.version_number} changed {round(ratio * 100)}% of the content "
                f"of version {old.version_number}"
            )
        for mine, theirs in reversals:
            reasons.append(
                f"Version {new.version_number} reverses version {old.version_number} on {mine.topic}"
            )

        citations = []
        if reasons:
            citations = [
                Citation(document_id=document.id, title=document.title, version_number=old.version_number),
                Citation(document_id=document.id, title=document.title, version_number=new.version_number),
            ]

        return DecaySignal(
            name=NAME,
            detected=bool(reasons),
            weight=self.weight,
            reasons=reasons,
            citations=citations,
            details={
                "change_ratio": ratio,
                "summary": summarize_changes(old, new, ratio, reversed_topics),
                "from_version": old.version_number,
                "to_version": new.version_number,
            },
        )
