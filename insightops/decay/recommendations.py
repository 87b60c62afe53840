"""Update recommendations derived from detected decay signals."""

from typing import List

from ..common.schemas import Document
from .signals import DecaySignal


def _freshness(document: Document, signal: DecaySignal) -> List[str]:
    if signal.details.get("expired"):
        return [f'Replace or re-approve "{document.title}": its declared effective period has ended.']
    return [f'Review "{document.title}" and confirm it is still accurate; it is past its expected validity window.']


def _contradiction(document: Document, signal: DecaySignal) -> List[str]:
    recommendations = []
    for citation in signal.citations:
        if citation.document_id == document.id and citation.version_number is not None:
            recommendations.append(
                f"Confirm the current wording supersedes version {citation.version_number} "
                f"and retire the outdated statements."
            )
        else:
            recommendations.append(
                f'Reconcile conflicting statements with "{citation.title or citation.document_id}".'
            )
    return recommendations


def _version_drift(document: Document, signal: DecaySignal) -> List[str]:
    to_version = signal.details.get("to_version")
    from_version = signal.details.get("from_version")
    return [
        f"Propagate the changes in version {to_version} to documents and teams "
        f"that still rely on version {from_version}."
    ]


_BUILDERS = {
    "freshness": _freshness,
    "contradiction": _contradiction,
    "version_drift": _version_drift,
}


def build_recommendations(document: Document, signals: List[DecaySignal]) -> List[str]:
    """One or more actions per detected signal, deduplicated, in evaluator order."""
    recommendations: List[str] = []
    for signal in signals:
        if not signal.detected or signal.name not in _BUILDERS:
            continue
        for item in _BUILDERS[signal.name](document, signal):
            if item not in recommendations:
                recommendations.append(item)
    return recommendations
