"""Insight merging with exact-match deduplication.

Insights only ever grow within a session: each dialogue turn returns a partial
Insights value that is union-merged into the accumulated one.
"""

from typing import Iterable, Mapping, Optional, Union

from ivy_guide.models.conversation import Insights

INSIGHT_FIELDS = ("interests", "strengths", "constraints", "career_clusters")

IncomingInsights = Union[Insights, Mapping[str, Optional[Iterable[str]]], None]


def _union(existing: list[str], incoming: Iterable[str]) -> list[str]:
    """Ordered, case-sensitive set union; first occurrence wins."""
    merged: list[str] = []
    seen: set[str] = set()
    for item in [*existing, *incoming]:
        if item in seen:
            continue
        seen.add(item)
        merged.append(item)
    return merged


def _coerce(incoming: IncomingInsights) -> Insights:
    """Turn a partial insight payload into a total Insights value.

    Missing or null fields count as empty. Both snake_case and the camelCase
    wire name ``careerClusters`` are accepted for mappings.
    """
    if incoming is None:
        return Insights()
    if isinstance(incoming, Insights):
        return incoming
    cleaned = {key: list(value) for key, value in incoming.items() if value is not None}
    return Insights.model_validate(cleaned)


def merge_insights(existing: Insights, incoming: IncomingInsights) -> Insights:
    """Union-merge ``incoming`` into ``existing`` and return a new Insights.

    Total and pure: never raises for well-formed input, never mutates either
    argument, and merging the same payload twice equals merging it once.

    Args:
        existing: Insights accumulated so far
        incoming: Partial insights returned by the dialogue service

    Returns:
        New Insights whose every set is existing | incoming
    """
    partial = _coerce(incoming)
    return Insights(
        **{
            field: _union(getattr(existing, field), getattr(partial, field))
            for field in INSIGHT_FIELDS
        }
    )
