"""Bucketing engine — bound an arbitrary dictionary to top-K plus "other".

The single-dictionary algorithm:

1. ``total`` = sum of values; a zero total yields an empty dataset.
2. Items below ``inclusion_threshold * total`` are small and fold into "other".
3. The remaining items are sorted descending; the first ``max_visible`` are
   shown and the overflow folds into "other".
4. "other" is appended last when it is positive and either the cap truncated
   visible items or it reaches ``display_threshold`` of the total.

Stacked variants apply the same ranking to per-key totals across stacks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from ..models import BucketedDataset, BucketEntry, StackedDataset
from ..parsing import to_float

DEFAULT_INCLUSION_THRESHOLD = 0.005
DEFAULT_DISPLAY_THRESHOLD = 0.00005
DEFAULT_MAX_VISIBLE = 5
DEFAULT_OTHER_LABEL = "other"


@dataclass(frozen=True)
class _Selection:
    visible: tuple[str, ...]
    folded: tuple[str, ...]
    show_other: bool


def _select(
    ranking: Mapping[str, float],
    total: float,
    inclusion_threshold: float,
    display_threshold: float,
    max_visible: int,
) -> _Selection:
    """Pick visible keys from non-negative ranking weights."""
    if max_visible < 1:
        raise ValueError("max_visible must be at least 1")

    threshold = total * inclusion_threshold
    large = [(k, v) for k, v in ranking.items() if v >= threshold]
    small = [k for k, v in ranking.items() if v < threshold]

    # Stable sort keeps input order among ties.
    large.sort(key=lambda item: item[1], reverse=True)
    visible = tuple(k for k, _ in large[:max_visible])
    overflow = tuple(k for k, _ in large[max_visible:])

    other_weight = sum(ranking[k] for k in small) + sum(ranking[k] for k in overflow)
    truncated = bool(overflow)
    show_other = other_weight > 0 and (
        truncated or other_weight / total >= display_threshold
    )
    return _Selection(visible=visible, folded=tuple(small) + overflow, show_other=show_other)


def bucket_values(
    values: Mapping[str, object] | None,
    inclusion_threshold: float = DEFAULT_INCLUSION_THRESHOLD,
    display_threshold: float = DEFAULT_DISPLAY_THRESHOLD,
    max_visible: int = DEFAULT_MAX_VISIBLE,
    other_label: str = DEFAULT_OTHER_LABEL,
) -> BucketedDataset:
    """Bucket a value dictionary into at most ``max_visible + 1`` entries."""
    if not values:
        return BucketedDataset(other_label=other_label)

    parsed = {key: to_float(value) for key, value in values.items()}
    total = sum(parsed.values())
    if total <= 0:
        return BucketedDataset(other_label=other_label)

    selection = _select(
        parsed, total, inclusion_threshold, display_threshold, max_visible
    )
    entries = [
        BucketEntry(label=key, value=parsed[key], share=parsed[key] / total)
        for key in selection.visible
    ]
    if selection.show_other:
        other_value = sum(parsed[k] for k in selection.folded)
        entries.append(
            BucketEntry(label=other_label, value=other_value, share=other_value / total)
        )
    return BucketedDataset(entries=tuple(entries), total=total, other_label=other_label)


def _bucket_stacks(
    series: Mapping[str, Sequence[object]],
    stack_labels: Sequence[str],
    by_magnitude: bool,
    inclusion_threshold: float,
    display_threshold: float,
    max_visible: int,
    other_label: str,
) -> StackedDataset:
    size = len(stack_labels)
    parsed: dict[str, list[float]] = {}
    for key, values in series.items():
        if len(values) != size:
            raise ValueError(
                f"Series '{key}' has {len(values)} values, expected {size}"
            )
        parsed[key] = [to_float(v) for v in values]

    if by_magnitude:
        ranking = {k: sum(abs(v) for v in vs) for k, vs in parsed.items()}
    else:
        ranking = {k: sum(vs) for k, vs in parsed.items()}
    weight_total = sum(ranking.values())
    if not parsed or weight_total <= 0:
        return StackedDataset(stack_labels=tuple(stack_labels), other_label=other_label)

    selection = _select(
        ranking, weight_total, inclusion_threshold, display_threshold, max_visible
    )
    keys = selection.visible + ((other_label,) if selection.show_other else ())

    rows: list[dict[str, float]] = []
    for index in range(size):
        row = {key: parsed[key][index] for key in selection.visible}
        if selection.show_other:
            row[other_label] = sum(parsed[k][index] for k in selection.folded)
        rows.append(row)

    total = sum(sum(vs) for vs in parsed.values())
    return StackedDataset(
        keys=keys,
        stack_labels=tuple(stack_labels),
        rows=tuple(rows),
        total=total,
        other_label=other_label,
    )


def bucket_series(
    series: Mapping[str, Sequence[object]],
    stack_labels: Sequence[str],
    inclusion_threshold: float = DEFAULT_INCLUSION_THRESHOLD,
    display_threshold: float = DEFAULT_DISPLAY_THRESHOLD,
    max_visible: int = DEFAULT_MAX_VISIBLE,
    other_label: str = DEFAULT_OTHER_LABEL,
) -> StackedDataset:
    """Bucket a comparison series, ranking each key by its total across stacks."""
    return _bucket_stacks(
        series, stack_labels, False,
        inclusion_threshold, display_threshold, max_visible, other_label,
    )


def bucket_series_by_sign(
    series: Mapping[str, Sequence[object]],
    stack_labels: Sequence[str],
    inclusion_threshold: float = DEFAULT_INCLUSION_THRESHOLD,
    display_threshold: float = DEFAULT_DISPLAY_THRESHOLD,
    max_visible: int = DEFAULT_MAX_VISIBLE,
    other_label: str = DEFAULT_OTHER_LABEL,
) -> StackedDataset:
    """Sign-aware variant for diverging stacks (e.g. net flows).

    Keys are ranked by the sum of absolute values across all stacks, so a key
    that alternates sign still ranks by its overall contribution. "other"
    carries the signed sum of folded keys per stack.
    """
    return _bucket_stacks(
        series, stack_labels, True,
        inclusion_threshold, display_threshold, max_visible, other_label,
    )
