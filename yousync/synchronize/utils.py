"""Contains utility functions for synchronization actions."""

from typing import Any, Sequence

from yousync.synchronize.models import SyncDecision
from yousync.synchronize.types import NamedLabel, SourceLabel


async def compare_field(snapshot_value: Any, current_value: Any) -> SyncDecision:
    """Compare a snapshot field and a current source field, and decide whether to update or no-op.

    Comparison is exact: any byte-level difference, including None versus an empty
    string, counts as a change.
    """
    if snapshot_value == current_value and type(snapshot_value) is type(current_value):
        return SyncDecision.NOOP
    return SyncDecision.UPDATE


def extract_label_names(labels: Sequence[SourceLabel]) -> list[str]:
    """Extract label names from a list of GitHub label objects, strings, or dicts.

    Source order is kept and duplicates are dropped.
    """
    names: list[str] = []
    for label in labels:
        name: str | None = None
        if isinstance(label, str):
            name = label
        elif isinstance(label, dict) and "name" in label:
            name = label["name"]
        elif isinstance(label, NamedLabel):
            name = label.name
        if name is not None and name not in names:
            names.append(name)
    return names


async def compare_label_sets(snapshot_labels: Sequence[str] | None, current_labels: Sequence[str] | None) -> SyncDecision:
    """Compare two sets of labels, return NOOP if they match as sets, UPDATE otherwise."""
    snapshot_set = set(snapshot_labels or [])
    current_set = set(current_labels or [])
    if snapshot_set == current_set:
        return SyncDecision.NOOP
    return SyncDecision.UPDATE
