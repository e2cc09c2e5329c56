"""Detect which dynamic-option fields need a fresh lookup after an edit."""

from __future__ import annotations

from typing import Iterable, Mapping

from insurance_forms.schema import ChoiceField


def fields_invalidated(
    dynamic_fields: Iterable[ChoiceField],
    previous: Mapping[str, str],
    current: Mapping[str, str],
) -> set[str]:
    """Ids of dynamic fields whose controlling answer changed in any way."""
    return {
        f.id
        for f in dynamic_fields
        if f.dynamic_options is not None
        and previous.get(f.dynamic_options.depends_on) != current.get(f.dynamic_options.depends_on)
    }


def fields_needing_refresh(
    dynamic_fields: Iterable[ChoiceField],
    previous: Mapping[str, str],
    current: Mapping[str, str],
) -> set[str]:
    """Ids of dynamic fields whose controlling answer changed to a non-empty value.

    Clearing the controlling field never triggers a lookup.
    """
    dynamic_fields = list(dynamic_fields)
    changed = fields_invalidated(dynamic_fields, previous, current)
    return {
        f.id
        for f in dynamic_fields
        if f.id in changed and current.get(f.dynamic_options.depends_on)
    }


class DependencyTracker:
    """Diff successive answer snapshots for a fixed set of dynamic fields.

    The baseline is the snapshot from the previous ``check`` call, so each
    check only reports fields affected since the last one.
    """

    def __init__(self, dynamic_fields: Iterable[ChoiceField]):
        self.dynamic_fields = list(dynamic_fields)
        self._baseline: dict[str, str] = {}

    @property
    def baseline(self) -> dict[str, str]:
        return dict(self._baseline)

    def check(self, current: Mapping[str, str]) -> tuple[set[str], set[str]]:
        """Return ``(needs_refresh, invalidated)`` and advance the baseline."""
        invalidated = fields_invalidated(self.dynamic_fields, self._baseline, current)
        refresh = fields_needing_refresh(self.dynamic_fields, self._baseline, current)
        self._baseline = dict(current)
        return refresh, invalidated

    def reset(self) -> None:
        self._baseline = {}
