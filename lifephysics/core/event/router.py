"""
Wildcard event-name matching for the EventBus.

Supported Patterns
------------------
- Exact:    "ledger.leveled_up"
- Global:   "*"
- Prefix:   "ledger.*" matches every ledger event
- Suffix:   "*.changed" matches "state.changed" (the suffix is literal, so
  not "ledger.currency_changed")
- Sandwich: "task.*.done"

Matching is case-sensitive. Repeated wildcards ("**") collapse to one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> EventRouter().matches("ledger.leveled_up", "ledger.*")
    True
    >>> EventRouter().matches("avatar.selected", "ledger.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        prefix, suffix = parts[0], parts[-1]

        if prefix and not event_name.startswith(prefix):
            return False
        if suffix and not event_name.endswith(suffix):
            return False
        if len(prefix) + len(suffix) > len(event_name):
            return False

        # Middle pieces must appear in order between prefix and suffix.
        idx = len(prefix)
        end = len(event_name) - len(suffix)
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, end)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
