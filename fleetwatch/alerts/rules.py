"""RuleBook — the in-memory set of active alert rules."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from fleetwatch.alerts.exceptions import RuleValidationError
from fleetwatch.core.types import AlertRule, Metric

WILDCARD = "*"


class RuleBook:
    """Alert rules keyed by ``(target, metric)``.

    Setting a rule whose key already exists replaces it. Changes are held in
    memory only; :meth:`reset` restores the rules the book was built with.
    """

    def __init__(self, rules: Iterable[AlertRule] | None = None) -> None:
        self._defaults = list(rules or [])
        self._rules: dict[tuple[str, str], AlertRule] = {}
        self._lock = threading.Lock()
        self.reset()

    def list_rules(self) -> list[AlertRule]:
        with self._lock:
            return list(self._rules.values())

    def get(self, metric: Metric | str, target: str = WILDCARD) -> AlertRule | None:
        with self._lock:
            return self._rules.get((target, str(metric)))

    def set_rule(self, config: AlertRule | Mapping[str, Any]) -> AlertRule:
        """Validate *config* and store it, replacing any rule with the same key.

        Raises:
            RuleValidationError: *config* is not a valid rule.
        """
        try:
            if isinstance(config, AlertRule):
                rule = AlertRule.model_validate(config.model_dump())
            else:
                rule = AlertRule.model_validate(dict(config))
        except ValidationError as exc:
            raise RuleValidationError(
                f"Invalid alert rule: {exc.error_count()} error(s)",
                errors=exc.errors(include_url=False),
            ) from exc
        except TypeError as exc:
            raise RuleValidationError(f"Invalid alert rule: {exc}") from exc

        with self._lock:
            self._rules[rule.key] = rule
        return rule

    def remove(self, metric: Metric | str, target: str = WILDCARD) -> bool:
        with self._lock:
            return self._rules.pop((target, str(metric)), None) is not None

    def reset(self) -> None:
        with self._lock:
            self._rules = {rule.key: rule for rule in self._defaults}

    def effective_for(self, asset_id: str) -> list[AlertRule]:
        """Rules that apply to *asset_id*, one per metric.

        A rule targeting the asset directly overrides the wildcard rule for
        the same metric.
        """
        with self._lock:
            rules = list(self._rules.values())
        return resolve_effective(rules, asset_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)


def resolve_effective(rules: Iterable[AlertRule], asset_id: str) -> list[AlertRule]:
    """Pick at most one matching rule per metric, preferring a specific target."""
    chosen: dict[str, AlertRule] = {}
    for rule in rules:
        if not rule.matches(asset_id):
            continue
        current = chosen.get(rule.metric.value)
        if current is None or (current.target == WILDCARD and rule.target != WILDCARD):
            chosen[rule.metric.value] = rule
    return list(chosen.values())
