"""
Rule Store Module

Persistence boundary for user-taught vendor and category rules. Engines
hold rules in memory for a batch; repositories load and save them as a
RuleSet.
"""

import copy
import logging
from pathlib import Path
from typing import Protocol

import yaml

from .models import CategorizationRule, NormalizationRule, RuleSet, SeedRuleState

logger = logging.getLogger(__name__)


def collect_seed_state(
    rules: list[NormalizationRule] | list[CategorizationRule],
    seed_confidence: dict[str, float]
) -> list[SeedRuleState]:
    """State of the seed rules that have been used or re-weighted.

    Args:
        rules: An engine's rule list, seed and user rules mixed
        seed_confidence: Confidence of each seed rule as loaded from config
    """
    return [
        SeedRuleState(rule.id, rule.confidence, rule.use_count, rule.last_used)
        for rule in rules
        if not rule.is_user_defined
        and (rule.use_count or rule.confidence != seed_confidence.get(rule.id))
    ]


def apply_seed_state(
    rules: list[NormalizationRule] | list[CategorizationRule],
    states: list[SeedRuleState]
) -> int:
    """Restore saved seed rule state by id; returns how many rules matched."""
    seeds = {rule.id: rule for rule in rules if not rule.is_user_defined}
    applied = 0
    for state in states:
        rule = seeds.get(state.id)
        if rule is None:
            logger.debug(f"No seed rule {state.id!r}, skipping saved state")
            continue
        state.apply_to(rule)
        applied += 1
    return applied


class RuleRepository(Protocol):
    """Loads and saves the user's rule set."""

    def load_rules(self) -> RuleSet:
        ...

    def save_rules(self, rules: RuleSet) -> None:
        ...


class InMemoryRuleRepository:
    """Keeps rules in process memory. Used by tests and single-shot imports."""

    def __init__(self, rules: RuleSet | None = None):
        self._rules = copy.deepcopy(rules) if rules else RuleSet()

    def load_rules(self) -> RuleSet:
        return copy.deepcopy(self._rules)

    def save_rules(self, rules: RuleSet) -> None:
        self._rules = copy.deepcopy(rules)


class YamlRuleRepository:
    """Stores rules in a YAML file in the same shape as the seed configs."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load_rules(self) -> RuleSet:
        """Load rules from the file.

        Returns:
            RuleSet, empty when the file does not exist yet

        Raises:
            ValueError: If the file is not valid YAML
        """
        if not self.path.exists():
            logger.info(f"No rules file at {self.path}, starting empty")
            return RuleSet()

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid rules file {self.path}: {e}") from e

        rules = RuleSet.from_dict(data)
        logger.info(
            f"Loaded {len(rules.vendor_rules)} vendor and "
            f"{len(rules.category_rules)} category rules from {self.path}"
        )
        return rules

    def save_rules(self, rules: RuleSet) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(rules.to_dict(), f, sort_keys=False, allow_unicode=True)
        logger.info(
            f"Saved {len(rules.vendor_rules)} vendor and "
            f"{len(rules.category_rules)} category rules to {self.path}"
        )
