"""
Auto-Categorizer Module

Suggests spending categories from transaction descriptions using seed and
user-taught pattern rules, with positive and negative feedback learning.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .models import CategorizationRule, SeedRuleState
from .rule_store import apply_seed_state, collect_seed_state
from .settings import DEFAULT_CONFIG_DIR, PipelineSettings
from .similarity import fuzzy_word_ratio

logger = logging.getLogger(__name__)

DEFAULT_STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "from", "up", "about", "into", "through", "during", "before", "after", "above",
    "below", "between", "among", "under", "over", "payment", "transaction", "purchase",
    "sale", "fee", "charge", "bill", "debit", "credit",
})

_DIGITS = re.compile(r"\d+")
_NON_WORD = re.compile(r"[^\w\s#]")
_UNDERSCORE = re.compile(r"_")


@dataclass
class CategoryCandidate:
    """A rule that matched a description, with its confidence."""

    category: str
    confidence: float
    rule: CategorizationRule

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "confidence": round(self.confidence, 4),
            "rule_id": self.rule.id,
        }


@dataclass
class CategorizationResult:
    """Category suggestion for one description."""

    original_description: str
    confidence: float = 0.0
    suggested_category: str | None = None
    matched_rule: CategorizationRule | None = None
    alternatives: list[CategoryCandidate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "original_description": self.original_description,
            "suggested_category": self.suggested_category,
            "confidence": round(self.confidence, 4),
            "rule_id": self.matched_rule.id if self.matched_rule else None,
            "alternatives": [a.to_dict() for a in self.alternatives],
        }


def load_category_config(
    config_dir: Path | str | None = None
) -> tuple[list[CategorizationRule], frozenset[str]]:
    """Load seed rules and learning stop words from ``category_rules.yaml``.

    Args:
        config_dir: Path to configuration directory

    Returns:
        Tuple of (seed rules, stop words)
    """
    config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
    rules_file = config_dir / "category_rules.yaml"

    if not rules_file.exists():
        logger.warning(f"Category rules file not found: {rules_file}")
        return [], DEFAULT_STOP_WORDS

    with open(rules_file) as f:
        data = yaml.safe_load(f) or {}

    rules = [
        CategorizationRule.from_dict({**entry, "is_user_defined": False})
        for entry in data.get("rules", [])
    ]
    stop_words = data.get("stop_words")
    logger.info(f"Loaded {len(rules)} seed category rules")
    return rules, frozenset(str(w) for w in stop_words) if stop_words else DEFAULT_STOP_WORDS


def normalize_description(description: str) -> str:
    """Lower-case, replace digit runs with '#', punctuation with spaces."""
    text = _DIGITS.sub("#", (description or "").lower())
    text = _NON_WORD.sub(" ", text)
    text = _UNDERSCORE.sub(" ", text)
    return " ".join(text.split())


def categorization_stats(results: list[CategorizationResult]) -> dict:
    """Counts for a categorized batch."""
    total = len(results)
    categorized = sum(1 for r in results if r.suggested_category)
    by_category: dict[str, int] = {}
    for result in results:
        if result.suggested_category:
            by_category[result.suggested_category] = by_category.get(result.suggested_category, 0) + 1

    return {
        "total": total,
        "categorized": categorized,
        "uncategorized": total - categorized,
        "by_category": by_category,
        "categorization_rate": categorized / total if total > 0 else 0,
    }


class AutoCategorizer:
    """Rule-based category suggestion with online learning."""

    def __init__(
        self,
        rules: list[CategorizationRule] | None = None,
        categories: list[str] | None = None,
        config_dir: Path | str | None = None,
        settings: PipelineSettings | None = None,
        include_seed_rules: bool = True
    ):
        """Initialize the categorizer.

        Args:
            rules: User-defined rules to start with
            categories: The user's category names; empty means unrestricted
            config_dir: Path to configuration directory holding seed rules
            settings: Threshold settings
            include_seed_rules: Whether to load seed rules from config
        """
        self.settings = settings or PipelineSettings()
        if include_seed_rules:
            seed_rules, self._stop_words = load_category_config(config_dir)
        else:
            seed_rules, self._stop_words = [], DEFAULT_STOP_WORDS
        self._rules: list[CategorizationRule] = seed_rules
        self._seed_confidence = {rule.id: rule.confidence for rule in seed_rules}
        self._categories: list[str] = list(categories or [])
        self._regex_cache: dict[str, re.Pattern | None] = {}
        if rules:
            self.import_rules(rules)

    @property
    def rules(self) -> list[CategorizationRule]:
        return list(self._rules)

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    def set_categories(self, categories: list[str]) -> None:
        self._categories = list(categories)

    def add_rule(
        self,
        name: str,
        category: str,
        patterns: list[str],
        is_regex: bool = False,
        confidence: float | None = None,
        is_user_defined: bool = True
    ) -> CategorizationRule:
        """Add a categorization rule and return it."""
        rule = CategorizationRule(
            name=name,
            category=category,
            patterns=list(patterns),
            is_regex=is_regex,
            confidence=confidence if confidence is not None else self.settings.learned_category_confidence,
            is_user_defined=is_user_defined,
        )
        self._rules.append(rule)
        return rule

    def update_rule(self, rule_id: str, **updates) -> CategorizationRule | None:
        """Update fields of a rule; returns None when the id is unknown."""
        for rule in self._rules:
            if rule.id == rule_id:
                for key, value in updates.items():
                    if key == "id" or not hasattr(rule, key):
                        raise ValueError(f"Cannot update rule field: {key}")
                    setattr(rule, key, value)
                return rule
        return None

    def remove_rule(self, rule_id: str) -> bool:
        initial = len(self._rules)
        self._rules = [rule for rule in self._rules if rule.id != rule_id]
        return len(self._rules) < initial

    def categorize(self, description: str) -> CategorizationResult:
        """Suggest a category for a transaction description.

        Args:
            description: Raw or vendor-normalized description

        Returns:
            CategorizationResult; no suggestion and confidence 0 when nothing matches
        """
        normalized = normalize_description(description)
        matches = []

        for rule in self._rules:
            if not rule.is_active:
                continue
            if self._categories and rule.category not in self._categories:
                continue

            confidence = self.match_confidence(normalized, rule, description)
            if confidence > 0:
                matches.append(CategoryCandidate(rule.category, confidence, rule))

        # User-taught rules first, then confidence, then proven rules
        matches.sort(
            key=lambda m: (not m.rule.is_user_defined, -m.confidence, -m.rule.use_count)
        )

        result = CategorizationResult(
            original_description=description,
            alternatives=matches[1:1 + self.settings.max_suggestions],
        )
        if matches:
            best = matches[0]
            best.rule.mark_used()
            result.suggested_category = best.category
            result.matched_rule = best.rule
            result.confidence = best.confidence

        return result

    def categorize_batch(self, descriptions: list[str]) -> list[CategorizationResult]:
        results = [self.categorize(description) for description in descriptions]
        stats = categorization_stats(results)
        logger.info(
            f"Categorized {stats['categorized']}/{stats['total']} descriptions"
        )
        return results

    def match_confidence(
        self,
        normalized: str,
        rule: CategorizationRule,
        raw: str | None = None
    ) -> float:
        """Best confidence over the rule's patterns for a normalized description."""
        best = 0.0

        for pattern in rule.patterns:
            confidence = 0.0

            if rule.is_regex:
                regex = self._compile(pattern)
                if regex and (regex.search(normalized) or (raw and regex.search(raw))):
                    confidence = rule.confidence
            else:
                normalized_pattern = normalize_description(pattern)
                if not normalized_pattern:
                    continue
                if normalized_pattern in normalized:
                    confidence = rule.confidence
                else:
                    ratio = fuzzy_word_ratio(
                        normalized, normalized_pattern, self.settings.fuzzy_word_threshold
                    )
                    if ratio > self.settings.min_word_match_ratio:
                        confidence = rule.confidence * ratio

            best = max(best, confidence)

        return best

    def learn_from_correction(
        self,
        description: str,
        correct_category: str,
        rejected_category: str | None = None
    ) -> CategorizationRule | None:
        """Learn that ``description`` belongs in ``correct_category``.

        Args:
            description: Transaction description the user categorized
            correct_category: Category the user chose
            rejected_category: Suggested category the user turned down

        Returns:
            The created or strengthened rule, or None when the category is
            not one of the user's categories
        """
        if self._categories and correct_category not in self._categories:
            logger.warning(
                f"Cannot learn correction: category {correct_category!r} "
                f"not in user categories"
            )
            return None

        normalized = normalize_description(description)
        if not normalized:
            logger.warning("Cannot learn correction from an empty description")
            return None

        patterns = self.extract_patterns(normalized)
        rule = self._find_user_rule(patterns, correct_category)

        if rule:
            rule.confidence = min(
                self.settings.max_learned_confidence,
                rule.confidence + self.settings.reinforcement_step,
            )
            rule.mark_used()
            logger.info(f"Strengthened category rule {rule.name!r} (confidence={rule.confidence:.2f})")
        else:
            rule = self.add_rule(
                name=f"Auto-learned: {patterns[0]}",
                category=correct_category,
                patterns=patterns,
                confidence=self.settings.learned_category_confidence,
                is_user_defined=True,
            )
            logger.info(f"Learned category rule {patterns} -> {correct_category!r}")

        if rejected_category and rejected_category != correct_category:
            self._penalize(normalized, rejected_category)

        return rule

    def extract_patterns(self, normalized: str) -> list[str]:
        """Significant words (up to three) and leading two-word phrases."""
        words = [word for word in normalized.split() if len(word) > 2]
        significant = [
            word for word in words
            if word not in self._stop_words and "#" not in word
        ]

        patterns = significant[:3]
        for index in range(min(len(significant) - 1, 2)):
            patterns.append(f"{significant[index]} {significant[index + 1]}")

        return patterns or [normalized]

    def export_rules(self) -> list[CategorizationRule]:
        """Copies of the user-defined rules, for the host to persist."""
        return [copy.deepcopy(rule) for rule in self._rules if rule.is_user_defined]

    def import_rules(self, rules: list[CategorizationRule]) -> None:
        """Replace all user-defined rules with ``rules``."""
        self._rules = [rule for rule in self._rules if not rule.is_user_defined]
        self._rules.extend(copy.deepcopy(rule) for rule in rules)
        logger.info(f"Imported {len(rules)} user category rules")

    def export_seed_state(self) -> list[SeedRuleState]:
        """Penalties and usage of the seed rules, which ``export_rules`` omits."""
        return collect_seed_state(self._rules, self._seed_confidence)

    def import_seed_state(self, states: list[SeedRuleState]) -> None:
        """Restore saved seed rule state; ids no longer in config are skipped."""
        applied = apply_seed_state(self._rules, states)
        logger.info(f"Restored state of {applied} seed category rules")

    def _penalize(self, normalized: str, rejected_category: str) -> None:
        """Lower the confidence of the rule behind a rejected suggestion.

        Seed rules lose less and keep a higher floor than user rules.
        """
        for rule in self._rules:
            if rule.category != rejected_category:
                continue
            if self.match_confidence(normalized, rule) <= self.settings.rejection_match_threshold:
                continue

            if rule.is_user_defined:
                rule.confidence = max(
                    self.settings.rejection_floor_user,
                    rule.confidence - self.settings.rejection_penalty_user,
                )
            else:
                rule.confidence = max(
                    self.settings.rejection_floor_seed,
                    rule.confidence - self.settings.rejection_penalty_seed,
                )
            logger.info(
                f"Penalized category rule {rule.name!r} (confidence={rule.confidence:.2f})"
            )
            return

    def _find_user_rule(self, patterns: list[str], category: str) -> CategorizationRule | None:
        for rule in self._rules:
            if not rule.is_user_defined or rule.category != category:
                continue
            for rule_pattern in rule.patterns:
                existing = rule_pattern.lower()
                if any(p in existing or existing in p for p in patterns):
                    return rule
        return None

    def _compile(self, pattern: str) -> re.Pattern | None:
        if pattern not in self._regex_cache:
            try:
                self._regex_cache[pattern] = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                logger.warning(f"Skipping invalid category regex {pattern!r}: {e}")
                self._regex_cache[pattern] = None
        return self._regex_cache[pattern]
