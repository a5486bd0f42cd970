"""
Vendor Normalizer Module

Maps noisy statement text to a stable vendor name using seed and
user-taught rules, and learns from user corrections.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .models import NormalizationRule, SeedRuleState
from .rule_store import apply_seed_state, collect_seed_state
from .settings import DEFAULT_CONFIG_DIR, PipelineSettings
from .similarity import token_overlap

logger = logging.getLogger(__name__)

# Pre-cleaning steps, applied in order
BANKING_PREFIX = re.compile(r"^(SQ \*|TST\*|PAYPAL \*|POS |DDA |ATM )", re.IGNORECASE)
INLINE_CODE = re.compile(r"\s*[#*]\s*\w+")
LOCATION_CODE = re.compile(r"\s*\([^)]*\)")
TRAILING_ID = re.compile(r"\s+(?=\w*\d)\w{10,}$")
TRAILING_DATE = re.compile(r"\s+\d{1,2}/\d{1,2}$")

# User rules within this margin of the best score win over seed rules
SIMILAR_SCORE_MARGIN = 0.1


@dataclass
class VendorCandidate:
    """A rule that matched, with its score."""

    name: str
    confidence: float
    rule: NormalizationRule

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "confidence": round(self.confidence, 4),
            "rule_id": self.rule.id,
        }


@dataclass
class NormalizationResult:
    """Outcome of normalizing one vendor string."""

    original_name: str
    normalized_name: str
    confidence: float
    rule: NormalizationRule | None = None
    suggestions: list[VendorCandidate] = field(default_factory=list)
    needs_review: bool = True

    @property
    def matched(self) -> bool:
        """False when no rule matched and the cleaned text was used as-is."""
        return self.rule is not None

    def to_dict(self) -> dict:
        return {
            "original_name": self.original_name,
            "normalized_name": self.normalized_name,
            "confidence": round(self.confidence, 4),
            "rule_id": self.rule.id if self.rule else None,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "needs_review": self.needs_review,
        }


def load_vendor_config(config_dir: Path | str | None = None) -> tuple[list[NormalizationRule], list[dict]]:
    """Load seed rules and common suggestions from ``vendor_rules.yaml``.

    Args:
        config_dir: Path to configuration directory

    Returns:
        Tuple of (seed rules, common suggestion mappings)
    """
    config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
    rules_file = config_dir / "vendor_rules.yaml"

    if not rules_file.exists():
        logger.warning(f"Vendor rules file not found: {rules_file}")
        return [], []

    with open(rules_file) as f:
        data = yaml.safe_load(f) or {}

    rules = [
        NormalizationRule.from_dict({**entry, "is_user_defined": False})
        for entry in data.get("rules", [])
    ]
    logger.info(f"Loaded {len(rules)} seed vendor rules")
    return rules, list(data.get("common_suggestions", []))


def pre_clean(name: str) -> str:
    """Strip banking prefixes, transaction codes, location codes and dates.

    Falls back to the input when cleaning would leave nothing.
    """
    cleaned = BANKING_PREFIX.sub("", name.strip(), count=1)
    cleaned = INLINE_CODE.sub("", cleaned)
    cleaned = LOCATION_CODE.sub("", cleaned, count=1)
    cleaned = TRAILING_ID.sub("", cleaned)
    cleaned = TRAILING_DATE.sub("", cleaned)
    cleaned = " ".join(cleaned.split())
    return cleaned or name


class VendorNormalizer:
    """Rule-based vendor name normalization with online learning."""

    def __init__(
        self,
        rules: list[NormalizationRule] | None = None,
        config_dir: Path | str | None = None,
        settings: PipelineSettings | None = None,
        include_seed_rules: bool = True
    ):
        """Initialize the normalizer.

        Args:
            rules: User-defined rules to start with
            config_dir: Path to configuration directory holding seed rules
            settings: Threshold settings
            include_seed_rules: Whether to load seed rules from config
        """
        self.settings = settings or PipelineSettings()
        seed_rules, self._common_suggestions = (
            load_vendor_config(config_dir) if include_seed_rules else ([], [])
        )
        self._rules: list[NormalizationRule] = seed_rules
        self._seed_confidence = {rule.id: rule.confidence for rule in seed_rules}
        self._regex_cache: dict[str, re.Pattern | None] = {}
        if rules:
            self.import_rules(rules)

    @property
    def rules(self) -> list[NormalizationRule]:
        return list(self._rules)

    def normalize(self, original_name: str) -> NormalizationResult:
        """Normalize a vendor name.

        Args:
            original_name: Raw vendor or description text

        Returns:
            NormalizationResult; the cleaned text itself when no rule matches
        """
        cleaned = pre_clean(original_name or "")
        ranked = self._rank(self._find_matches(cleaned, original_name or ""))

        if not ranked:
            return NormalizationResult(
                original_name=original_name,
                normalized_name=cleaned,
                confidence=self.settings.fallback_vendor_confidence,
                needs_review=True,
            )

        best = ranked[0]
        best.rule.mark_used()

        return NormalizationResult(
            original_name=original_name,
            normalized_name=best.name,
            confidence=best.confidence,
            rule=best.rule,
            suggestions=ranked[1:1 + self.settings.max_suggestions],
            needs_review=(
                best.confidence < self.settings.review_threshold
                or not best.rule.is_user_defined
            ),
        )

    def normalize_batch(self, names: list[str]) -> list[NormalizationResult]:
        return [self.normalize(name) for name in names]

    def learn_from_correction(self, original_name: str, corrected_name: str) -> NormalizationRule:
        """Teach the normalizer that ``original_name`` means ``corrected_name``.

        An existing user rule for the same text is strengthened; otherwise a
        literal rule is created from the first significant word.

        Args:
            original_name: Raw vendor text the user corrected
            corrected_name: Vendor name the user chose

        Returns:
            The created or strengthened rule
        """
        corrected_name = corrected_name.strip()
        if not corrected_name:
            raise ValueError("Corrected vendor name must not be empty")

        cleaned = pre_clean(original_name)
        cleaned_lower = cleaned.lower()
        existing = self._find_user_rule(cleaned_lower, corrected_name)

        if existing:
            if existing.normalized_name.lower() != corrected_name.lower():
                existing.normalized_name = corrected_name
                existing.confidence = self.settings.learned_vendor_confidence
                logger.info(f"Re-taught vendor rule {existing.pattern!r} -> {corrected_name!r}")
            else:
                existing.confidence = min(
                    self.settings.max_learned_confidence,
                    existing.confidence + self.settings.reinforcement_step,
                )
                logger.info(
                    f"Strengthened vendor rule {existing.pattern!r} "
                    f"(confidence={existing.confidence:.2f})"
                )
            existing.mark_used()
            return existing

        significant = [part for part in cleaned.split() if len(part) > 2]
        rule = NormalizationRule(
            pattern=(significant[0] if significant else cleaned).lower(),
            normalized_name=corrected_name,
            confidence=self.settings.learned_vendor_confidence,
            is_regex=False,
            is_user_defined=True,
            learned_from=cleaned_lower,
        )
        rule.mark_used()
        self._rules.append(rule)

        logger.info(f"Learned vendor rule {rule.pattern!r} -> {corrected_name!r}")
        return rule

    def suggestions_for(self, original_name: str, limit: int = 5) -> list[dict]:
        """Alternative names for a vendor that needs review."""
        result = self.normalize(original_name)
        suggestions = [
            {"name": s.name, "confidence": s.confidence}
            for s in result.suggestions
        ]

        name_lower = original_name.lower()
        for mapping in self._common_suggestions:
            if mapping["pattern"] in name_lower:
                suggestions.append({
                    "name": mapping["suggestion"],
                    "confidence": float(mapping.get("confidence", 0.9)),
                })

        return suggestions[:limit]

    def export_rules(self) -> list[NormalizationRule]:
        """Copies of the user-defined rules, for the host to persist."""
        return [copy.deepcopy(rule) for rule in self._rules if rule.is_user_defined]

    def import_rules(self, rules: list[NormalizationRule]) -> None:
        """Replace all user-defined rules with ``rules``."""
        self._rules = [rule for rule in self._rules if not rule.is_user_defined]
        self._rules.extend(copy.deepcopy(rule) for rule in rules)
        logger.info(f"Imported {len(rules)} user vendor rules")

    def export_seed_state(self) -> list[SeedRuleState]:
        """Usage of the seed rules, for the host to persist with user rules."""
        return collect_seed_state(self._rules, self._seed_confidence)

    def import_seed_state(self, states: list[SeedRuleState]) -> None:
        applied = apply_seed_state(self._rules, states)
        logger.info(f"Restored state of {applied} seed vendor rules")

    def _compile(self, pattern: str) -> re.Pattern | None:
        if pattern not in self._regex_cache:
            try:
                self._regex_cache[pattern] = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                logger.warning(f"Skipping invalid vendor regex {pattern!r}: {e}")
                self._regex_cache[pattern] = None
        return self._regex_cache[pattern]

    def _score(self, rule: NormalizationRule, cleaned: str, original: str) -> float:
        if rule.is_regex:
            regex = self._compile(rule.pattern)
            if regex and (regex.search(cleaned) or regex.search(original.strip())):
                return rule.confidence
            return 0.0

        name = cleaned.lower()
        pattern = rule.pattern.lower()
        if not pattern or not name:
            return 0.0

        if name == pattern or name == rule.learned_from:
            return min(rule.confidence + self.settings.exact_match_bonus, 1.0)

        if pattern in name or name in pattern:
            overlap = min(len(pattern), len(name)) / max(len(pattern), len(name))
            return rule.confidence * overlap

        similarity = token_overlap(name, pattern)
        if similarity > self.settings.word_similarity_threshold:
            return rule.confidence * similarity

        return 0.0

    def _find_matches(self, cleaned: str, original: str) -> list[VendorCandidate]:
        matches = []
        for rule in self._rules:
            score = self._score(rule, cleaned, original)
            if score > self.settings.min_match_score:
                matches.append(VendorCandidate(rule.normalized_name, score, rule))
        return matches

    @staticmethod
    def _rank(matches: list[VendorCandidate]) -> list[VendorCandidate]:
        """Order by score, then proven rules; promote a close user rule."""
        ranked = sorted(
            matches,
            key=lambda m: (-m.confidence, -m.rule.use_count, not m.rule.is_user_defined),
        )
        if ranked and not ranked[0].rule.is_user_defined:
            floor = ranked[0].confidence - SIMILAR_SCORE_MARGIN
            for index, candidate in enumerate(ranked):
                if candidate.rule.is_user_defined and candidate.confidence >= floor:
                    ranked.insert(0, ranked.pop(index))
                    break
        return ranked

    def _find_user_rule(self, cleaned_lower: str, corrected_name: str) -> NormalizationRule | None:
        for rule in self._rules:
            if rule.is_user_defined and rule.learned_from == cleaned_lower:
                return rule

        corrected_lower = corrected_name.lower()
        for rule in self._rules:
            if (
                rule.is_user_defined
                and not rule.is_regex
                and rule.normalized_name.lower() == corrected_lower
                and rule.pattern.lower() in cleaned_lower
            ):
                return rule

        return None
