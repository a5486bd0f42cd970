"""
Data Model Module

Canonical transaction and rule types shared by every pipeline stage.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class CanonicalTransaction:
    """A transaction in the pipeline's uniform representation.

    ``amount`` is always a non-negative magnitude; direction lives in
    ``is_income`` only.
    """

    date: str
    description: str
    amount: Decimal = Decimal("0")
    is_income: bool = False
    vendor: str = ""
    original_vendor: str = ""
    category: str | None = None
    account: str | None = None
    reference: str | None = None
    notes: str | None = None
    hash: str | None = None
    is_duplicate: bool = False
    confidence: float = 1.0
    issues: list[str] = field(default_factory=list)
    source: str = "table"  # 'table' or 'extracted'
    raw_row: dict[str, str] = field(default_factory=dict)
    raw_text: str | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"amount must be a magnitude, got {self.amount}")
        if not self.original_vendor:
            self.original_vendor = self.description
        if not self.vendor:
            self.vendor = " ".join(self.description.split())

    def assign_hash(self, value: str) -> None:
        """Set the content fingerprint. A fingerprint is assigned once."""
        if self.hash is not None and self.hash != value:
            raise ValueError(f"Transaction {self.id} already has hash {self.hash}")
        self.hash = value

    def add_issue(self, issue: str) -> None:
        if issue not in self.issues:
            self.issues.append(issue)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with income positive and expenses negative."""
        return self.amount if self.is_income else -self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "description": self.description,
            "original_vendor": self.original_vendor,
            "vendor": self.vendor,
            "amount": float(self.amount),
            "is_income": self.is_income,
            "category": self.category,
            "account": self.account,
            "reference": self.reference,
            "notes": self.notes,
            "hash": self.hash,
            "is_duplicate": self.is_duplicate,
            "confidence": self.confidence,
            "issues": list(self.issues),
            "source": self.source,
        }


@dataclass
class NormalizationRule:
    """Maps noisy vendor text to a canonical vendor name."""

    pattern: str
    normalized_name: str
    confidence: float = 0.9
    is_regex: bool = False
    is_user_defined: bool = False
    use_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_used: datetime | None = None
    learned_from: str | None = None
    id: str = field(default_factory=_new_id)

    def mark_used(self) -> None:
        self.use_count += 1
        self.last_used = datetime.now()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pattern": self.pattern,
            "normalized_name": self.normalized_name,
            "confidence": self.confidence,
            "is_regex": self.is_regex,
            "is_user_defined": self.is_user_defined,
            "use_count": self.use_count,
            "created_at": self.created_at.isoformat(),
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "learned_from": self.learned_from,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NormalizationRule":
        return cls(
            id=str(data.get("id") or _new_id()),
            pattern=str(data["pattern"]),
            normalized_name=str(data["normalized_name"]),
            confidence=float(data.get("confidence", 0.9)),
            is_regex=bool(data.get("is_regex", False)),
            is_user_defined=bool(data.get("is_user_defined", False)),
            use_count=int(data.get("use_count", 0)),
            created_at=_parse_timestamp(data.get("created_at")) or datetime.now(),
            last_used=_parse_timestamp(data.get("last_used")),
            learned_from=data.get("learned_from"),
        )


@dataclass
class CategorizationRule:
    """Maps description patterns to a spending category.

    A rule matches when any one of its patterns matches.
    """

    name: str
    category: str
    patterns: list[str] = field(default_factory=list)
    is_regex: bool = False
    is_active: bool = True
    confidence: float = 0.8
    is_user_defined: bool = False
    use_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_used: datetime | None = None
    id: str = field(default_factory=_new_id)

    def mark_used(self) -> None:
        self.use_count += 1
        self.last_used = datetime.now()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "patterns": list(self.patterns),
            "is_regex": self.is_regex,
            "is_active": self.is_active,
            "confidence": self.confidence,
            "is_user_defined": self.is_user_defined,
            "use_count": self.use_count,
            "created_at": self.created_at.isoformat(),
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CategorizationRule":
        return cls(
            id=str(data.get("id") or _new_id()),
            name=str(data.get("name") or data["category"]),
            category=str(data["category"]),
            patterns=[str(p) for p in data.get("patterns", [])],
            is_regex=bool(data.get("is_regex", False)),
            is_active=data.get("is_active", True) is not False,
            confidence=float(data.get("confidence", 0.8)),
            is_user_defined=bool(data.get("is_user_defined", False)),
            use_count=int(data.get("use_count", 0)),
            created_at=_parse_timestamp(data.get("created_at")) or datetime.now(),
            last_used=_parse_timestamp(data.get("last_used")),
        )


@dataclass
class SeedRuleState:
    """Learned state of a seed rule, keyed by its id.

    Seed rule text always comes from config; only confidence changes from
    rejections and usage counts are saved.
    """

    id: str
    confidence: float
    use_count: int = 0
    last_used: datetime | None = None

    def apply_to(self, rule: NormalizationRule | CategorizationRule) -> None:
        rule.confidence = self.confidence
        rule.use_count = self.use_count
        rule.last_used = self.last_used

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "confidence": self.confidence,
            "use_count": self.use_count,
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SeedRuleState":
        return cls(
            id=str(data["id"]),
            confidence=float(data["confidence"]),
            use_count=int(data.get("use_count", 0)),
            last_used=_parse_timestamp(data.get("last_used")),
        )


@dataclass
class RuleSet:
    """User-taught rules as they cross the persistence boundary.

    ``vendor_seed_state`` and ``category_seed_state`` carry what users have
    taught the seed rules (rejection penalties and usage).
    """

    vendor_rules: list[NormalizationRule] = field(default_factory=list)
    category_rules: list[CategorizationRule] = field(default_factory=list)
    vendor_seed_state: list[SeedRuleState] = field(default_factory=list)
    category_seed_state: list[SeedRuleState] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "vendor_rules": [r.to_dict() for r in self.vendor_rules],
            "category_rules": [r.to_dict() for r in self.category_rules],
            "vendor_seed_state": [s.to_dict() for s in self.vendor_seed_state],
            "category_seed_state": [s.to_dict() for s in self.category_seed_state],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "RuleSet":
        data = data or {}
        return cls(
            vendor_rules=[
                NormalizationRule.from_dict(r) for r in data.get("vendor_rules") or []
            ],
            category_rules=[
                CategorizationRule.from_dict(r) for r in data.get("category_rules") or []
            ],
            vendor_seed_state=[
                SeedRuleState.from_dict(s) for s in data.get("vendor_seed_state") or []
            ],
            category_seed_state=[
                SeedRuleState.from_dict(s) for s in data.get("category_seed_state") or []
            ],
        )
