"""
Transaction Hasher Module

Content fingerprints for duplicate detection. Duplicates are annotated,
never removed; deleting one is a user decision made downstream.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from .field_mapper import parse_date
from .models import CanonicalTransaction

logger = logging.getLogger(__name__)

DESCRIPTION_HASH_LENGTH = 100

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s.-]")


@dataclass
class DuplicateReport:
    """Summary of duplicate flags over a batch."""

    total_transactions: int = 0
    unique_transactions: int = 0
    duplicate_transactions: int = 0
    duplicate_hashes: list[str] = field(default_factory=list)

    @property
    def duplicate_percentage(self) -> int:
        if self.total_transactions == 0:
            return 0
        return round(self.duplicate_transactions / self.total_transactions * 100)

    def to_dict(self) -> dict:
        return {
            "total_transactions": self.total_transactions,
            "unique_transactions": self.unique_transactions,
            "duplicate_transactions": self.duplicate_transactions,
            "duplicate_percentage": self.duplicate_percentage,
        }


class TransactionHasher:
    """Computes fingerprints and flags repeated transactions."""

    @staticmethod
    def normalize_date(value: str) -> str:
        if not value:
            return ""
        return parse_date(value)

    @staticmethod
    def normalize_amount(amount: Decimal) -> str:
        return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    @staticmethod
    def normalize_description(description: str) -> str:
        """Lower-case, collapse whitespace and drop punctuation.

        Only word characters, spaces, periods and hyphens are kept, and the
        result is capped to bound the hash input.
        """
        if not description:
            return ""
        text = _PUNCTUATION.sub("", description.lower())
        text = _WHITESPACE.sub(" ", text).strip()
        return text[:DESCRIPTION_HASH_LENGTH]

    def generate_hash(self, transaction: CanonicalTransaction) -> str:
        """Generate the SHA-1 fingerprint of a transaction.

        Args:
            transaction: Transaction to fingerprint

        Returns:
            40-character hex digest over normalized date, amount and description
        """
        data = (
            f"{self.normalize_date(transaction.date)}|"
            f"{self.normalize_amount(transaction.amount)}|"
            f"{self.normalize_description(transaction.description)}"
        )
        return hashlib.sha1(data.encode("utf-8")).hexdigest()

    def add_hashes(
        self,
        transactions: list[CanonicalTransaction]
    ) -> list[CanonicalTransaction]:
        """Hash a batch in order, flagging every repeat after the first.

        Args:
            transactions: Batch in source order

        Returns:
            The same transactions, hashed and flagged in place
        """
        return self.check_against_existing(transactions, set())

    def check_against_existing(
        self,
        transactions: list[CanonicalTransaction],
        existing_hashes: set[str]
    ) -> list[CanonicalTransaction]:
        """Flag transactions whose hash is already known.

        A transaction is a duplicate when its hash is in ``existing_hashes``
        (for example from prior imports) or appeared earlier in the batch.

        Args:
            transactions: Batch in source order
            existing_hashes: Hashes of previously imported transactions

        Returns:
            The same transactions, hashed and flagged in place
        """
        seen = set(existing_hashes)
        duplicates = 0

        for txn in transactions:
            txn.assign_hash(self.generate_hash(txn))
            txn.is_duplicate = txn.hash in seen
            if txn.is_duplicate:
                duplicates += 1
                txn.add_issue("possible_duplicate")
                logger.debug(f"Duplicate transaction {txn.id} ({txn.hash})")
            seen.add(txn.hash)

        logger.info(
            f"Hashed {len(transactions)} transactions, {duplicates} flagged as duplicates"
        )
        return transactions

    @staticmethod
    def unique_transactions(
        transactions: list[CanonicalTransaction]
    ) -> list[CanonicalTransaction]:
        """Return the first occurrence of each hash, in order."""
        seen: set[str] = set()
        unique = []
        for txn in transactions:
            if txn.hash not in seen:
                unique.append(txn)
                seen.add(txn.hash)
        return unique

    @staticmethod
    def group_by_duplicate_status(
        transactions: list[CanonicalTransaction]
    ) -> tuple[list[CanonicalTransaction], list[CanonicalTransaction]]:
        """Split into (unique, duplicates) by the ``is_duplicate`` flag."""
        unique = [t for t in transactions if not t.is_duplicate]
        duplicates = [t for t in transactions if t.is_duplicate]
        return unique, duplicates

    def duplicate_report(self, transactions: list[CanonicalTransaction]) -> DuplicateReport:
        unique, duplicates = self.group_by_duplicate_status(transactions)
        return DuplicateReport(
            total_transactions=len(transactions),
            unique_transactions=len(unique),
            duplicate_transactions=len(duplicates),
            duplicate_hashes=sorted({t.hash for t in duplicates if t.hash}),
        )
