"""
Pytest configuration and fixtures for statement import tests.
"""

import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from statement_import import (  # noqa: E402
    AutoCategorizer,
    CanonicalTransaction,
    ImportPipeline,
    InMemoryRuleRepository,
    PipelineSettings,
    VendorNormalizer,
)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def normalizer(config_dir: Path) -> VendorNormalizer:
    """Vendor normalizer with the bundled seed rules."""
    return VendorNormalizer(config_dir=config_dir)


@pytest.fixture
def categorizer(config_dir: Path) -> AutoCategorizer:
    """Auto-categorizer with the bundled seed rules and no category filter."""
    return AutoCategorizer(config_dir=config_dir)


@pytest.fixture
def rule_repository() -> InMemoryRuleRepository:
    return InMemoryRuleRepository()


@pytest.fixture
def pipeline(rule_repository: InMemoryRuleRepository, config_dir: Path) -> ImportPipeline:
    return ImportPipeline(rule_repository=rule_repository, config_dir=config_dir)


@pytest.fixture
def sample_csv_content() -> str:
    """Bank export with a repeated row and a coffee shop purchase."""
    return (
        "Date,Description,Amount\n"
        "2024-01-15,WALMART SUPERCENTER,-125.43\n"
        "2024-01-15,WALMART SUPERCENTER,-125.43\n"
        "2024-01-16,STARBUCKS #2291,-4.85\n"
    )


@pytest.fixture
def sample_transaction() -> CanonicalTransaction:
    return CanonicalTransaction(
        date="2024-01-16",
        description="STARBUCKS #2291",
        amount=Decimal("4.85"),
        is_income=False,
    )


@pytest.fixture
def sample_candidates() -> list[dict]:
    """Transactions as returned by an extraction service."""
    return [
        {
            "date": "2024-02-01",
            "vendor": "Netflix",
            "originalVendor": "PAYPAL *NETFLIX",
            "amount": 15.99,
            "description": "Netflix subscription",
            "confidence": 0.95,
        },
        {
            "date": "sometime",
            "vendor": "Unknown",
            "amount": 0,
            "confidence": 0.4,
        },
    ]


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(tmp_path: Path):
    """Point the API at the bundled config and a throwaway rules file."""
    previous = {
        key: os.environ.get(key)
        for key in ("STATEMENT_IMPORT_CONFIG_DIR", "STATEMENT_IMPORT_RULES_FILE")
    }
    os.environ["STATEMENT_IMPORT_CONFIG_DIR"] = str(PROJECT_ROOT / "config")
    os.environ["STATEMENT_IMPORT_RULES_FILE"] = str(tmp_path / "user_rules.yaml")
    yield
    for key, value in previous.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
