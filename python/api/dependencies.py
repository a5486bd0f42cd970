"""
API Dependencies

Resolves configuration and the user rule repository for request handlers.
"""

import os
from pathlib import Path

from statement_import import ImportPipeline, YamlRuleRepository
from statement_import.rule_store import RuleRepository
from statement_import.settings import DEFAULT_CONFIG_DIR


def get_config_dir() -> Path:
    """Config directory from STATEMENT_IMPORT_CONFIG_DIR, else the bundled one."""
    return Path(os.getenv("STATEMENT_IMPORT_CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))


def get_rule_repository() -> RuleRepository:
    """User rules file from STATEMENT_IMPORT_RULES_FILE.

    Defaults to ``user_rules.yaml`` in the config directory.
    """
    rules_file = os.getenv("STATEMENT_IMPORT_RULES_FILE")
    path = Path(rules_file) if rules_file else get_config_dir() / "user_rules.yaml"
    return YamlRuleRepository(path)


def build_pipeline(
    repository: RuleRepository,
    categories: list[str] | None = None,
    positive_is_income: bool = True
) -> ImportPipeline:
    """Create a pipeline for one request over the user's saved rules."""
    return ImportPipeline(
        rule_repository=repository,
        categories=categories,
        config_dir=get_config_dir(),
        positive_is_income=positive_is_income,
    )
