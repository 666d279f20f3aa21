"""
Configuration management (SSOT).

This module defines ALL configuration for the receipt ledger pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Money tolerances are expressed in currency units (not percent)
- The completion service is OFF unless explicitly enabled
- Every setting can be overridden from the environment where noted in load_config
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


@dataclass
class ParserConfig:
    """Receipt parsing and validation settings."""

    # Allowed drift between item sum / subtotal / total (currency units)
    math_threshold: float = 0.05
    # Maximum tax rate accepted when inferring tax from subtotal and total
    max_tax_rate: float = 0.35
    # Inferred subtotal must be at least this fraction of the raw item sum
    min_subtotal_ratio: float = 0.80
    # OCR quality below this is logged as a warning (never blocks)
    quality_warn_threshold: float = 0.3


@dataclass
class ResolverConfig:
    """Account resolver settings."""

    # TTL for database-backed lookup caches (seconds)
    cache_ttl_seconds: int = 300
    # Business context used when the caller supplies none
    default_business: str = "Personal"
    # Consult tag-derived rules after the pattern tables
    use_tag_rules: bool = True


@dataclass
class LLMConfig:
    """Completion service configuration for broad-category enhancement.

    SSOT for LLM settings:
    - enabled: Master switch (default OFF)
    - base_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    """

    # Master enable/disable (SSOT: single enforcement point)
    enabled: bool = False
    # Ollama-compatible server URL
    base_url: str = "http://localhost:11434"
    # Format: "Bearer <token>" or "Header-Name: value"
    auth_header: str | None = None
    model: str = "qwen2.5:3b-instruct-q4_K_M"
    # Request timeout (seconds)
    timeout_seconds: int = 30
    # Answers below this confidence are discarded
    min_confidence: float = 0.7
    # Cache TTL (hours)
    cache_ttl_hours: int = 24

    def is_remote(self) -> bool:
        """Check if the service URL is remote (not localhost)."""
        url_lower = self.base_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class LedgerConfig:
    """Posting construction settings."""

    default_currency: str = "THB"
    default_payment_account: str = "Assets:Cash"
    # Maximum |sum(postings)| accepted as balanced
    balance_epsilon: float = 0.005
    # Emit a separate tax posting when the receipt has a tax line
    include_tax_line: bool = False


@dataclass
class TaggingConfig:
    """Contextual auto-tagger thresholds and weights."""

    # Keyword-match confidence (0-100) below which tags are dropped
    min_confidence: int = 40
    min_relevance: float = 0.3
    # Stricter relevance floor when an account path gives context
    min_relevance_with_context: float = 0.5
    max_tags_per_posting: int = 3
    confidence_weight: float = 0.5
    relevance_weight: float = 0.3
    priority_weight: float = 0.2


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    parser: ParserConfig = field(default_factory=ParserConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    tagging: TaggingConfig = field(default_factory=TaggingConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/ledger.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.parser.math_threshold < 0:
            errors.append("parser.math_threshold must be >= 0")
        if not 0 <= self.parser.max_tax_rate <= 1:
            errors.append("parser.max_tax_rate must be between 0 and 1")
        if not 0 <= self.parser.min_subtotal_ratio <= 1:
            errors.append("parser.min_subtotal_ratio must be between 0 and 1")

        if self.resolver.cache_ttl_seconds < 0:
            errors.append("resolver.cache_ttl_seconds must be >= 0")
        if not self.resolver.default_business:
            errors.append("resolver.default_business is required")

        if self.llm.enabled:
            if not self.llm.base_url:
                errors.append("llm.base_url is required when LLM is enabled")
            if not self.llm.model:
                errors.append("llm.model is required when LLM is enabled")
        if not 0 <= self.llm.min_confidence <= 1:
            errors.append("llm.min_confidence must be between 0 and 1")

        if len(self.ledger.default_currency) != 3:
            errors.append("ledger.default_currency must be a 3-letter code")
        if self.ledger.balance_epsilon <= 0:
            errors.append("ledger.balance_epsilon must be > 0")

        if self.tagging.min_relevance_with_context < self.tagging.min_relevance:
            errors.append("tagging.min_relevance_with_context must be >= min_relevance")
        if self.tagging.max_tags_per_posting < 1:
            errors.append("tagging.max_tags_per_posting must be >= 1")

        return errors

    def require_valid(self) -> "Config":
        """Raise ConfigValidationError if validate() reports problems."""
        errors = self.validate()
        if errors:
            raise ConfigValidationError(errors)
        return self


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - RECEIPT_LEDGER_DB
    - LEDGER_LLM_ENABLED (true/false)
    - LEDGER_LLM_URL
    - LEDGER_LLM_MODEL
    - LEDGER_LLM_AUTH_HEADER
    - LEDGER_LLM_TIMEOUT (request timeout in seconds)
    - LEDGER_CURRENCY
    - LEDGER_DEFAULT_BUSINESS
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    parser_data = data.get("parser", {})
    parser = ParserConfig(
        math_threshold=parser_data.get("math_threshold", 0.05),
        max_tax_rate=parser_data.get("max_tax_rate", 0.35),
        min_subtotal_ratio=parser_data.get("min_subtotal_ratio", 0.80),
        quality_warn_threshold=parser_data.get("quality_warn_threshold", 0.3),
    )

    resolver_data = data.get("resolver", {})
    resolver = ResolverConfig(
        cache_ttl_seconds=resolver_data.get("cache_ttl_seconds", 300),
        default_business=os.environ.get(
            "LEDGER_DEFAULT_BUSINESS", resolver_data.get("default_business", "Personal")
        ),
        use_tag_rules=resolver_data.get("use_tag_rules", True),
    )

    llm_data = data.get("llm", {})
    llm_enabled_env = os.environ.get("LEDGER_LLM_ENABLED", "").lower()
    llm_enabled = llm_data.get("enabled", False)
    if llm_enabled_env == "true":
        llm_enabled = True
    elif llm_enabled_env == "false":
        llm_enabled = False

    llm = LLMConfig(
        enabled=llm_enabled,
        base_url=os.environ.get(
            "LEDGER_LLM_URL", llm_data.get("base_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("LEDGER_LLM_AUTH_HEADER", llm_data.get("auth_header")),
        model=os.environ.get(
            "LEDGER_LLM_MODEL", llm_data.get("model", "qwen2.5:3b-instruct-q4_K_M")
        ),
        timeout_seconds=int(os.environ.get(
            "LEDGER_LLM_TIMEOUT", llm_data.get("timeout_seconds", 30)
        )),
        min_confidence=llm_data.get("min_confidence", 0.7),
        cache_ttl_hours=llm_data.get("cache_ttl_hours", 24),
    )

    ledger_data = data.get("ledger", {})
    ledger = LedgerConfig(
        default_currency=os.environ.get(
            "LEDGER_CURRENCY", ledger_data.get("default_currency", "THB")
        ),
        default_payment_account=ledger_data.get("default_payment_account", "Assets:Cash"),
        balance_epsilon=ledger_data.get("balance_epsilon", 0.005),
        include_tax_line=ledger_data.get("include_tax_line", False),
    )

    tagging_data = data.get("tagging", {})
    tagging = TaggingConfig(
        min_confidence=tagging_data.get("min_confidence", 40),
        min_relevance=tagging_data.get("min_relevance", 0.3),
        min_relevance_with_context=tagging_data.get("min_relevance_with_context", 0.5),
        max_tags_per_posting=tagging_data.get("max_tags_per_posting", 3),
        confidence_weight=tagging_data.get("confidence_weight", 0.5),
        relevance_weight=tagging_data.get("relevance_weight", 0.3),
        priority_weight=tagging_data.get("priority_weight", 0.2),
    )

    state_db = os.environ.get("RECEIPT_LEDGER_DB", data.get("state_db_path", "data/ledger.db"))

    return Config(
        parser=parser,
        resolver=resolver,
        llm=llm,
        ledger=ledger,
        tagging=tagging,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Receipt Ledger Pipeline Configuration

# Parsing and validation (amounts in currency units)
parser:
  math_threshold: 0.05                     # Allowed item/subtotal/total drift
  max_tax_rate: 0.35                       # Reject inferred tax above this rate
  min_subtotal_ratio: 0.80                 # Inferred subtotal must reach this share of items
  quality_warn_threshold: 0.3              # Log a warning below this OCR quality

# Account resolution
resolver:
  cache_ttl_seconds: 300                   # Lookup cache lifetime
  default_business: "Personal"             # Spliced into paths when none is given
  use_tag_rules: true                      # Derive patterns from the tag table

# Broad-category enhancement (Ollama-compatible)
llm:
  enabled: false                           # Set to true to enable enhancement
  base_url: "http://localhost:11434"
  auth_header: null                        # Optional auth header for proxied deployments
  model: "qwen2.5:3b-instruct-q4_K_M"
  timeout_seconds: 30
  min_confidence: 0.7                      # Discard answers below this
  cache_ttl_hours: 24

# Posting construction
ledger:
  default_currency: "THB"
  default_payment_account: "Assets:Cash"
  balance_epsilon: 0.005
  include_tax_line: false                  # Emit a separate tax posting

# Contextual tagging
tagging:
  min_confidence: 40
  min_relevance: 0.3
  min_relevance_with_context: 0.5
  max_tags_per_posting: 3

# State database path
state_db_path: "data/ledger.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
