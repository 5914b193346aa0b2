"""
Configuration management (SSOT).

This module defines ALL configuration for the matching pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The LLM model is read from here once and passed explicitly into every
  extractor/summarizer call; there is no process-wide model selector.
- Thresholds and weights for matching live in MatchingConfig only.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .schemas.match import StrategyKind


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class MatchingConfig:
    """Historical matching settings."""

    # Candidates below this confidence (0-100) are dropped
    min_confidence: float = 85.0
    # Search text shorter than this (after trimming) is not searched
    min_search_length: int = 5
    # Upper bound on candidates returned by each strategy
    max_candidates_per_strategy: int = 10
    # Candidates kept per line for the reviewer
    persist_top_n: int = 3
    # Enabled strategies, in declaration (tie-break) order
    strategies: list[str] = field(
        default_factory=lambda: [kind.value for kind in StrategyKind]
    )

    def enabled_kinds(self) -> list[StrategyKind]:
        """Enabled strategies as StrategyKind, preserving order."""
        return [StrategyKind(name.upper()) for name in self.strategies]


@dataclass
class LLMConfig:
    """Local LLM (Ollama) configuration.

    SSOT for LLM settings:
    - enabled: Master switch (default OFF)
    - ollama_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    - max_concurrent: Concurrency limiter for shared servers
    """

    # Master enable/disable
    enabled: bool = False
    # Ollama server URL (supports localhost, LAN, remote)
    ollama_url: str = "http://localhost:11434"
    # Optional authentication header for proxied deployments
    # Format: "Bearer <token>" or "Header-Name: value"
    auth_header: str | None = None
    # Model used for company extraction and email summaries
    model: str = "qwen2.5:7b-instruct-q4_K_M"
    # Request timeout (seconds)
    timeout_seconds: int = 60
    # Maximum concurrent LLM requests (semaphore)
    max_concurrent: int = 2

    def is_remote(self) -> bool:
        """Check if Ollama URL is remote (not localhost)."""
        url_lower = self.ollama_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class EmailSearchConfig:
    """Email evidence search settings."""

    # Day window around the value date for the cached corpus
    cached_days_before: int = 7
    cached_days_after: int = 7
    # Day window around the value date for the live mailbox
    live_days_before: int = 3
    live_days_after: int = 3
    # Raw emails fetched per query
    candidate_limit: int = 25
    # Ranked cached emails returned
    cached_result_limit: int = 10
    # Emails handed to the summarizer
    summary_email_limit: int = 5
    # Body characters per email in the summary prompt
    summary_body_chars: int = 2000
    # Try the live mailbox when the cached corpus has no evidence
    use_live_mailbox: bool = True


@dataclass
class MailboxConfig:
    """Microsoft Graph mailbox configuration."""

    graph_url: str = "https://graph.microsoft.com"
    # Mailbox searched with app-only auth (users/{mailbox}/messages)
    mailbox: str = ""
    token: str = ""
    # Fixed subject filter ANDed to every keyword query
    subject_filter: str = "PAYMENT"
    timeout_seconds: int = 30

    @property
    def is_configured(self) -> bool:
        return bool(self.mailbox and self.token)


@dataclass
class Config:
    """Application configuration (SSOT)."""

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    email_search: EmailSearchConfig = field(default_factory=EmailSearchConfig)
    mailbox: MailboxConfig = field(default_factory=MailboxConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not 0 <= self.matching.min_confidence <= 100:
            errors.append("matching.min_confidence must be within 0-100")
        if self.matching.max_candidates_per_strategy < 1:
            errors.append("matching.max_candidates_per_strategy must be >= 1")
        if self.matching.persist_top_n < 1:
            errors.append("matching.persist_top_n must be >= 1")

        valid_names = {kind.value for kind in StrategyKind}
        for name in self.matching.strategies:
            if name.upper() not in valid_names:
                errors.append(f"matching.strategies: unknown strategy '{name}'")

        if self.llm.enabled:
            if not self.llm.ollama_url:
                errors.append("llm.ollama_url is required when LLM is enabled")
            if not self.llm.model:
                errors.append("llm.model is required when LLM is enabled")

        for name in (
            "cached_days_before",
            "cached_days_after",
            "live_days_before",
            "live_days_after",
        ):
            if getattr(self.email_search, name) < 0:
                errors.append(f"email_search.{name} must be >= 0")

        return errors

    def require_valid(self) -> None:
        """Raise ConfigValidationError if validate() reports problems."""
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - REMIT_MIN_CONFIDENCE
    - REMIT_LLM_ENABLED (true/false)
    - OLLAMA_URL
    - OLLAMA_MODEL
    - OLLAMA_AUTH_HEADER
    - OLLAMA_TIMEOUT (request timeout in seconds)
    - GRAPH_URL
    - GRAPH_MAILBOX
    - GRAPH_TOKEN
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Matching config
    matching_data = data.get("matching", {})
    min_confidence = matching_data.get("min_confidence", 85.0)
    min_confidence_env = os.environ.get("REMIT_MIN_CONFIDENCE", "")
    if min_confidence_env:
        try:
            min_confidence = float(min_confidence_env)
        except ValueError:
            pass  # Keep configured value

    matching = MatchingConfig(
        min_confidence=float(min_confidence),
        min_search_length=matching_data.get("min_search_length", 5),
        max_candidates_per_strategy=matching_data.get("max_candidates_per_strategy", 10),
        persist_top_n=matching_data.get("persist_top_n", 3),
        strategies=list(
            matching_data.get("strategies", [kind.value for kind in StrategyKind])
        ),
    )

    # LLM config
    llm_data = data.get("llm", {})
    llm = LLMConfig(
        enabled=_env_bool("REMIT_LLM_ENABLED", llm_data.get("enabled", False)),
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model=os.environ.get(
            "OLLAMA_MODEL", llm_data.get("model", "qwen2.5:7b-instruct-q4_K_M")
        ),
        timeout_seconds=int(os.environ.get(
            "OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 60)
        )),
        max_concurrent=llm_data.get("max_concurrent", 2),
    )

    # Email search config
    email_data = data.get("email_search", {})
    email_search = EmailSearchConfig(
        cached_days_before=email_data.get("cached_days_before", 7),
        cached_days_after=email_data.get("cached_days_after", 7),
        live_days_before=email_data.get("live_days_before", 3),
        live_days_after=email_data.get("live_days_after", 3),
        candidate_limit=email_data.get("candidate_limit", 25),
        cached_result_limit=email_data.get("cached_result_limit", 10),
        summary_email_limit=email_data.get("summary_email_limit", 5),
        summary_body_chars=email_data.get("summary_body_chars", 2000),
        use_live_mailbox=email_data.get("use_live_mailbox", True),
    )

    # Mailbox config
    mailbox_data = data.get("mailbox", {})
    mailbox = MailboxConfig(
        graph_url=os.environ.get(
            "GRAPH_URL", mailbox_data.get("graph_url", "https://graph.microsoft.com")
        ),
        mailbox=os.environ.get("GRAPH_MAILBOX", mailbox_data.get("mailbox", "")),
        token=os.environ.get("GRAPH_TOKEN", mailbox_data.get("token", "")),
        subject_filter=mailbox_data.get("subject_filter", "PAYMENT"),
        timeout_seconds=mailbox_data.get("timeout_seconds", 30),
    )

    return Config(
        matching=matching,
        llm=llm,
        email_search=email_search,
        mailbox=mailbox,
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Payment note matching configuration
#
# Search backends (fuzzy text, vector index, embedding provider) are wired
# in code; this file only holds thresholds and transport settings.

# Historical matching
matching:
  min_confidence: 85                 # Drop candidates below this (0-100)
  min_search_length: 5               # Skip shorter search text
  max_candidates_per_strategy: 10
  persist_top_n: 3                   # Candidates kept per line for review
  strategies:                        # Declaration order breaks confidence ties
    - FUZZY_TEXT
    - VECTOR_SEMANTIC
    - EXTERNAL_EMBEDDING

# Local LLM settings (Ollama)
# Supports localhost, LAN, or remote deployments
llm:
  enabled: false                           # Set to true to enable the LLM fallbacks
  ollama_url: "http://localhost:11434"     # Ollama server URL
  auth_header: null                        # Optional auth header for proxied deployments
  model: "qwen2.5:7b-instruct-q4_K_M"
  timeout_seconds: 60
  max_concurrent: 2                        # Max concurrent LLM requests

# Email evidence fallback
email_search:
  cached_days_before: 7
  cached_days_after: 7
  live_days_before: 3
  live_days_after: 3
  candidate_limit: 25                # Raw emails fetched per query
  cached_result_limit: 10            # Ranked cached emails returned
  summary_email_limit: 5             # Emails sent to the summarizer
  summary_body_chars: 2000
  use_live_mailbox: true             # Fall back to the mailbox when the cache is empty

# Microsoft Graph mailbox (live search)
mailbox:
  graph_url: "https://graph.microsoft.com"
  mailbox: ""                        # e.g. remittances@example.com
  token: "YOUR_GRAPH_TOKEN"
  subject_filter: "PAYMENT"
  timeout_seconds: 30
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
