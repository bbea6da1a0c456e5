"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `BOOKWEAVER_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class GenerationOptions:
    """Read-only knobs consumed by the generation orchestrator."""

    model: str = "gpt-4o-mini"
    max_tokens: int = 4096
    # 0 or negative means "no explicit target"
    node_detail_words: int = 0
    node_summary_words: int = 180
    dry_run: bool = False
    demo_mode: bool = False
    plan_diagrams: bool = True


@dataclass(frozen=True)
class NormalizationOptions:
    """Toggles for the Markdown normalization pipeline."""

    reflow: bool = False
    beautify: bool = True
    strip_links: bool = False
    # When False, bare numbered lines inside node content are promoted to headings
    trust_numbering: bool = True


class Settings(BaseSettings):
    """BookWeaver settings.

    All fields are environment-configurable. Prefix is `BOOKWEAVER_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOKWEAVER_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")
    show_usage: bool = Field(default=True)

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout_s: float = Field(default=300.0, gt=0.0)
    max_tokens_per_call: int = Field(default=4096, ge=256, le=128000)
    temperature: float | None = Field(default=0.4, ge=0.0, le=2.0)
    cache_system_input: bool = Field(default=False)
    cache_book_context: bool = Field(default=False)
    strict_json: bool = Field(default=False)

    # Run mode
    dry_run: bool = Field(default=False)
    demo_mode: bool = Field(default=False)
    plan_diagrams: bool = Field(default=True)

    # Brief (optional; prompted interactively when missing)
    doc_title: str | None = Field(default=None)
    target_audience: str | None = Field(default=None)
    topic: str | None = Field(default=None)
    index_md_path: Path | None = Field(default=None)

    # Generation sizes
    node_detail_words: int = Field(default=0)
    node_summary_words: int = Field(default=180, ge=1)

    # Markdown output
    custom_beautify: bool = Field(default=True)
    strip_links: bool = Field(default=False)
    markdown_reflow: bool = Field(default=False)
    trust_toc_numbering: bool = Field(default=True)

    # Artifacts
    artifacts_dir: Path = Field(default=Path("artifacts"))

    def generation_options(self) -> GenerationOptions:
        """Derive the orchestrator's read-only options."""

        detail = self.node_detail_words
        if detail == 0 and self.demo_mode:
            detail = 900
        return GenerationOptions(
            model=self.openai_model,
            max_tokens=self.max_tokens_per_call,
            node_detail_words=detail,
            node_summary_words=self.node_summary_words,
            dry_run=self.dry_run,
            demo_mode=self.demo_mode,
            plan_diagrams=self.plan_diagrams,
        )

    def normalization_options(self) -> NormalizationOptions:
        """Derive the Markdown pipeline toggles."""

        return NormalizationOptions(
            reflow=self.markdown_reflow,
            beautify=self.custom_beautify,
            strip_links=self.strip_links,
            trust_numbering=self.trust_toc_numbering,
        )


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("BOOKWEAVER_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
