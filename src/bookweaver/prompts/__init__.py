from __future__ import annotations

from bookweaver.prompts.book import OVERVIEW_RETRY_INSTRUCTION, SYSTEM_PROMPT, build_book_context

__all__ = ["OVERVIEW_RETRY_INSTRUCTION", "SYSTEM_PROMPT", "build_book_context"]
