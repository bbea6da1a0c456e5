"""Ordered Markdown normalization pipeline.

Order matters: link stripping runs before artifact cleanup so a removed definition never
leaves extra trailing blank lines, and the spacing passes assume artifacts are already gone.
Reflow runs last so mdformat owns the final list layout; on its output the earlier passes
only find blank lines that are already there.
"""

from __future__ import annotations

from typing import Callable

from bookweaver.config import NormalizationOptions
from bookweaver.markdown.transforms import (
    beautify_lists,
    clean_artifacts,
    ensure_fence_spacing,
    ensure_table_spacing,
    fix_colon_spacing,
    reflow,
    space_after_inline_hash,
    strip_links,
)

Transform = Callable[[str], str]


def build_pipeline(options: NormalizationOptions) -> list[Transform]:
    """Select the transforms enabled by `options`, in execution order."""

    steps: list[Transform] = []
    if options.strip_links:
        steps.append(strip_links)
    steps.append(clean_artifacts)
    steps.extend([ensure_table_spacing, ensure_fence_spacing])
    if options.beautify:
        steps.extend([space_after_inline_hash, fix_colon_spacing, beautify_lists])
    if options.reflow:
        steps.append(reflow)
    return steps


def normalize_markdown(text: str, options: NormalizationOptions | None = None) -> str:
    """Run the full pipeline over a rendered document."""

    for step in build_pipeline(options or NormalizationOptions()):
        text = step(text)
    return text
