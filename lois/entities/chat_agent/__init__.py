"""
Chat Agent - user-facing narration of query results.
"""

from .narrator import (
    Narrator,
    build_narration_prompt,
    format_result_for_display,
    load_prompt,
    render_table_fallback,
)

__all__ = [
    "Narrator",
    "build_narration_prompt",
    "format_result_for_display",
    "load_prompt",
    "render_table_fallback",
]
