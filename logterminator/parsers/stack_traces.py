"""Helpers for Python stack traces captured in hidden log cells."""
from __future__ import annotations

import re
from typing import Optional

from logterminator.models import StackFrame

_STACK_FRAME_PATTERN = re.compile(r'File "([^"]+)", line (\d+), in (\S+)\s*\n\s+(.+)')
_PREVIEW_MAX_CHARS = 50


def parse_python_stack_trace(stack_raw: Optional[str]) -> list[StackFrame]:
    """Extract ``File "...", line N, in fn`` frames followed by their source line."""
    if not stack_raw:
        return []
    return [
        StackFrame(
            file=match.group(1),
            line=int(match.group(2)),
            function=match.group(3),
            code=match.group(4).strip(),
        )
        for match in _STACK_FRAME_PATTERN.finditer(stack_raw)
    ]


def is_python_stack_trace(stack_raw: Optional[str]) -> bool:
    if not stack_raw:
        return False
    return 'File "' in stack_raw and ("line " in stack_raw or ", in " in stack_raw)


def stack_preview(stack_raw: Optional[str]) -> str:
    """One-line summary for list views: frame count, or the first line truncated."""
    if not stack_raw or not stack_raw.strip():
        return "-"
    first_line = stack_raw.strip().splitlines()[0].strip()
    if not first_line:
        return "-"

    if 'File "' in first_line or "line " in first_line:
        frames = parse_python_stack_trace(stack_raw)
        if frames:
            return f"{len(frames)} frames"

    if len(first_line) > _PREVIEW_MAX_CHARS:
        return first_line[:_PREVIEW_MAX_CHARS] + "..."
    return first_line
