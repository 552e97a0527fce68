"""Idempotent patching of generated project files.

Quick usage::

    from appsetup.patcher import InsertMode, TextPatch, apply_patch

    patch = TextPatch(
        marker="LOGIN_REDIRECT_URL",
        anchor=r"^DEFAULT_AUTO_FIELD",
        payload="LOGIN_REDIRECT_URL = '/'",
        mode=InsertMode.AFTER,
    )
    result = apply_patch("backend/backend/settings.py", patch)
    result.applied  # False on every run after the first
"""

from appsetup.patcher.engine import (
    AnchorNotFoundError,
    InsertMode,
    PatchError,
    PatchResult,
    PatchStatus,
    TargetMissingError,
    TextPatch,
    apply_patch,
    patch_text,
)
from appsetup.patcher.python_source import ensure_import, ensure_list_entry

__all__ = [
    "AnchorNotFoundError",
    "InsertMode",
    "PatchError",
    "PatchResult",
    "PatchStatus",
    "TargetMissingError",
    "TextPatch",
    "apply_patch",
    "ensure_import",
    "ensure_list_entry",
    "patch_text",
]
