"""Targeted, idempotent edits to generated configuration files.

A ``Patch`` inserts a block of text immediately after the first line that
contains its anchor (or at the end of the file when it has no anchor).
``apply_patch`` never silently does nothing: it reports whether the text was
inserted, was already there, or could not be placed because the anchor is
missing.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from djbootstrap.errors import PatchError


class Patch(BaseModel):
    """One described edit: *text* goes right after the line holding *anchor*."""

    model_config = ConfigDict(frozen=True)

    anchor: str | None = Field(
        default=None, description="Literal text to find; None appends at end of file"
    )
    text: str = Field(..., min_length=1)
    description: str = Field(default="")

    @property
    def block(self) -> str:
        """The insertion text normalised to end with exactly one newline."""
        return self.text.rstrip("\n") + "\n"


class PatchStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    ANCHOR_NOT_FOUND = "anchor_not_found"


class PatchOutcome(BaseModel):
    """Result of applying one ``Patch`` to some content."""

    patch: Patch
    status: PatchStatus
    content: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not PatchStatus.ANCHOR_NOT_FOUND


def _anchor_index(lines: list[str], anchor: str) -> int | None:
    for index, line in enumerate(lines):
        if anchor in line:
            return index
    return None


def _block_follows(lines: list[str], index: int, patch: Patch) -> bool:
    expected = patch.text.strip("\n").splitlines()
    following = [line.rstrip("\r\n") for line in lines[index + 1:index + 1 + len(expected)]]
    return following == expected


def is_applied(content: str, patch: Patch) -> bool:
    """Return ``True`` if *patch* is already in place in *content*.

    An anchored patch counts as applied only when its text sits directly after
    the anchor line; text elsewhere in the file does not count.  An append
    patch counts as applied when its text appears anywhere.
    """
    if patch.anchor is None:
        return patch.text.strip("\n") in content
    lines = content.splitlines(keepends=True)
    index = _anchor_index(lines, patch.anchor)
    return index is not None and _block_follows(lines, index, patch)


def apply_patch(content: str, patch: Patch) -> PatchOutcome:
    """Apply *patch* to *content* and report what happened.

    All lines other than the inserted block are preserved exactly.  A missing
    anchor is reported even when the text occurs elsewhere in *content*.
    """
    if patch.anchor is None:
        if is_applied(content, patch):
            return PatchOutcome(
                patch=patch, status=PatchStatus.ALREADY_APPLIED, content=content
            )
        body = content
        if body and not body.endswith("\n"):
            body += "\n"
        separator = "\n" if body else ""
        return PatchOutcome(
            patch=patch, status=PatchStatus.APPLIED, content=body + separator + patch.block
        )

    lines = content.splitlines(keepends=True)
    index = _anchor_index(lines, patch.anchor)
    if index is None:
        return PatchOutcome(patch=patch, status=PatchStatus.ANCHOR_NOT_FOUND)
    if _block_follows(lines, index, patch):
        return PatchOutcome(patch=patch, status=PatchStatus.ALREADY_APPLIED, content=content)

    if not lines[index].endswith("\n"):
        lines[index] += "\n"
    lines.insert(index + 1, patch.block)
    return PatchOutcome(patch=patch, status=PatchStatus.APPLIED, content="".join(lines))


def apply_patches(
    content: str,
    patches: Iterable[Patch],
    path: str | Path | None = None,
) -> tuple[str, list[PatchOutcome]]:
    """Apply *patches* in order.

    Raises:
        PatchError: On the first patch whose anchor is missing.
    """
    outcomes: list[PatchOutcome] = []
    for patch in patches:
        outcome = apply_patch(content, patch)
        if not outcome.ok:
            raise PatchError(path, patch)
        assert outcome.content is not None
        content = outcome.content
        outcomes.append(outcome)
    return content, outcomes


def patch_file(path: str | Path, patches: Iterable[Patch]) -> list[PatchOutcome]:
    """Apply *patches* to the file at *path*, writing it back only on success."""
    file_path = Path(path)
    original = file_path.read_text(encoding="utf-8")
    updated, outcomes = apply_patches(original, patches, path=file_path)
    if updated != original:
        file_path.write_text(updated, encoding="utf-8")
    return outcomes
