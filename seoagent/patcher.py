"""Applies fixes to a working copy, one file at a time."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

from .errors import PatchMismatchError
from .logging import get_logger
from .models import Fix, FixAction


@dataclass
class ApplyReport:
    applied: List[Fix] = field(default_factory=list)
    skipped: List[Tuple[Fix, str]] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return len(self.applied)


class PatchApplier:
    """Applies each fix independently; a failing fix never blocks the others."""

    def __init__(self) -> None:
        self.logger = get_logger("patcher")

    def apply(self, workdir: Path, fixes: Sequence[Fix]) -> ApplyReport:
        root = workdir.resolve()
        report = ApplyReport()
        for fix in fixes:
            try:
                target = _resolve_inside(root, fix.path)
                self._apply_one(target, fix)
            except PatchMismatchError as exc:
                self.logger.warning("Skipping fix for %s: %s", fix.path, exc)
                report.skipped.append((fix, str(exc)))
            except (OSError, ValueError) as exc:
                self.logger.warning("Failed to apply fix for %s: %s", fix.path, exc)
                report.skipped.append((fix, str(exc)))
            else:
                self.logger.debug("Applied %s on %s", fix.action.value, fix.path)
                report.applied.append(fix)
        self.logger.info("Applied %d of %d fixes", report.applied_count, len(fixes))
        return report

    def _apply_one(self, target: Path, fix: Fix) -> None:
        if fix.action is FixAction.CREATE:
            if fix.content is None:
                raise ValueError("create fix has no content")
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(fix.content, bytes):
                target.write_bytes(fix.content)
            else:
                target.write_text(fix.content, encoding="utf-8")
            return

        if fix.action is FixAction.DELETE:
            if target.exists():
                target.unlink()
            return

        if fix.search is None or fix.replace is None:
            raise ValueError("modify fix requires search and replace text")
        if not target.exists():
            raise PatchMismatchError(fix.path, f"{fix.path} no longer exists")
        with target.open("r", encoding="utf-8", newline="") as handle:
            current = handle.read()
        occurrences = current.count(fix.search)
        if occurrences == 0:
            raise PatchMismatchError(fix.path)
        if occurrences > 1:
            self.logger.warning(
                "Search text occurs %d times in %s; replacing the first occurrence only",
                occurrences,
                fix.path,
            )
        with target.open("w", encoding="utf-8", newline="") as handle:
            handle.write(current.replace(fix.search, fix.replace, 1))


def _resolve_inside(root: Path, relative: str) -> Path:
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        raise ValueError(f"{relative} escapes the working copy")
    return candidate


__all__ = ["ApplyReport", "PatchApplier"]
