"""Read the changed-file list of the current change from git history."""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)


def get_changed_files(base_ref: str = "main", cwd: str | None = None) -> list[str] | None:
    """Return paths changed between ``origin/{base_ref}`` and HEAD.

    Returns None when git cannot answer (no repository, unknown ref, shallow
    clone without the merge base); callers fall back to a full run.
    """
    cmd = ["git", "diff", "--name-only", f"origin/{base_ref}...HEAD"]
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        detail = e.stderr.strip() if isinstance(e, subprocess.CalledProcessError) and e.stderr else str(e)
        logger.warning("git diff failed, falling back to full regression: %s", detail)
        return None

    files = [line.strip() for line in proc.stdout.splitlines() if line.strip()]
    logger.debug("git diff against origin/%s: %d changed file(s)", base_ref, len(files))
    return files
