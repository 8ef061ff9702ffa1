"""Git invocation for the pull request diff summary."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    pass


class GitInvoker:
    def __init__(
        self,
        repo_path: str | Path,
        target_branch: str,
        pull_request_id: int,
        git_bin: str = "git",
    ) -> None:
        self.repo_path = Path(repo_path)
        self.target_branch = target_branch
        self.pull_request_id = pull_request_id
        self.git_bin = git_bin

    @property
    def target_ref(self) -> str:
        return f"origin/{self.target_branch}"

    @property
    def merge_ref(self) -> str:
        return f"pull/{self.pull_request_id}/merge"

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.git_bin, "-C", str(self.repo_path), *args]
        logger.debug("Running %s", " ".join(cmd))
        return subprocess.run(cmd, text=True, capture_output=True, check=False)

    def is_git_repo(self) -> bool:
        proc = self._run("rev-parse", "--is-inside-work-tree")
        return proc.returncode == 0 and proc.stdout.strip() == "true"

    def is_git_history_available(self) -> bool:
        """True when both refs resolve and share a merge base (not a shallow fetch)."""
        proc = self._run("merge-base", self.target_ref, self.merge_ref)
        if proc.returncode != 0:
            logger.debug("git merge-base failed: %s", proc.stderr.strip())
            return False
        return bool(proc.stdout.strip())

    def get_diff_summary(self) -> str:
        proc = self._run("diff", "--numstat", "--ignore-all-space", f"{self.target_ref}...{self.merge_ref}")
        if proc.returncode != 0:
            raise GitError(f"git diff failed for {self.target_ref}...{self.merge_ref}: {proc.stderr.strip()}")
        return proc.stdout
