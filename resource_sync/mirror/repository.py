"""
Repository Mirror — Local working copy of the remote resource repository.

Wraps the git command line. Every call is bounded by a timeout; a call
that times out fails the same way a network error would.

## Usage

    from resource_sync.mirror.repository import RepositoryMirror

    mirror = RepositoryMirror.initialize(repo_url, Path("/var/lib/resources"))
    local = mirror.current_reference()
    remote = mirror.latest_remote_reference()
    if local != remote:
        mirror.pull()
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Type

from ..errors import (
    FetchError,
    MirrorInitError,
    NoCommitsError,
    PullError,
    SyncError,
)

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"
DEFAULT_TIMEOUT = 300

# Local branches and remote-tracking branches
BRANCH_REF_PATTERNS = ("refs/heads", "refs/remotes")


def _git(
    cwd: Path,
    *args: str,
    timeout: float = DEFAULT_TIMEOUT,
    error: Type[SyncError] = SyncError,
) -> subprocess.CompletedProcess:
    """
    Run a git command.

    Raises `error` if git cannot be started or does not finish in time.
    A non-zero exit code is returned to the caller, not raised.
    """
    cmd = ["git"] + list(args)
    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise error(f"git {args[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise error(f"git {args[0]} could not run: {e}") from e


def _stderr(result: subprocess.CompletedProcess) -> str:
    return (result.stderr or "").strip() or (result.stdout or "").strip() or "unknown error"


class RepositoryMirror:
    """A cloned repository that can be compared with and updated from its remote."""

    def __init__(
        self,
        path: Path,
        remote: str = DEFAULT_REMOTE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.path = Path(path)
        self.remote = remote
        self.timeout = timeout

    @classmethod
    def initialize(
        cls,
        remote_url: str,
        local_path: Path,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "RepositoryMirror":
        """
        Replace whatever is at local_path with a fresh clone of remote_url.

        Raises:
            MirrorInitError: The old directory could not be removed or the
                clone failed
        """
        local_path = Path(local_path)

        try:
            if local_path.exists():
                logger.info(f"Removing existing mirror at {local_path}")
                if local_path.is_dir():
                    shutil.rmtree(local_path)
                else:
                    local_path.unlink()
            local_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MirrorInitError(f"Cannot prepare {local_path}: {e}") from e

        logger.info(f"Cloning {remote_url} into {local_path}")
        result = _git(
            local_path.parent,
            "clone", remote_url, str(local_path),
            timeout=timeout,
            error=MirrorInitError,
        )
        if result.returncode != 0:
            raise MirrorInitError(f"Clone of {remote_url} failed: {_stderr(result)}")

        logger.info(f"Done cloning repo to {local_path}")
        return cls(local_path, timeout=timeout)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def branch_tips(self) -> List[Tuple[str, str, int]]:
        """
        List every branch tip as (ref name, commit sha, author timestamp).

        Order is git's ref enumeration order.
        """
        result = _git(
            self.path,
            "for-each-ref",
            "--format=%(refname)%09%(objectname)%09%(objecttype)%09%(authordate:raw)",
            *BRANCH_REF_PATTERNS,
            timeout=self.timeout,
            error=NoCommitsError,
        )
        if result.returncode != 0:
            raise NoCommitsError(f"Cannot list branches in {self.path}: {_stderr(result)}")

        tips: List[Tuple[str, str, int]] = []
        for line in result.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) != 4 or parts[2] != "commit":
                continue
            refname, sha, _, authordate = parts
            # raw date is "<unix seconds> <tz offset>"
            tips.append((refname, sha, int(authordate.split()[0])))

        return tips

    def current_reference(self) -> str:
        """
        SHA of the commit with the latest author timestamp across all
        local and remote-tracking branches.

        When several tips share the latest timestamp the first one
        enumerated wins. Enumeration order depends on ref names and is not
        something callers should rely on.

        Raises:
            NoCommitsError: No branch resolves to a commit
        """
        youngest: Optional[Tuple[str, int]] = None
        for refname, sha, authored_at in self.branch_tips():
            if youngest is None or authored_at > youngest[1]:
                youngest = (sha, authored_at)

        if youngest is None:
            raise NoCommitsError(f"No commits found in {self.path}")
        return youngest[0]

    def latest_remote_reference(self) -> str:
        """
        Fetch from the remote and return the SHA its HEAD points to.

        Raises:
            FetchError: Remote unreachable or HEAD not advertised
        """
        fetch = _git(
            self.path, "fetch", self.remote,
            timeout=self.timeout,
            error=FetchError,
        )
        if fetch.returncode != 0:
            raise FetchError(f"Fetch from {self.remote} failed: {_stderr(fetch)}")

        ls = _git(
            self.path, "ls-remote", self.remote, "HEAD",
            timeout=self.timeout,
            error=FetchError,
        )
        if ls.returncode != 0:
            raise FetchError(f"Listing {self.remote} refs failed: {_stderr(ls)}")

        for line in ls.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) == 2 and parts[1].strip() == "HEAD":
                return parts[0].strip()

        raise FetchError(f"Remote {self.remote} does not advertise HEAD")

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def pull(self) -> None:
        """
        Merge upstream changes into the checked-out branch.

        Raises:
            PullError: Merge conflict or network failure
        """
        logger.info("Pulling from remote")
        result = _git(
            self.path, "pull", "--no-rebase", "--no-edit",
            timeout=self.timeout,
            error=PullError,
        )
        if result.returncode != 0:
            raise PullError(f"Pull from {self.remote} failed: {_stderr(result)}")

        output = result.stdout.strip()
        if "Already up to date" in output:
            logger.info("Pull: already up to date")
        else:
            logger.info("Pull: mirror updated")
