"""Batch submissions from a folder of markdown files.

An inbox submission is a markdown file whose YAML front matter carries the
project id and submission URL; the body holds the submission notes:

    ---
    project_id: 7f3c...
    submission_url: https://github.com/org/repo
    ---
    Built the staking dashboard described in the task.

Processed files are moved to the archive folder with a timestamp and, when
the round did not produce a normal verdict, a status prefix.
"""

import shutil
from datetime import datetime
from pathlib import Path

import frontmatter

from council.models import Submission

STATUS_FAILED = "FAILED"
STATUS_SECURITY = "SECURITY"


def ensure_dirs(*dirs: Path) -> None:
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Pending submissions, oldest first. Hidden files are skipped."""
    pending = [p for p in inbox_dir.glob("*.md") if p.is_file() and not p.name.startswith(".")]
    return sorted(pending, key=lambda p: p.stat().st_mtime)


def load_submission(file_path: Path) -> Submission:
    """Read one inbox file as a Submission.

    project_id defaults to the file stem; submission_url (or url) is required.

    Raises:
        ValueError: If the front matter has no submission URL.
    """
    post = frontmatter.load(str(file_path))
    meta = {str(k).lower(): v for k, v in post.metadata.items()}

    url = str(meta.get("submission_url") or meta.get("url") or "").strip()
    if not url:
        raise ValueError(f"{file_path.name}: front matter is missing submission_url")
    return Submission(
        project_id=str(meta.get("project_id") or file_path.stem),
        submission_url=url,
        submission_notes=post.content.strip(),
    )


def archive_file(file_path: Path, archive_dir: Path, status: str | None = None) -> Path:
    """Move a processed submission into archive_dir.

    The archived name is `[STATUS_]YYYY-MM-DDTHHMM_<original name>`.
    """
    stamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = f"{status}_" if status else ""
    dest = archive_dir / f"{prefix}{stamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
