"""
Script: flux_ci_tools/tag_deriver.py
What: Maps CI trigger metadata to the image tags pushed for one build.
Doing: Builds an immutable build ID, a mutable alias, and an informational build date.
Why: Image automation can only pick the newest image when build IDs sort by trigger time.
Goal: Keep tag derivation pure, total, and easy to test outside of a workflow run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone


SHORT_REVISION_LENGTH = 8
TAG_REF_PREFIX = "refs/tags/"
BUILD_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

CANARY_ALIAS = "canary"
LATEST_ALIAS = "latest"
RESERVED_ALIASES = frozenset({CANARY_ALIAS, LATEST_ALIAS})


class RefKind(enum.Enum):
    BRANCH = "branch"
    TAG = "tag"


@dataclass(frozen=True)
class TriggerEvent:
    """Facts the CI environment supplies about why this job runs."""

    ref_kind: RefKind
    ref_name: str
    commit_sha: str
    now: datetime


@dataclass(frozen=True)
class TagSet:
    """Tags handed to the external build/push step."""

    build_id: str
    latest_id: str
    build_date: str


def short_revision(commit_sha: str) -> str:
    """Return the first 8 characters of a commit SHA, or all of a shorter one."""
    return commit_sha[:SHORT_REVISION_LENGTH]


def branch_name_from_ref(ref_name: str) -> str:
    """
    Return the trailing path segment of a branch ref.

    Examples:
    - `refs/heads/main` -> `main`
    - `feature/login` -> `login`
    """
    return ref_name.rsplit("/", 1)[-1]


def tag_name_from_ref(ref_name: str) -> str:
    """Strip a leading `refs/tags/`; keep everything else as given."""
    return ref_name.removeprefix(TAG_REF_PREFIX)


def _as_utc(now: datetime) -> datetime:
    # Naive datetimes from the CI clock are UTC readings.
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def epoch_seconds(now: datetime) -> int:
    return int(_as_utc(now).timestamp())


def format_build_date(now: datetime) -> str:
    return _as_utc(now).strftime(BUILD_DATE_FORMAT)


def parse_ref(ref: str) -> tuple[RefKind, str]:
    """
    Split a full CI ref into its kind and name.

    Only `refs/tags/*` is a tag. Everything else, including bare names without
    a `refs/heads/` prefix, is treated as a branch so the mapping stays total.
    """
    if ref.startswith(TAG_REF_PREFIX):
        return RefKind.TAG, ref
    return RefKind.BRANCH, ref


def is_reserved_alias(name: str) -> bool:
    """True when a name collides with one of the mutable alias tags."""
    return name in RESERVED_ALIASES


def derive_tags(event: TriggerEvent) -> TagSet:
    """
    Derive the image tags for one trigger event.

    Rules:
    - Branch pushes get `<branch>-<short sha>-<unix seconds>` plus `canary`.
    - Tag pushes reuse the tag name (normally a semantic version) plus `latest`.

    The timestamp is what the image policy sorts on; the revision is only a
    human-readable fingerprint.
    """
    build_date = format_build_date(event.now)

    if event.ref_kind is RefKind.TAG:
        return TagSet(
            build_id=tag_name_from_ref(event.ref_name),
            latest_id=LATEST_ALIAS,
            build_date=build_date,
        )

    branch_name = branch_name_from_ref(event.ref_name)
    revision = short_revision(event.commit_sha)
    build_id = f"{branch_name}-{revision}-{epoch_seconds(event.now)}"
    return TagSet(build_id=build_id, latest_id=CANARY_ALIAS, build_date=build_date)
