"""
Script: flux_ci_tools/compute_image_tags.py
What: Computes the image tags for the current workflow run.
Doing: Reads `GITHUB_REF`/`GITHUB_SHA`, runs the tag deriver, and writes tag outputs.
Why: The build/push step needs one immutable tag and one alias tag per run.
Goal: Give image automation a sortable build ID for every branch build.
"""

from __future__ import annotations

from datetime import datetime, timezone

from flux_ci_tools.common import (
    CiToolError,
    normalize_owner,
    optional_env,
    require_env,
    run_cmd,
    write_github_outputs,
)
from flux_ci_tools.tag_deriver import (
    RefKind,
    TagSet,
    TriggerEvent,
    derive_tags,
    is_reserved_alias,
    parse_ref,
    tag_name_from_ref,
)


REGISTRY = "ghcr.io"


def default_image_name(repository: str) -> str:
    """
    Build the default image repository from `GITHUB_REPOSITORY`.

    Example: `Example-Org/web-app` becomes `ghcr.io/example-org/web-app`.
    """
    owner, _, name = repository.partition("/")
    if not name:
        raise CiToolError(f"Expected GITHUB_REPOSITORY as <owner>/<name>, got {repository}")
    return f"{REGISTRY}/{normalize_owner(owner)}/{name.lower()}"


def resolve_image_name() -> str:
    image_name = optional_env("IMAGE_NAME").strip()
    if image_name:
        return image_name
    return default_image_name(require_env("GITHUB_REPOSITORY"))


def resolve_commit_sha() -> str:
    # Local runs have no GITHUB_SHA; ask git for the checked-out commit instead.
    commit_sha = optional_env("GITHUB_SHA").strip()
    if commit_sha:
        return commit_sha
    return run_cmd(["git", "rev-parse", "HEAD"]).strip()


def resolve_now() -> datetime:
    """Return the build instant, honoring `BUILD_EPOCH` for replayed runs."""
    build_epoch = optional_env("BUILD_EPOCH").strip()
    if not build_epoch:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromtimestamp(int(build_epoch), tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as exc:
        raise CiToolError(f"BUILD_EPOCH must be integer Unix seconds in range, got {build_epoch}") from exc


def check_tag_name(ref_kind: RefKind, ref_name: str) -> None:
    """
    Reject release tags that would shadow an alias.

    A git tag named `latest` would make the immutable tag and the mutable alias
    the same registry reference.
    """
    if ref_kind is RefKind.TAG and is_reserved_alias(tag_name_from_ref(ref_name)):
        raise CiToolError(
            f"Tag {ref_name} collides with a reserved alias tag; "
            "use a version-style tag such as v1.2.3 instead"
        )


def build_outputs(image_name: str, tag_set: TagSet) -> dict[str, str]:
    """Return every step output written by `compute-image-tags`."""
    build_image_ref = f"{image_name}:{tag_set.build_id}"
    latest_image_ref = f"{image_name}:{tag_set.latest_id}"
    return {
        "build_id": tag_set.build_id,
        "latest_id": tag_set.latest_id,
        "build_date": tag_set.build_date,
        "image": image_name,
        "build_image_ref": build_image_ref,
        "latest_image_ref": latest_image_ref,
        # `docker/build-push-action` takes a comma-separated tag list.
        "tags": f"{build_image_ref},{latest_image_ref}",
    }


def main() -> None:
    ref_kind, ref_name = parse_ref(require_env("GITHUB_REF"))
    check_tag_name(ref_kind, ref_name)

    event = TriggerEvent(
        ref_kind=ref_kind,
        ref_name=ref_name,
        commit_sha=resolve_commit_sha(),
        now=resolve_now(),
    )
    tag_set = derive_tags(event)
    image_name = resolve_image_name()

    write_github_outputs(build_outputs(image_name, tag_set))
    print(f"Build ID: {tag_set.build_id}")
    print(f"Alias: {tag_set.latest_id}")
    print(f"Build date: {tag_set.build_date}")
    print(f"Image tags: {image_name}:{tag_set.build_id} {image_name}:{tag_set.latest_id}")


if __name__ == "__main__":
    main()
