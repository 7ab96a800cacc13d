"""
Script: flux_ci_tools/flux_image_policy.py
What: Describes how Flux should pick the newest image built by this workflow.
Doing: Builds the build-ID filter regex, orders build IDs by embedded timestamp, and renders an `ImagePolicy`.
Why: Build IDs are only useful to automation if the policy sorts on the timestamp, not on push order.
Goal: Keep the CI tag format and the cluster-side policy defined in one place.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable

from flux_ci_tools.common import optional_env, require_env
from flux_ci_tools.tag_deriver import branch_name_from_ref


IMAGE_POLICY_API_VERSION = "image.toolkit.fluxcd.io/v1beta2"
DEFAULT_NAMESPACE = "flux-system"
DEFAULT_BRANCH = "main"


def build_id_pattern(branch: str) -> str:
    """
    Return the regex Flux uses to select build IDs for one branch.

    `branch` may be a full branch name or ref; only its last path segment is
    used, the same as in the build IDs themselves (`feature/login` -> `login`).
    The `ts` group captures the Unix timestamp so the policy can use
    `extract: "$ts"` with numerical ordering.
    """
    branch_name = branch_name_from_ref(branch)
    return rf"^{re.escape(branch_name)}-[a-fA-F0-9]+-(?P<ts>[0-9]+)$"


def build_id_timestamp(build_id: str, branch: str) -> int | None:
    match = re.match(build_id_pattern(branch), build_id)
    if not match:
        return None
    return int(match.group("ts"))


def select_newest_build_id(tags: Iterable[str], branch: str) -> str | None:
    """
    Pick the tag an `ImagePolicy` with numerical ascending order would choose.

    Aliases such as `canary` and tags from other branches never match the
    pattern and are skipped. Registry push order does not matter.
    """
    newest_tag: str | None = None
    newest_ts = -1
    for tag in tags:
        ts = build_id_timestamp(tag, branch)
        if ts is not None and ts > newest_ts:
            newest_tag, newest_ts = tag, ts
    return newest_tag


def image_policy_document(
    *,
    name: str,
    namespace: str,
    image_repository: str,
    branch: str,
    semver_range: str = "",
) -> dict:
    """
    Build a Flux `ImagePolicy` manifest as a plain dict.

    Two modes:
    - branch builds: filter on the build-ID pattern and sort by timestamp
    - release builds (`semver_range` set): sort tag builds by semantic version
    """
    spec: dict = {"imageRepositoryRef": {"name": image_repository}}
    if semver_range:
        spec["policy"] = {"semver": {"range": semver_range}}
    else:
        spec["filterTags"] = {"pattern": build_id_pattern(branch), "extract": "$ts"}
        spec["policy"] = {"numerical": {"order": "asc"}}

    return {
        "apiVersion": IMAGE_POLICY_API_VERSION,
        "kind": "ImagePolicy",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def main() -> None:
    document = image_policy_document(
        name=require_env("POLICY_NAME"),
        namespace=optional_env("POLICY_NAMESPACE", DEFAULT_NAMESPACE),
        image_repository=require_env("IMAGE_REPOSITORY_NAME"),
        branch=optional_env("POLICY_BRANCH", DEFAULT_BRANCH),
        semver_range=optional_env("SEMVER_RANGE").strip(),
    )
    rendered = json.dumps(document, indent=2) + "\n"

    # JSON is valid input for `kubectl apply -f`, so no YAML tooling is needed.
    output_path = optional_env("POLICY_OUTPUT").strip()
    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rendered, encoding="utf-8")
        print(f"Wrote ImagePolicy to {path}")
    print(rendered, end="")


if __name__ == "__main__":
    main()
