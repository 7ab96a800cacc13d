"""
Script: flux_ci_tools/trigger_filter.py
What: Decides whether a pushed ref should produce an image build.
Doing: Evaluates branch/tag glob filters with GitHub workflow filter rules and writes `build=true|false`.
Why: Lets one broadly-triggered workflow skip builds for refs it does not publish (for example `release/*` tags).
Goal: Only hand refs the workflow intends to build to the tag deriver.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from flux_ci_tools.common import CiToolError, env_list, require_env, write_github_outputs
from flux_ci_tools.tag_deriver import RefKind, parse_ref


# A quantifier cannot follow a wildcard or another quantifier; such `?`/`+` are literal.
REPEATABLE_EXCLUDED = frozenset({".*", "[^/]*", "?", "+"})


@dataclass(frozen=True)
class TriggerFilters:
    branches: tuple[str, ...] = ()
    branches_ignore: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    tags_ignore: tuple[str, ...] = ()


def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """
    Translate one workflow filter glob into a compiled regex.

    Supported syntax (same as `on.push.branches` in workflow files):
    - `*` matches zero or more characters, but not `/`
    - `**` matches zero or more of any character
    - `?` makes the preceding character optional
    - `+` matches one or more of the preceding character
    - `[...]` is a character class such as `[0-9]`
    """
    parts: list[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if pattern.startswith("**", index):
            parts.append(".*")
            index += 2
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char in "?+" and parts and parts[-1] not in REPEATABLE_EXCLUDED:
            parts.append(char)
        elif char == "[":
            end = pattern.find("]", index + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                parts.append(pattern[index : end + 1])
                index = end + 1
                continue
        else:
            parts.append(re.escape(char))
        index += 1
    return re.compile("^" + "".join(parts) + "$")


def matches_patterns(name: str, patterns: Sequence[str]) -> bool:
    """
    Evaluate include patterns in order; the last matching pattern wins.

    A pattern starting with `!` excludes names that an earlier pattern
    included, and a later positive pattern can include them again.
    """
    included = False
    for pattern in patterns:
        negated = pattern.startswith("!")
        glob = pattern[1:] if negated else pattern
        if pattern_to_regex(glob).match(name):
            included = not negated
    return included


def ref_passes_filters(ref_kind: RefKind, name: str, filters: TriggerFilters) -> bool:
    """Return True when a push to this ref would trigger the workflow."""
    if ref_kind is RefKind.TAG:
        include, ignore = filters.tags, filters.tags_ignore
        other_kind_filtered = bool(filters.branches or filters.branches_ignore)
    else:
        include, ignore = filters.branches, filters.branches_ignore
        other_kind_filtered = bool(filters.tags or filters.tags_ignore)

    if include and ignore:
        raise CiToolError(
            f"Cannot combine include and ignore filters for {ref_kind.value} refs"
        )
    if not include and not ignore:
        # Filtering only the other ref kind means this kind never triggers.
        return not other_kind_filtered
    if ignore:
        return not any(pattern_to_regex(pattern).match(name) for pattern in ignore)
    return matches_patterns(name, include)


def short_ref_name(ref_kind: RefKind, ref: str) -> str:
    # Filters match against the name without the `refs/heads/` or `refs/tags/` prefix.
    prefix = "refs/tags/" if ref_kind is RefKind.TAG else "refs/heads/"
    return ref.removeprefix(prefix)


def load_filters() -> TriggerFilters:
    return TriggerFilters(
        branches=tuple(env_list("TRIGGER_BRANCHES")),
        branches_ignore=tuple(env_list("TRIGGER_BRANCHES_IGNORE")),
        tags=tuple(env_list("TRIGGER_TAGS")),
        tags_ignore=tuple(env_list("TRIGGER_TAGS_IGNORE")),
    )


def main() -> None:
    ref_kind, ref = parse_ref(require_env("GITHUB_REF"))
    name = short_ref_name(ref_kind, ref)
    should_build = ref_passes_filters(ref_kind, name, load_filters())

    write_github_outputs({"build": "true" if should_build else "false"})
    if should_build:
        print(f"{ref_kind.value.capitalize()} {name} matches trigger filters; image build will run.")
    else:
        print(f"{ref_kind.value.capitalize()} {name} is filtered out; skipping image build.")


if __name__ == "__main__":
    main()
