"""
Script: flux_ci_tools package
What: Holds Python workflow helpers for image tagging in CI.
Doing: Groups CLI entrypoints, the tag deriver, and shared utility code in one importable package.
Why: Keeps tag logic testable instead of embedding it as shell in workflow YAML.
Goal: Produce image tags that a Flux image-automation controller can order reliably.
"""
