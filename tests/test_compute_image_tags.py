"""
Script: tests/test_compute_image_tags.py
What: Tests for the `compute-image-tags` workflow command.
Doing: Runs `main()` against a fake GitHub Actions environment and reads back `GITHUB_OUTPUT`.
Why: Workflow steps depend on the exact output names and tag formats.
Goal: Catch output regressions before they reach the image push step.
"""

from __future__ import annotations

import os
import tempfile
import unittest
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path
from unittest import mock

from flux_ci_tools import compute_image_tags
from flux_ci_tools.common import CiToolError
from flux_ci_tools.compute_image_tags import build_outputs, default_image_name
from flux_ci_tools.tag_deriver import TagSet


def read_outputs(output_path: Path) -> dict[str, str]:
    values = {}
    for line in output_path.read_text(encoding="utf-8").splitlines():
        key, _, value = line.partition("=")
        values[key] = value
    return values


class ComputeImageTagsMainTests(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        self.output_path = Path(temp_dir.name) / "github_output"
        self.output_path.touch()

    def run_main(self, **env: str) -> dict[str, str]:
        base_env = {
            "GITHUB_OUTPUT": str(self.output_path),
            "GITHUB_REPOSITORY": "Example-Org/web-app",
            "BUILD_EPOCH": "1672531200",
        }
        base_env.update(env)
        with mock.patch.dict(os.environ, base_env, clear=True), redirect_stdout(StringIO()):
            compute_image_tags.main()
        return read_outputs(self.output_path)

    def test_branch_push_outputs(self) -> None:
        outputs = self.run_main(GITHUB_REF="refs/heads/main", GITHUB_SHA="abc1234567890")
        self.assertEqual(outputs["build_id"], "main-abc12345-1672531200")
        self.assertEqual(outputs["latest_id"], "canary")
        self.assertEqual(outputs["build_date"], "2023-01-01T00:00:00Z")
        self.assertEqual(outputs["image"], "ghcr.io/example-org/web-app")
        self.assertEqual(
            outputs["tags"],
            "ghcr.io/example-org/web-app:main-abc12345-1672531200,"
            "ghcr.io/example-org/web-app:canary",
        )

    def test_tag_push_outputs(self) -> None:
        outputs = self.run_main(
            GITHUB_REF="refs/tags/v1.2.3",
            GITHUB_SHA="abc1234567890",
            IMAGE_NAME="registry.example.com/team/app",
        )
        self.assertEqual(outputs["build_id"], "v1.2.3")
        self.assertEqual(outputs["latest_id"], "latest")
        self.assertEqual(outputs["build_image_ref"], "registry.example.com/team/app:v1.2.3")
        self.assertEqual(outputs["latest_image_ref"], "registry.example.com/team/app:latest")

    def test_rejects_tag_named_like_alias(self) -> None:
        with self.assertRaises(CiToolError):
            self.run_main(GITHUB_REF="refs/tags/latest", GITHUB_SHA="abc1234567890")
        self.assertEqual(self.output_path.read_text(encoding="utf-8"), "")

    def test_branch_named_like_alias_is_allowed(self) -> None:
        outputs = self.run_main(GITHUB_REF="refs/heads/canary", GITHUB_SHA="abc1234567890")
        self.assertEqual(outputs["build_id"], "canary-abc12345-1672531200")

    def test_rejects_non_integer_build_epoch(self) -> None:
        with self.assertRaises(CiToolError):
            self.run_main(
                GITHUB_REF="refs/heads/main",
                GITHUB_SHA="abc1234567890",
                BUILD_EPOCH="yesterday",
            )

    def test_rejects_out_of_range_build_epoch(self) -> None:
        with self.assertRaises(CiToolError):
            self.run_main(
                GITHUB_REF="refs/heads/main",
                GITHUB_SHA="abc1234567890",
                BUILD_EPOCH="99999999999999999999",
            )

    def test_missing_ref_is_an_error(self) -> None:
        with self.assertRaises(CiToolError):
            self.run_main(GITHUB_SHA="abc1234567890")

    def test_falls_back_to_git_for_commit_sha(self) -> None:
        with mock.patch.object(
            compute_image_tags, "run_cmd", return_value="0123456789abcdef\n"
        ) as run_cmd:
            outputs = self.run_main(GITHUB_REF="refs/heads/main")
        run_cmd.assert_called_once_with(["git", "rev-parse", "HEAD"])
        self.assertEqual(outputs["build_id"], "main-01234567-1672531200")


class ComputeImageTagsHelperTests(unittest.TestCase):
    def test_default_image_name_lowercases_repository(self) -> None:
        self.assertEqual(default_image_name("Example-Org/Web-App"), "ghcr.io/example-org/web-app")

    def test_default_image_name_requires_owner_and_name(self) -> None:
        with self.assertRaises(CiToolError):
            default_image_name("web-app")

    def test_build_outputs(self) -> None:
        outputs = build_outputs(
            "ghcr.io/example-org/web-app",
            TagSet(build_id="v1.0.0", latest_id="latest", build_date="2023-01-01T00:00:00Z"),
        )
        self.assertEqual(outputs["build_image_ref"], "ghcr.io/example-org/web-app:v1.0.0")
        self.assertEqual(outputs["latest_image_ref"], "ghcr.io/example-org/web-app:latest")
        self.assertEqual(outputs["tags"].split(","), [outputs["build_image_ref"], outputs["latest_image_ref"]])


if __name__ == "__main__":
    unittest.main()
