import json
import tempfile
import unittest
from pathlib import Path

from git_repo import GitRepo, requires_git
from gitversion.config.loader import CONFIG_FILE_NAME, ProjectConfig, parse_config
from gitversion.exceptions import ChangelogGenerationError, ConstructionError, GitVersionError
from gitversion.session import EmptyGitVersion, GitVersion, build_git_version
from gitversion.versioning.info import EMPTY_INFO


class TestEmptyGitVersion(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name)

    def test_missing_repository_strict(self) -> None:
        with self.assertRaises(ConstructionError):
            build_git_version(root=self.tmp)

    def test_missing_directories(self) -> None:
        with self.assertRaises(ConstructionError):
            build_git_version()

    def test_missing_repository_non_strict(self) -> None:
        version = build_git_version(root=self.tmp, strict=False)
        self.assertIsInstance(version, EmptyGitVersion)
        self.assertEqual(version.get_info(), EMPTY_INFO)
        self.assertEqual(version.tag_offset(), "0.0.0")
        self.assertIsNone(version.get_url())

    def test_empty_version_getters(self) -> None:
        version = EmptyGitVersion()
        with self.assertRaises(GitVersionError):
            version.get_subprojects()
        with self.assertRaises(GitVersionError):
            version.root
        with self.assertRaises(GitVersionError):
            version.tag_prefix
        with self.assertRaises(ChangelogGenerationError):
            version.generate_changelog()

    def test_empty_version_json(self) -> None:
        data = json.loads(EmptyGitVersion().to_json())
        self.assertEqual(data["info"], EMPTY_INFO.to_dict())
        self.assertIsNone(data["url"])
        self.assertIsNone(data["root"])
        self.assertEqual(data["filters"], [])
        self.assertEqual(data["subprojects"], [])


@requires_git
class TestGitVersion(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.repo = GitRepo(Path(tmp.name) / "repo")
        self.root = self.repo.root.resolve()

    def build(self, **kwargs) -> GitVersion:
        kwargs.setdefault("root", self.root)
        version = build_git_version(**kwargs)
        self.addCleanup(version.close)
        return version

    def test_offset_from_tag(self) -> None:
        self.repo.commit("A")
        self.repo.tag("v1.0")
        self.repo.commit("B")
        head = self.repo.commit("C")

        info = self.build().get_info()
        self.assertEqual(info.tag, "1.0")
        self.assertEqual(info.offset, "2")
        self.assertEqual(info.commit, head)
        self.assertEqual(info.abbreviated_id, head[:8])
        self.assertEqual(info.hash, head[:8])
        self.assertEqual(info.branch, "master")
        self.assertEqual(self.build().tag_offset(), "1.0.2")

    def test_offset_on_tagged_commit(self) -> None:
        self.repo.commit("A")
        self.repo.tag("1.0", annotated=True)
        self.assertEqual(self.build().tag_offset(), "1.0.0")

    def test_nearest_tag_and_filters(self) -> None:
        self.repo.commit("A")
        self.repo.tag("1.0")
        self.repo.commit("B")
        self.repo.tag("1.1-rc1")
        self.repo.commit("C")

        self.assertEqual(self.build().tag_offset(), "1.1-rc1.1")
        version = self.build(config=parse_config({"root": {"filters": ["!*-rc*"]}}))
        self.assertEqual(version.tag_offset(), "1.0.2")

    def test_inclusion_filter_skips_nearer_tags(self) -> None:
        self.repo.commit("A")
        self.repo.tag("1.0")
        self.repo.commit("B")
        self.repo.tag("2.0")
        self.repo.commit("C")
        self.repo.tag("2.1")
        self.repo.commit("D")

        version = self.build(config=parse_config({"root": {"filters": ["1.*"]}}))
        self.assertEqual(version.tag_offset(), "1.0.3")

    def test_subproject_only_commits_keep_describe_offset(self) -> None:
        self.repo.write(CONFIG_FILE_NAME, json.dumps({"sub": {}}))
        self.repo.commit("A", {"file.txt": "a\n", "sub/a.txt": "a\n"})
        self.repo.tag("1.0")
        self.repo.commit("B", {"sub/a.txt": "b\n"})
        self.repo.commit("C", {"sub/a.txt": "c\n"})

        version = self.build()
        self.assertEqual(version.exclude_paths, ["sub"])
        self.assertEqual(version.get_info().offset, "2")

    def test_feature_branch_suffix(self) -> None:
        self.repo.commit("A")
        self.repo.tag("1.0")
        self.repo.git("checkout", "-q", "-b", "feature/thing")
        self.repo.commit("B")

        version = self.build()
        self.assertEqual(version.tag_offset_branch(), "1.0.1-feature-thing")
        self.assertEqual(version.mc_tag_offset_branch("1.21"), "1.21-1.0.1-feature-thing")

    def test_detached_head(self) -> None:
        first = self.repo.commit("A")
        self.repo.tag("1.0")
        self.repo.commit("B")
        self.repo.git("checkout", "-q", first)

        info = self.build().get_info()
        self.assertEqual(info.branch, "")
        self.assertEqual(info.tag_offset_branch(), "1.0.0")

    def test_empty_repository(self) -> None:
        self.assertEqual(self.build(strict=False).get_info(), EMPTY_INFO)
        with self.assertRaises(GitVersionError):
            self.build().get_info()

    def test_no_matching_tag(self) -> None:
        self.repo.commit("A")
        self.repo.tag("nightly")
        self.assertEqual(self.build(strict=False).tag_offset(), "0.0.0")
        with self.assertRaises(GitVersionError):
            self.build().get_info()

    def test_project_outside_root(self) -> None:
        with tempfile.TemporaryDirectory() as other:
            with self.assertRaises(ConstructionError):
                build_git_version(root=self.root, project=Path(other))
            with self.assertRaises(ConstructionError):
                GitVersion(self.root / ".git", self.root, Path(other), ProjectConfig())

    def test_root_is_discovered_from_project(self) -> None:
        self.repo.write(CONFIG_FILE_NAME, json.dumps({"sub": {}}))
        self.repo.commit("A", {"sub/file.txt": "a\n"})
        version = build_git_version(project=self.root / "sub")
        self.addCleanup(version.close)
        self.assertEqual(version.root, self.root)
        self.assertEqual(version.git_dir, self.root / ".git")
        self.assertEqual(version.project, self.root / "sub")
        self.assertEqual(version.project_path, "sub")

    def test_unconfigured_subproject(self) -> None:
        self.repo.commit("A", {"other/x.txt": "x\n"})
        self.repo.tag("1.0")
        with self.assertRaises(ConstructionError):
            build_git_version(root=self.root, project=self.root / "other")
        version = build_git_version(root=self.root, project=self.root / "other", strict=False)
        self.assertIsInstance(version, EmptyGitVersion)

    def test_remote_url(self) -> None:
        self.repo.commit("A")
        self.repo.git("remote", "add", "origin", "git@github.com:Org/Repo.git")
        version = self.build()
        self.assertEqual(version.get_url(), "https://github.com/Org/Repo")
        self.assertEqual(version.to_output().url, "https://github.com/Org/Repo")

    def test_close(self) -> None:
        self.repo.commit("A")
        self.repo.tag("1.0")
        with self.build() as version:
            self.assertEqual(version.tag_offset(), "1.0.0")
        self.assertTrue(version.client.closed)
        version.close()
        # The cached info survives closing.
        self.assertEqual(version.tag_offset(), "1.0.0")


@requires_git
class TestMonorepo(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.repo = GitRepo(Path(tmp.name) / "repo")
        self.root = self.repo.root.resolve()

        self.repo.write(CONFIG_FILE_NAME, json.dumps({"sub": {}, "sub/inner": {"tag": "inner"}}))
        self.repo.commit("Initial", {"file.txt": "0\n", "sub/a.txt": "0\n", "sub/inner/b.txt": "0\n"})
        self.repo.tag("1.0")
        self.repo.tag("sub-1.0")
        self.repo.commit("Sub only", {"sub/a.txt": "1\n"})
        self.repo.commit("Root and sub", {"file.txt": "2\n", "sub/a.txt": "2\n"})
        self.repo.commit("Root only", {"file.txt": "3\n"})
        self.repo.commit("Inner only", {"sub/inner/b.txt": "4\n"})

    def build(self, project=None, **kwargs) -> GitVersion:
        version = build_git_version(root=self.root, project=project, **kwargs)
        self.addCleanup(version.close)
        return version

    def test_root_ignores_subproject_commits(self) -> None:
        version = self.build()
        self.assertEqual(version.exclude_paths, ["sub", "sub/inner"])
        self.assertEqual(version.include_paths, [])
        self.assertEqual(version.tag_offset(), "1.0.2")

    def test_subproject_offset(self) -> None:
        version = self.build(self.root / "sub")
        self.assertEqual(version.tag_prefix, "sub-")
        self.assertEqual(version.project_path, "sub")
        self.assertEqual(version.include_paths, ["sub"])
        self.assertEqual(version.exclude_paths, ["sub/inner"])
        self.assertEqual(version.get_subproject_paths(), ["inner"])
        self.assertEqual(version.get_subproject_paths(from_root=True), ["sub/inner"])
        self.assertEqual(version.get_subprojects(), [self.root / "sub" / "inner"])
        self.assertEqual(version.tag_offset(), "1.0.2")

    def test_nested_directory_is_not_configured(self) -> None:
        (self.root / "sub" / "deeper").mkdir()
        with self.assertRaises(ConstructionError):
            self.build(self.root / "sub" / "deeper")

    def test_relative_paths(self) -> None:
        version = self.build(self.root / "sub")
        self.assertEqual(version.get_relative_path(self.root / "sub" / "inner"), "inner")
        self.assertEqual(version.get_relative_path(self.root / "sub", from_root=True), "sub")

    def test_tag_prefix_change_invalidates_info(self) -> None:
        version = self.build(self.root / "sub")
        self.assertEqual(version.tag_offset(), "1.0.2")
        version.tag_prefix = "missing"
        self.assertEqual(version.tag_prefix, "missing-")
        with self.assertRaises(GitVersionError):
            version.get_info()
        version.tag_prefix = "sub"
        self.assertEqual(version.tag_offset(), "1.0.2")

    def test_subproject_change_invalidates_info(self) -> None:
        version = self.build()
        self.assertEqual(version.tag_offset(), "1.0.2")
        version.set_subprojects([])
        self.assertEqual(version.tag_offset(), "1.0.4")

    def test_invalid_configuration(self) -> None:
        config = parse_config({"missing": {}})
        with self.assertRaises(ConstructionError):
            self.build(config=config)
        self.assertIsInstance(self.build(config=config, strict=False), EmptyGitVersion)

    def test_explicit_config_file(self) -> None:
        config_file = self.root / "other.json"
        config_file.write_text(json.dumps({"root": {"tag": "sub"}}))
        version = self.build(config_file=config_file)
        self.assertEqual(version.tag_prefix, "sub-")
        self.assertEqual(version.exclude_paths, [])
        self.assertEqual(version.tag_offset(), "1.0.4")

    def test_json_output(self) -> None:
        version = self.build(self.root / "sub")
        line = version.to_json()
        self.assertNotIn("\n", line)
        data = json.loads(line)
        self.assertEqual(data["info"]["tag"], "1.0")
        self.assertEqual(data["info"]["offset"], "2")
        self.assertEqual(data["root"], str(self.root))
        self.assertEqual(data["project"], str(self.root / "sub"))
        self.assertEqual(data["project_path"], "sub")
        self.assertEqual(data["tag_prefix"], "sub-")
        self.assertEqual(data["include_paths"], ["sub"])
        self.assertEqual(data["exclude_paths"], ["sub/inner"])
        self.assertEqual(data["subprojects"], ["sub/inner"])
        self.assertEqual(data["subproject_paths"], ["inner"])
        self.assertIsNone(data["url"])


@requires_git
class TestSessionChangelog(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.repo = GitRepo(Path(tmp.name) / "repo")
        self.root = self.repo.root.resolve()
        self.first = self.repo.commit("Ignored")
        self.tagged = self.repo.commit("First")
        self.repo.tag("1.0")
        self.repo.commit("Second")
        self.head = self.repo.commit("Third (#7)")

    def test_start_tag(self) -> None:
        with build_git_version(root=self.root) as version:
            text = version.generate_changelog(start="1.0", plain_text=True)
        self.assertEqual(
            text,
            "master Changelog\n"
            "1.0\n"
            "===\n"
            " - 1.0.2 Third (#7)\n"
            " - 1.0.1 Second\n"
            " - 1.0.0 First\n"
            "\n",
        )

    def test_markdown_with_url(self) -> None:
        url = "https://example.com/r"
        with build_git_version(root=self.root) as version:
            text = version.generate_changelog(start=self.tagged, url=url)
        self.assertTrue(text.startswith(f"### [master Changelog]({url}/compare/{self.tagged}...{self.head})\n"))
        self.assertIn(f" - 1.0.2 Third ([#7]({url}/pull/7))\n", text)
        self.assertIn(f" - [1.0.0]({url}/tree/1.0) First\n", text)

    def test_default_start_is_first_commit(self) -> None:
        with build_git_version(root=self.root) as version:
            text = version.generate_changelog(plain_text=True)
        self.assertTrue(text.endswith(" - 1.0-pre-1 Ignored\n"))

    def test_default_start_is_merge_base_with_remote(self) -> None:
        self.repo.git("update-ref", "refs/remotes/origin/master", self.tagged)
        with build_git_version(root=self.root) as version:
            text = version.generate_changelog(plain_text=True)
        self.assertNotIn("Ignored", text)
        self.assertIn(" - 1.0.0 First\n", text)

    def test_failure(self) -> None:
        with build_git_version(root=self.root, strict=False) as version:
            self.assertEqual(version.generate_changelog(start="does-not-exist"), "")
        with build_git_version(root=self.root) as version:
            with self.assertRaises(ChangelogGenerationError):
                version.generate_changelog(start="does-not-exist")


if __name__ == "__main__":
    unittest.main()
