"""
Tests for GitHub release installs — asset choice, unpacking, versions.
"""

import io
import shutil
import tarfile
from pathlib import Path

import pytest

from provisioner.core.models.recipe import PackageRecipe, ReleaseSpec
from provisioner.core.services.catalog import RecipeCatalog
from provisioner.core.services.host import HostProfile
from provisioner.core.services.installer import PackageInstaller
from provisioner.core.services.releases import (
    RELEASES_DIR_ENV,
    ReleaseInstaller,
    extract_release,
    select_asset,
)

LINUX = HostProfile(os_family="debian", arch="amd64")

ASSETS = [
    {"name": "zz-tool-1.2.0-x86_64-apple-darwin.tar.gz", "browser_download_url": "https://dl/mac"},
    {"name": "zz-tool-1.2.0-x86_64-unknown-linux-musl.zip", "browser_download_url": "https://dl/zip"},
    {"name": "zz-tool-1.2.0-aarch64-unknown-linux-musl.tar.gz", "browser_download_url": "https://dl/arm"},
    {"name": "zz-tool-1.2.0-x86_64-unknown-linux-musl.tar.gz", "browser_download_url": "https://dl/linux"},
]


def _tarball(path: Path, files: dict[str, str], executable: tuple[str, ...] = ()) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, body in files.items():
            data = body.encode()
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mode = 0o755 if name in executable else 0o644
            tar.addfile(info, io.BytesIO(data))
    return path


class StubGitHub:
    """Release API and download stand-ins."""

    def __init__(self, archive: Path, tag: str = "v1.2.0"):
        self.archive = archive
        self.tag = tag
        self.urls: list[str] = []
        self.downloads: list[str] = []

    def fetch(self, url: str) -> dict:
        self.urls.append(url)
        return {"tag_name": self.tag, "assets": ASSETS}

    def download(self, url: str, dest: Path) -> None:
        self.downloads.append(url)
        shutil.copy(self.archive, dest)


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    return _tarball(
        tmp_path / "release.tar.gz",
        {"zz-tool-1.2.0/zz-tool": "#!/bin/sh\necho tool\n", "zz-tool-1.2.0/README.md": "docs"},
        executable=("zz-tool-1.2.0/zz-tool",),
    )


@pytest.fixture
def github(archive: Path) -> StubGitHub:
    return StubGitHub(archive)


@pytest.fixture
def releases(env, tmp_path: Path, github: StubGitHub) -> ReleaseInstaller:
    return ReleaseInstaller(LINUX, env, fetch=github.fetch, download=github.download, root=tmp_path / "opt")


# ── Spec parsing ─────────────────────────────────────────────────────


class TestReleaseSpec:
    def test_parse(self):
        spec = ReleaseSpec.parse("gh:cli/cli@v2.40.0")
        assert (spec.app, spec.repo, spec.version) == ("gh", "cli/cli", "v2.40.0")

    def test_version_defaults_to_latest(self):
        assert ReleaseSpec.parse("rg:BurntSushi/ripgrep").version == "latest"

    @pytest.mark.parametrize("value", ["no-colon", ":cli/cli", "gh:cli", "gh:cli/cli;rm -rf@1"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            ReleaseSpec.parse(value)

    def test_recipe_validates_github_field(self):
        with pytest.raises(ValueError):
            PackageRecipe(name="gh", github="gh:not a repo")

    def test_recipe_methods_order(self):
        recipe = PackageRecipe(name="gh", packages={"brew": "gh"}, github="gh:cli/cli", install_cmd="x")
        assert recipe.methods() == ["brew", "github", "install_cmd"]


# ── Asset selection ──────────────────────────────────────────────────


class TestSelectAsset:
    def test_linux_amd64(self):
        assert select_asset(ASSETS, "debian", "amd64")["browser_download_url"] == "https://dl/linux"

    def test_linux_arm64(self):
        assert select_asset(ASSETS, "fedora", "arm64")["browser_download_url"] == "https://dl/arm"

    def test_macos(self):
        assert select_asset(ASSETS, "macos", "amd64")["browser_download_url"] == "https://dl/mac"

    def test_only_tarballs(self):
        zip_only = [a for a in ASSETS if a["name"].endswith(".zip")]
        assert select_asset(zip_only, "debian", "amd64") is None


# ── Extraction ───────────────────────────────────────────────────────


class TestExtractRelease:
    def test_wrapper_dir_stripped_and_bin_created(self, archive, tmp_path):
        dest = tmp_path / "out"
        dest.mkdir()
        extract_release(archive, dest)
        assert (dest / "zz-tool").is_file()
        assert (dest / "bin" / "zz-tool").resolve() == (dest / "zz-tool").resolve()
        assert not (dest / "bin" / "README.md").exists()

    def test_existing_bin_kept(self, tmp_path):
        archive = _tarball(
            tmp_path / "a.tar.gz",
            {"pkg/bin/zz-tool": "#!/bin/sh\n", "pkg/share/doc": "x"},
            executable=("pkg/bin/zz-tool",),
        )
        dest = tmp_path / "out"
        dest.mkdir()
        extract_release(archive, dest)
        assert (dest / "bin" / "zz-tool").is_file()
        assert (dest / "share" / "doc").is_file()

    def test_bare_binary_not_stripped(self, tmp_path):
        archive = _tarball(tmp_path / "a.tar.gz", {"zz-tool": "#!/bin/sh\n"}, executable=("zz-tool",))
        dest = tmp_path / "out"
        dest.mkdir()
        extract_release(archive, dest)
        assert (dest / "bin" / "zz-tool").exists()

    def test_path_traversal_rejected(self, tmp_path):
        archive = _tarball(tmp_path / "a.tar.gz", {"../escape": "x", "ok": "y"})
        dest = tmp_path / "out"
        dest.mkdir()
        with pytest.raises(tarfile.TarError):
            extract_release(archive, dest)
        assert not (tmp_path / "escape").exists()


# ── Installation ─────────────────────────────────────────────────────


class TestReleaseInstaller:
    def test_install_latest(self, releases, github, tmp_path):
        result = releases.install(ReleaseSpec.parse("zz-tool:owner/zz-tool"))
        assert result.ok
        assert github.urls == ["https://api.github.com/repos/owner/zz-tool/releases/latest"]
        assert github.downloads == ["https://dl/linux"]
        app_dir = tmp_path / "opt" / "zz-tool"
        assert (app_dir / "bin" / "zz-tool").exists()
        assert (app_dir / ".version").read_text().strip() == "v1.2.0"
        assert result.metadata["version"] == "v1.2.0"

    def test_pinned_version_url(self, releases, github):
        releases.install(ReleaseSpec.parse("zz-tool:owner/zz-tool@v1.2.0"))
        assert github.urls == ["https://api.github.com/repos/owner/zz-tool/releases/tags/v1.2.0"]

    def test_same_version_skipped(self, releases, github):
        spec = ReleaseSpec.parse("zz-tool:owner/zz-tool")
        releases.install(spec)
        result = releases.install(spec)
        assert result.status == "skipped"
        assert len(github.downloads) == 1

    def test_fetch_error_is_failure(self, env, tmp_path):
        def offline(url):
            raise OSError("network unreachable")

        releases = ReleaseInstaller(LINUX, env, fetch=offline, root=tmp_path / "opt")
        result = releases.install(ReleaseSpec.parse("zz-tool:owner/zz-tool"))
        assert result.failed
        assert "network unreachable" in result.error

    def test_no_matching_asset(self, env, tmp_path, github):
        host = HostProfile(os_family="termux", arch="arm64")
        releases = ReleaseInstaller(host, env, fetch=github.fetch, download=github.download, root=tmp_path / "opt")
        result = releases.install(ReleaseSpec.parse("zz-tool:owner/zz-tool"))
        assert result.failed
        assert "No .tar.gz asset" in result.error
        assert github.downloads == []

    def test_root_from_environment(self, env, tmp_path):
        env.set(RELEASES_DIR_ENV, str(tmp_path / "custom"))
        assert ReleaseInstaller(LINUX, env).root == tmp_path / "custom"

    def test_root_defaults_under_home(self, env, tmp_path):
        assert ReleaseInstaller(LINUX, env).root == tmp_path / ".local" / "opt"


class TestInstallerGitHubMethod:
    def test_managers_take_precedence(self, installer, releases):
        installer.releases = releases
        recipe = PackageRecipe(name="zz-tool", packages={"mock": "zz-tool"}, github="zz-tool:owner/zz-tool")
        assert installer.select_method(recipe) == "mock"

    def test_github_before_install_cmd(self, installer, releases):
        installer.releases = releases
        recipe = PackageRecipe(name="zz-tool", github="zz-tool:owner/zz-tool", install_cmd="false")
        assert installer.select_method(recipe) == "github"

    def test_without_release_installer(self, installer):
        recipe = PackageRecipe(name="zz-tool", github="zz-tool:owner/zz-tool")
        assert installer.select_method(recipe) is None

    def test_installed_binary_reachable_after_reload(self, managers, env, releases, tmp_path):
        from provisioner.core.models.config import SearchPaths
        from provisioner.core.services.search_path import SearchPathCache

        cache = SearchPathCache(env, SearchPaths(prepend=[], append_globs=[str(tmp_path / "opt" / "*" / "bin")]))
        installer = PackageInstaller(managers, cache, env, releases=releases)
        catalog = RecipeCatalog(installer=installer)
        catalog.register_recipe(PackageRecipe(name="zz-tool", github="zz-tool:owner/zz-tool"))

        result = catalog.install("zz-tool")

        assert result.ok
        cache.reload()
        assert cache.which("zz-tool") == str(tmp_path / "opt" / "zz-tool" / "bin" / "zz-tool")
