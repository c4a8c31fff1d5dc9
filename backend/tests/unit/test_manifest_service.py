"""
Unit tests for manifest resolution.

Tests:
- Channel file parsing (windows/mac/linux, .yml/.yaml)
- Manifest shape, field order and omission of unset fields
- Latest-release selection by release_date, unpublished releases ignored
- Private release gating (401 without credential, 403 invalid/expired)
- Staged rollout gating and telemetry
- File download resolution
"""

from datetime import datetime, timedelta

import pytest
import yaml

from backend.src.models import DownloadEventType, DownloadStat, RolloutTracking
from backend.src.services.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from backend.src.services.manifest_service import (
    ManifestResolver,
    build_manifest,
    format_release_date,
    is_channel_file,
    is_download_file,
    parse_channel_file,
    render_manifest_yaml,
)
from backend.src.services.telemetry_service import ClientInfo


API_KEY = "uhk_test-key-plaintext"  # noqa: S105


class TestParseChannelFile:
    """Tests for parse_channel_file()."""

    @pytest.mark.parametrize("name,expected", [
        ("latest.yml", ("latest", "windows")),
        ("latest-mac.yml", ("latest", "mac")),
        ("latest-linux.yml", ("latest", "linux")),
        ("beta.yaml", ("beta", "windows")),
        ("beta-mac.yaml", ("beta", "mac")),
        ("release-candidate-linux.yml", ("release-candidate", "linux")),
    ])
    def test_valid_names(self, name, expected):
        assert parse_channel_file(name) == expected

    @pytest.mark.parametrize("name", ["latest.json", "latest", ".yml", "-mac.yml"])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            parse_channel_file(name)

    def test_classification(self):
        assert is_channel_file("latest.yml")
        assert not is_channel_file("Setup.exe")
        assert is_download_file("Demo-Setup-2.1.0.exe")
        assert is_download_file("Demo-2.1.0.AppImage")
        assert is_download_file("Demo-2.1.0.tar.gz")
        assert not is_download_file("notes.txt")


class TestBuildManifest:
    """Tests for build_manifest() and YAML rendering."""

    def test_release_date_format(self, sample_release):
        release = sample_release(release_date=datetime(2026, 3, 1, 12, 0, 0, 123456))

        assert format_release_date(release) == "2026-03-01T12:00:00.123Z"

    def test_optional_fields_omitted(self, sample_release, sample_release_file):
        release = sample_release()
        sample_release_file(release)

        manifest = build_manifest(release)

        assert "releaseName" not in manifest
        assert "releaseNotes" not in manifest
        assert "arch" not in manifest["files"][0]

    def test_full_manifest(self, sample_release, sample_release_file):
        release = sample_release(name="Spring Update", notes="Bug fixes", staging_percentage=25)
        primary = sample_release_file(release, filename="Demo-Setup-2.1.0.exe", size=2048, arch="x64")
        sample_release_file(release, filename="Demo-Setup-2.1.0-arm64.exe", arch="arm64")

        manifest = build_manifest(release)

        assert list(manifest.keys()) == [
            "version", "releaseDate", "releaseName", "releaseNotes",
            "path", "sha512", "stagingPercentage", "files",
        ]
        assert manifest["version"] == "2.1.0"
        assert manifest["releaseName"] == "Spring Update"
        assert manifest["releaseNotes"] == "Bug fixes"
        assert manifest["path"] == "Demo-Setup-2.1.0.exe"
        assert manifest["sha512"] == primary.sha512
        assert manifest["stagingPercentage"] == 25
        assert manifest["files"] == [
            {"url": "Demo-Setup-2.1.0.exe", "sha512": primary.sha512, "size": 2048, "arch": "x64"},
            {
                "url": "Demo-Setup-2.1.0-arm64.exe",
                "sha512": release.files[1].sha512,
                "size": 1024,
                "arch": "arm64",
            },
        ]

    def test_yaml_keeps_order(self, sample_release, sample_release_file):
        release = sample_release(name="Spring Update")
        sample_release_file(release)

        text = render_manifest_yaml(build_manifest(release))

        assert text.startswith("version: 2.1.0\n")
        assert text.index("releaseDate") < text.index("releaseName") < text.index("path")
        assert yaml.safe_load(text)["files"][0]["url"] == "Demo-Setup-2.1.0.exe"


class TestResolveManifest:
    """Tests for ManifestResolver.resolve_manifest()."""

    def test_public_release(self, test_db_session, sample_release, sample_release_file):
        release = sample_release()
        sample_release_file(release)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo()
        )

        assert manifest["version"] == "2.1.0"
        assert manifest["path"] == "Demo-Setup-2.1.0.exe"

    def test_latest_by_release_date(
        self, test_db_session, sample_application, sample_release, sample_release_file
    ):
        app = sample_application()
        newer = sample_release(application=app, version="1.0.1", release_date=datetime(2026, 1, 1))
        older = sample_release(application=app, version="1.1.0", release_date=datetime(2025, 1, 1))
        sample_release_file(newer, filename="Setup-1.0.1.exe")
        sample_release_file(older, filename="Setup-1.1.0.exe")

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo()
        )

        assert manifest["version"] == "1.0.1"

    def test_unpublished_ignored(
        self, test_db_session, sample_application, sample_release, sample_release_file
    ):
        app = sample_application()
        published = sample_release(application=app, version="1.0.0", release_date=datetime(2025, 1, 1))
        draft = sample_release(
            application=app, version="2.0.0", published=False, release_date=datetime(2026, 1, 1)
        )
        sample_release_file(published, filename="Setup-1.0.0.exe")
        sample_release_file(draft, filename="Setup-2.0.0.exe")

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo()
        )

        assert manifest["version"] == "1.0.0"

    def test_channel_and_platform_scoping(self, test_db_session, sample_release, sample_release_file):
        release = sample_release(channel="beta", platform="mac")
        sample_release_file(release, filename="Demo-2.1.0.dmg")
        resolver = ManifestResolver(test_db_session)

        assert resolver.resolve_manifest("demo-app", "beta", "mac", ClientInfo())["path"] == "Demo-2.1.0.dmg"
        with pytest.raises(NotFoundError):
            resolver.resolve_manifest("demo-app", "latest", "mac", ClientInfo())
        with pytest.raises(NotFoundError):
            resolver.resolve_manifest("demo-app", "beta", "windows", ClientInfo())

    def test_unknown_application(self, test_db_session):
        with pytest.raises(NotFoundError):
            ManifestResolver(test_db_session).resolve_manifest(
                "missing-app", "latest", "windows", ClientInfo()
            )

    def test_malformed_slug(self, test_db_session):
        with pytest.raises(ValidationError):
            ManifestResolver(test_db_session).resolve_manifest(
                "Bad_Slug", "latest", "windows", ClientInfo()
            )

    def test_release_without_files(self, test_db_session, sample_release):
        sample_release()

        with pytest.raises(NotFoundError):
            ManifestResolver(test_db_session).resolve_manifest(
                "demo-app", "latest", "windows", ClientInfo()
            )

    def test_check_event_recorded(self, test_db_session, sample_release, sample_release_file):
        release = sample_release()
        sample_release_file(release)

        ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows",
            ClientInfo(ip="203.0.113.7", user_agent="electron-builder"),
        )

        stat = test_db_session.query(DownloadStat).one()
        assert stat.event_type == DownloadEventType.CHECK.value
        assert stat.platform == "windows"
        assert stat.ip == "203.0.113.7"
        assert stat.user_agent == "electron-builder"


class TestPrivateReleases:
    """Access control for private releases."""

    @pytest.fixture
    def private_release(self, sample_release, sample_release_file):
        release = sample_release(is_public=False)
        sample_release_file(release)
        return release

    def test_no_credential(self, test_db_session, private_release):
        with pytest.raises(UnauthorizedError):
            ManifestResolver(test_db_session).resolve_manifest(
                "demo-app", "latest", "windows", ClientInfo()
            )

    def test_invalid_credential(self, test_db_session, private_release, sample_api_key):
        sample_api_key(private_release.application, plaintext=API_KEY)

        with pytest.raises(ForbiddenError):
            ManifestResolver(test_db_session).resolve_manifest(
                "demo-app", "latest", "windows", ClientInfo(credential="uhk_wrong")
            )

    def test_expired_credential(self, test_db_session, private_release, sample_api_key):
        sample_api_key(
            private_release.application,
            plaintext=API_KEY,
            expires_at=datetime.utcnow() - timedelta(days=1),
        )

        with pytest.raises(ForbiddenError):
            ManifestResolver(test_db_session).resolve_manifest(
                "demo-app", "latest", "windows", ClientInfo(credential=API_KEY)
            )

    def test_valid_credential(self, test_db_session, private_release, sample_api_key):
        sample_api_key(private_release.application, plaintext=API_KEY)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo(credential=API_KEY)
        )

        assert manifest["version"] == "2.1.0"

    def test_rejected_request_records_nothing(self, test_db_session, private_release):
        with pytest.raises(UnauthorizedError):
            ManifestResolver(test_db_session).resolve_manifest(
                "demo-app", "latest", "windows", ClientInfo(client_id="hello")
            )

        assert test_db_session.query(DownloadStat).count() == 0
        assert test_db_session.query(RolloutTracking).count() == 0

    def test_public_release_ignores_bad_credential(
        self, test_db_session, sample_release, sample_release_file
    ):
        release = sample_release()
        sample_release_file(release)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo(credential="uhk_whatever")
        )

        assert manifest is not None


class TestStagedRollout:
    """Rollout gating on the manifest path."""

    def test_ineligible_client_gets_none(self, test_db_session, sample_release, sample_release_file):
        # "abc" is in bucket 54
        release = sample_release(staging_percentage=50)
        sample_release_file(release)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo(client_id="abc")
        )

        assert manifest is None
        assert test_db_session.query(DownloadStat).count() == 0
        assert test_db_session.query(RolloutTracking).one().eligible is False

    def test_eligible_client_gets_manifest(
        self, test_db_session, sample_release, sample_release_file
    ):
        # "hello" is in bucket 22
        release = sample_release(staging_percentage=50)
        sample_release_file(release)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo(client_id="hello")
        )

        assert manifest["stagingPercentage"] == 50
        assert test_db_session.query(RolloutTracking).one().eligible is True

    def test_no_client_id_skips_rollout(self, test_db_session, sample_release, sample_release_file):
        release = sample_release(staging_percentage=0)
        sample_release_file(release)

        manifest = ManifestResolver(test_db_session).resolve_manifest(
            "demo-app", "latest", "windows", ClientInfo()
        )

        assert manifest is not None
        assert test_db_session.query(RolloutTracking).count() == 0


class TestResolveDownload:
    """Tests for ManifestResolver.resolve_download()."""

    def test_resolves_file(self, test_db_session, sample_release, sample_release_file):
        release = sample_release()
        sample_release_file(release, arch="x64")

        release_file = ManifestResolver(test_db_session).resolve_download(
            "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo()
        )

        assert release_file.storage_key == "latest/windows/2.1.0/Demo-Setup-2.1.0.exe"
        stat = test_db_session.query(DownloadStat).one()
        assert stat.event_type == DownloadEventType.DOWNLOAD.value
        assert stat.arch == "x64"

    def test_download_not_gated_by_rollout(
        self, test_db_session, sample_release, sample_release_file
    ):
        release = sample_release(staging_percentage=0)
        sample_release_file(release)

        release_file = ManifestResolver(test_db_session).resolve_download(
            "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo(client_id="abc")
        )

        assert release_file is not None
        assert test_db_session.query(RolloutTracking).count() == 0

    def test_unknown_file(self, test_db_session, sample_release, sample_release_file):
        release = sample_release()
        sample_release_file(release)

        with pytest.raises(NotFoundError):
            ManifestResolver(test_db_session).resolve_download(
                "demo-app", "Other.exe", ClientInfo()
            )

    def test_file_scoped_to_application(
        self, test_db_session, sample_application, sample_release, sample_release_file
    ):
        other = sample_application(slug="other-app")
        release = sample_release(application=other)
        sample_release_file(release)
        sample_application(slug="demo-app")

        with pytest.raises(NotFoundError):
            ManifestResolver(test_db_session).resolve_download(
                "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo()
            )

    def test_unpublished_release(self, test_db_session, sample_release, sample_release_file):
        release = sample_release(published=False)
        sample_release_file(release)

        with pytest.raises(NotFoundError):
            ManifestResolver(test_db_session).resolve_download(
                "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo()
            )

    def test_shared_filename_resolves_published(
        self, test_db_session, sample_application, sample_release, sample_release_file
    ):
        app = sample_application()
        published = sample_release(application=app, version="2.0.0")
        draft = sample_release(
            application=app, version="2.1.0", published=False,
            release_date=datetime(2026, 4, 1),
        )
        sample_release_file(published, filename="Demo-Setup.exe")
        sample_release_file(draft, filename="Demo-Setup.exe")

        release_file = ManifestResolver(test_db_session).resolve_download(
            "demo-app", "Demo-Setup.exe", ClientInfo()
        )

        assert release_file.release_id == published.id

    def test_shared_filename_newest_release_date(
        self, test_db_session, sample_application, sample_release, sample_release_file
    ):
        app = sample_application()
        newer = sample_release(application=app, version="2.0.0", release_date=datetime(2026, 4, 1))
        older = sample_release(application=app, version="2.1.0", release_date=datetime(2026, 1, 1))
        sample_release_file(newer, filename="Demo-Setup.exe")
        sample_release_file(older, filename="Demo-Setup.exe")

        release_file = ManifestResolver(test_db_session).resolve_download(
            "demo-app", "Demo-Setup.exe", ClientInfo()
        )

        assert release_file.release_id == newer.id

    def test_private_file_requires_key(
        self, test_db_session, sample_release, sample_release_file, sample_api_key
    ):
        release = sample_release(is_public=False)
        sample_release_file(release)
        sample_api_key(release.application, plaintext=API_KEY)
        resolver = ManifestResolver(test_db_session)

        with pytest.raises(UnauthorizedError):
            resolver.resolve_download("demo-app", "Demo-Setup-2.1.0.exe", ClientInfo())
        with pytest.raises(ForbiddenError):
            resolver.resolve_download(
                "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo(credential="uhk_wrong")
            )
        assert resolver.resolve_download(
            "demo-app", "Demo-Setup-2.1.0.exe", ClientInfo(credential=API_KEY)
        ) is not None
