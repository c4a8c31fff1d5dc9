"""
Manifest resolution for updater clients.

Resolves the release an updater should see for an (application, channel,
platform) request, applies access control and staged rollout, records
telemetry, and builds the electron-updater style manifest. The file
download path goes through the same authorize-and-track procedure.

Resolution order (manifest path):
1. Application by slug (unknown slug -> not found)
2. Latest published release for (app, channel, platform) by release_date
3. No release or no files -> not found
4. Private release -> credential required (401) and must match a live key (403)
5. Client id present -> rollout decision; ineligible -> empty success
6. Record a 'check' event
7. Build manifest

All "doesn't exist" causes raise the same NotFoundError class so the API
layer can answer with one generic body.
"""

import re
from typing import Any, Dict, Optional, Tuple

import yaml
from sqlalchemy.orm import Session, selectinload

from backend.src.models import Application, DownloadEventType, Release, ReleaseFile
from backend.src.models.application import SLUG_PATTERN
from backend.src.services.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from backend.src.services.key_service import KeyVerifier
from backend.src.services.rollout_service import RolloutAssigner
from backend.src.services.telemetry_service import ClientInfo, TelemetryService
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


CHANNEL_FILE_SUFFIXES = (".yml", ".yaml")

# Installer/package extensions served from the channel path segment
DOWNLOAD_EXTENSIONS = (
    ".exe", ".msi", ".dmg", ".pkg", ".AppImage", ".deb", ".rpm",
    ".zip", ".tar.gz", ".blockmap", ".nupkg",
)

_PLATFORM_SUFFIXES = (
    ("-mac", "mac"),
    ("-linux", "linux"),
)
DEFAULT_PLATFORM = "windows"

_CHANNEL_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


def is_channel_file(path: str) -> bool:
    """True for `latest.yml`-style channel manifest names."""
    return path.endswith(CHANNEL_FILE_SUFFIXES)


def is_download_file(path: str) -> bool:
    """True for names with a known installer/package extension."""
    return path.endswith(DOWNLOAD_EXTENSIONS)


def parse_channel_file(channel_file: str) -> Tuple[str, str]:
    """
    Split a channel file name into (channel, platform).

    `latest.yml` -> ("latest", "windows"), `beta-mac.yml` -> ("beta", "mac"),
    `latest-linux.yaml` -> ("latest", "linux").

    Raises:
        ValidationError: If the name is not a channel file
    """
    if not is_channel_file(channel_file):
        raise ValidationError("Invalid channel file format", field="channel")

    stem = channel_file.rsplit(".", 1)[0]
    platform = DEFAULT_PLATFORM
    for suffix, suffix_platform in _PLATFORM_SUFFIXES:
        if stem.endswith(suffix):
            stem = stem[:-len(suffix)]
            platform = suffix_platform
            break

    if not _CHANNEL_PATTERN.match(stem):
        raise ValidationError("Invalid channel file format", field="channel")
    return stem, platform


def format_release_date(release: Release) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    value = release.release_date
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_manifest(release: Release) -> Dict[str, Any]:
    """
    Build the update manifest for a release.

    Optional fields (releaseName, releaseNotes, per-file arch) are left out
    entirely when unset; updater clients treat presence as a signal.
    """
    primary = release.primary_file
    manifest: Dict[str, Any] = {
        "version": release.version,
        "releaseDate": format_release_date(release),
    }
    if release.name:
        manifest["releaseName"] = release.name
    if release.notes:
        manifest["releaseNotes"] = release.notes
    manifest["path"] = primary.filename
    manifest["sha512"] = primary.sha512
    manifest["stagingPercentage"] = release.staging_percentage
    manifest["files"] = [f.to_manifest_entry() for f in release.files]
    return manifest


def render_manifest_yaml(manifest: Dict[str, Any]) -> str:
    """Serialize a manifest as YAML, keeping field order."""
    return yaml.safe_dump(
        manifest, sort_keys=False, default_flow_style=False, allow_unicode=True
    )


class ManifestResolver:
    """
    Resolves manifests and downloadable files for updater clients.

    Usage:
        >>> resolver = ManifestResolver(db_session)
        >>> manifest = resolver.resolve_manifest("demo-app", "latest", "windows", client)
        >>> if manifest is None:
        ...     # client not in the staged rollout: empty success
    """

    def __init__(
        self,
        db: Session,
        key_verifier: Optional[KeyVerifier] = None,
        rollout: Optional[RolloutAssigner] = None,
        telemetry: Optional[TelemetryService] = None,
    ):
        self.db = db
        self.key_verifier = key_verifier or KeyVerifier(db)
        self.rollout = rollout or RolloutAssigner(db)
        self.telemetry = telemetry or TelemetryService(db)

    def resolve_manifest(
        self,
        app_slug: str,
        channel: str,
        platform: str,
        client: ClientInfo,
    ) -> Optional[Dict[str, Any]]:
        """
        Resolve the manifest for an update check.

        Args:
            app_slug: Application slug
            channel: Release channel
            platform: Release platform
            client: Credential, client id, IP and user agent of the caller

        Returns:
            Manifest dict, or None when the client is not in the staged rollout

        Raises:
            ValidationError: If the slug is malformed
            NotFoundError: No application, release or files
            UnauthorizedError: Private release and no credential
            ForbiddenError: Private release and credential invalid or expired
        """
        app = self._get_application(app_slug)

        release = (
            self.db.query(Release)
            .options(selectinload(Release.files))
            .filter(
                Release.app_id == app.id,
                Release.channel == channel,
                Release.platform == platform,
                Release.published.is_(True),
            )
            .order_by(Release.release_date.desc(), Release.id.desc())
            .first()
        )

        if release is None or not release.files:
            raise NotFoundError("Release", f"{app_slug}/{channel}/{platform}")

        if not self.authorize_and_track(
            app, release, client, DownloadEventType.CHECK, gate_rollout=True
        ):
            return None

        return build_manifest(release)

    def resolve_download(
        self,
        app_slug: str,
        filename: str,
        client: ClientInfo,
    ) -> ReleaseFile:
        """
        Resolve a requested filename to its release file record.

        Lookup is scoped to the application's published releases; when several
        carry the filename, the newest by release date wins. Private releases
        require a valid credential.

        Raises:
            ValidationError: If the slug is malformed
            NotFoundError: No application, no file, or release unpublished
            UnauthorizedError / ForbiddenError: As for manifests
        """
        app = self._get_application(app_slug)

        release_file = (
            self.db.query(ReleaseFile)
            .join(Release, ReleaseFile.release_id == Release.id)
            .filter(
                Release.app_id == app.id,
                Release.published.is_(True),
                ReleaseFile.filename == filename,
            )
            .order_by(Release.release_date.desc(), ReleaseFile.id.desc())
            .first()
        )
        if release_file is None:
            raise NotFoundError("File", f"{app_slug}/{filename}")

        self.authorize_and_track(
            app,
            release_file.release,
            client,
            DownloadEventType.DOWNLOAD,
            gate_rollout=False,
            arch=release_file.arch,
        )
        return release_file

    def authorize_and_track(
        self,
        app: Application,
        release: Release,
        client: ClientInfo,
        event_type: DownloadEventType,
        gate_rollout: bool,
        arch: Optional[str] = None,
    ) -> bool:
        """
        Shared access procedure: verify key, apply rollout, record event.

        Args:
            app: Owning application
            release: Release being served
            client: Caller information
            event_type: Telemetry event to record
            gate_rollout: Apply staged rollout when the client sent an id
            arch: Architecture of the served file, if any

        Returns:
            False if the client is outside the staged rollout, True otherwise

        Raises:
            UnauthorizedError: Private release and no credential
            ForbiddenError: Private release and credential rejected
        """
        if not release.is_public:
            if not client.credential:
                logger.info(
                    "Credential required for private release",
                    extra={"app_slug": app.slug, "release_id": release.id}
                )
                raise UnauthorizedError()
            if not self.key_verifier.verify(app.id, client.credential):
                raise ForbiddenError()

        if gate_rollout and client.client_id:
            if not self.rollout.assign(release, client.client_id):
                return False

        self.telemetry.record(
            app_id=app.id,
            release_id=release.id,
            event_type=event_type,
            platform=release.platform,
            client=client,
            arch=arch,
        )
        return True

    def _get_application(self, app_slug: str) -> Application:
        if not app_slug or not SLUG_PATTERN.match(app_slug):
            raise ValidationError("Invalid application slug", field="app_slug")
        app = self.db.query(Application).filter(Application.slug == app_slug).first()
        if app is None:
            raise NotFoundError("Application", app_slug)
        return app
