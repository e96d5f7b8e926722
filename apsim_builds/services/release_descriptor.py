"""
Release Descriptor - version strings, installer names and download links.

Pure functions with no side effects. Installers and the apsim website
depend on these exact formats.
"""
from pathlib import Path
from typing import Optional, Union

from apsim_builds.config import get_settings
from apsim_builds.constants import APSIM_OWNER, DOCS_INDEX_FILE, NEXTGEN_REPO
from apsim_builds.errors import InvalidError, UnsupportedPlatformError
from apsim_builds.models.db_models import Platform, Upgrade
from apsim_builds.models.schemas import ReleaseSchema

INSTALLER_EXTENSIONS = {
    Platform.LINUX: "deb",
    Platform.MACOS: "dmg",
    Platform.WINDOWS: "exe",
}


def to_platform(platform: Union[Platform, str]) -> Platform:
    """
    Coerce a platform name to Platform.

    Raises:
        UnsupportedPlatformError: For anything but Linux, MacOS or Windows
    """
    try:
        return Platform(platform)
    except ValueError:
        raise UnsupportedPlatformError(platform) from None


def version_string(upgrade: Upgrade) -> str:
    """Format an upgrade's version, e.g. 2024.05.7321.0."""
    return f"{upgrade.release_date:%Y.%m}.{upgrade.revision}.0"


def parse_version_string(version: str) -> int:
    """
    Extract the revision from a version string.

    The revision is the last component which isn't "0", so both
    "2024.05.7321.0" and a bare "7321" give 7321.

    Raises:
        InvalidError: If the string holds no revision
    """
    parts = [part.strip() for part in (version or "").split('.')]
    if not all(part.isdecimal() for part in parts):
        raise InvalidError(f"Invalid version string: '{version}'")

    significant = [part for part in parts if part != "0"]
    if not significant:
        raise InvalidError(f"Invalid version string: '{version}'")
    return int(significant[-1])


def installer_extension(platform: Union[Platform, str]) -> str:
    """File extension (without the leading period) of the installer for a platform."""
    return INSTALLER_EXTENSIONS[to_platform(platform)]


def installer_file_name(revision: int, platform: Union[Platform, str]) -> str:
    """Installer file name (not path), e.g. apsim-7321.deb."""
    return f"apsim-{revision}.{installer_extension(platform)}"


def download_url(revision: int, platform: Union[Platform, str], base_url: Optional[str] = None) -> str:
    """URL of the installer file on the file server."""
    base = (base_url or get_settings().INSTALLER_BASE_URL).rstrip('/')
    return f"{base}/{installer_file_name(revision, platform)}"


def download_link(revision: int, platform: Union[Platform, str], base_url: Optional[str] = None) -> str:
    """Public link to this service's download endpoint."""
    base = (base_url or get_settings().PUBLIC_BASE_URL).rstrip('/')
    return f"{base}/api/nextgen/download/{revision}/{to_platform(platform).value}"


def issue_info_url(issue_number: int) -> str:
    """Github page of the issue addressed by a release."""
    return f"https://github.com/{APSIM_OWNER}/{NEXTGEN_REPO}/issues/{issue_number}"


def installer_path(root: Union[str, Path], revision: int, platform: Union[Platform, str]) -> Path:
    return Path(root) / installer_file_name(revision, platform)


def docs_path(root: Union[str, Path], pull_request_number: int) -> Path:
    """Autodocs index generated by the CI build of a pull request."""
    return Path(root) / str(pull_request_number) / DOCS_INDEX_FILE


def describe(upgrade: Upgrade) -> ReleaseSchema:
    """Build the public release description of an upgrade."""
    return ReleaseSchema(
        release_date=upgrade.release_date,
        issue=upgrade.issue_number,
        title=upgrade.issue_title,
        download_link_debian=download_link(upgrade.revision, Platform.LINUX),
        download_link_windows=download_link(upgrade.revision, Platform.WINDOWS),
        download_link_mac_os=download_link(upgrade.revision, Platform.MACOS),
        info_url=issue_info_url(upgrade.issue_number),
        version=version_string(upgrade),
        revision=upgrade.revision,
    )
