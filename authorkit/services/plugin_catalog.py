"""Published plugin releases offered through the update checker."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PluginRelease:
    """Latest release metadata of one plugin edition."""

    slug: str
    version: str
    tested_up_to: str
    requires_php: str
    changelog: str
    description: str = "Professional WordPress plugin suite for self-publishing authors."

    @property
    def filename(self) -> str:
        return f"{self.slug}-{self.version}.zip"


PLUGIN_RELEASES: dict[str, PluginRelease] = {
    "authorkit-pro": PluginRelease(
        slug="authorkit-pro",
        version="1.0.0",
        tested_up_to="6.4",
        requires_php="7.0",
        changelog="""
### Version 1.0.0 - 2026-02-15

**New Features:**
- Launch Countdown Manager
- Landing Page Generator
- Series Tracker
- Event Manager
- Reader Magnets
- Book Links Hub
- Goodreads Integration

**Improvements:**
- Enhanced performance
- Better mobile responsiveness
- Improved admin UI

**Bug Fixes:**
- Fixed timezone handling in countdowns
- Resolved schema markup validation issues
""",
    ),
    "authorkit-agency": PluginRelease(
        slug="authorkit-agency",
        version="1.0.0",
        tested_up_to="6.4",
        requires_php="7.0",
        changelog="""
### Version 1.0.0 - 2026-02-15

**New Features:**
- All Pro features
- Unlimited site activations
- Priority support
- Advanced analytics
- White-label options

**Improvements:**
- Multi-site network support
- Enhanced performance
""",
    ),
}


def get_release(slug: str) -> PluginRelease | None:
    return PLUGIN_RELEASES.get(slug)


def find_release_by_filename(filename: str) -> PluginRelease | None:
    for release in PLUGIN_RELEASES.values():
        if release.filename == filename:
            return release
    return None


def compare_versions(v1: str, v2: str) -> int:
    """Compare dotted numeric versions.

    Returns:
        -1 if ``v1 < v2``, 0 if equal, 1 if ``v1 > v2``. Missing segments count
        as 0, so ``1.0`` equals ``1.0.0``.
    """
    parts1 = [int(p) for p in v1.split(".")]
    parts2 = [int(p) for p in v2.split(".")]
    length = max(len(parts1), len(parts2))
    parts1 += [0] * (length - len(parts1))
    parts2 += [0] * (length - len(parts2))

    if parts1 < parts2:
        return -1
    if parts1 > parts2:
        return 1
    return 0
