"""A versioned prompt loader over a directory of ``<version>.md`` files."""

from __future__ import annotations

import os
from pathlib import Path


class PromptCatalogError(LookupError):
    """Raised for a misconfigured catalog or an unknown prompt version."""


def _list_versions(directory: Path) -> list[str]:
    return sorted(
        entry.name.removesuffix(".md")
        for entry in directory.iterdir()
        if entry.name.endswith(".md") and not entry.is_dir()
    )


class Catalog:
    """A frozen view over the ``*.md`` prompts directly under a directory.

    The file stem of each prompt is its version name. Lookups are read-only.
    """

    def __init__(self, directory: str | os.PathLike[str], default_version: str) -> None:
        self._directory = Path(directory)
        try:
            versions = _list_versions(self._directory)
        except OSError as exc:
            raise PromptCatalogError(f"read {directory}: {exc}") from exc
        available = ", ".join(versions)
        if not default_version:
            raise PromptCatalogError(f"default version is required (available: {available})")
        if default_version not in versions:
            raise PromptCatalogError(
                f'default version "{default_version}" not found in {directory} (available: {available})'
            )
        self._default = default_version
        self._versions = versions

    def get(self, version: str = "") -> str:
        """Return the prompt body for ``version``, or the default when blank.

        The body has its trailing newlines replaced by exactly one.
        """
        if not version.strip():
            version = self._default
        try:
            data = (self._directory / f"{version}.md").read_text(encoding="utf-8")
        except OSError as exc:
            raise PromptCatalogError(
                f'unknown version "{version}" (available: {", ".join(self._versions)})'
            ) from exc
        return data.rstrip("\n") + "\n"

    def versions(self) -> list[str]:
        """Return every available version, sorted."""
        return list(self._versions)

    def default(self) -> str:
        """Return the default version."""
        return self._default