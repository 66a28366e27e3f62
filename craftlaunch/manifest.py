"""Definition of the remote version manifest, the global catalog mapping version
identifiers to the URL of their descriptor.
"""

from pathlib import Path
import json

from .http import http_request, HttpError

from typing import Optional, Tuple


VERSION_MANIFEST_URL = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"


class VersionNotFoundError(Exception):
    """Raised when a version was not found in the manifest, or when it is not a release.
    The version that was not found is given.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)


class VersionManifest:
    """The official version manifest. Providing officially available versions with an
    optional cache file, the cache is used as a fallback when the network is unreachable
    or when the remote manifest has not been modified since.
    """

    def __init__(self, cache_file: Optional[Path] = None, url: str = VERSION_MANIFEST_URL) -> None:
        self.data: Optional[dict] = None
        self.cache_file = cache_file
        self.url = url

    def _ensure_data(self) -> dict:
        """Internal method that ensure that the manifest data is up-to-date.

        :return: The full data of the manifest.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """

        if self.data is None:

            headers = {}
            cache_data = None

            # If a cache file should be used, try opening it and read the last modified
            # time that will be used for requesting the manifest, only if needed.
            if self.cache_file is not None:
                try:
                    with self.cache_file.open("rt") as cache_fp:
                        cache_data = json.load(cache_fp)
                    if "last_modified" in cache_data:
                        headers["If-Modified-Since"] = cache_data["last_modified"]
                except (OSError, json.JSONDecodeError):
                    pass

            try:

                res = http_request("GET", self.url,
                    headers=headers,
                    accept="application/json")

                self.data = res.json()

                if "Last-Modified" in res.headers:
                    self.data["last_modified"] = res.headers["Last-Modified"]

                if self.cache_file is not None:
                    self.cache_file.parent.mkdir(parents=True, exist_ok=True)
                    with self.cache_file.open("wt") as cache_fp:
                        json.dump(self.data, cache_fp)

            except HttpError as error:
                # Checking for 0, which means network error, in such case we want to
                # ignore the network error and just use the cached data.
                if error.res.status in (0, 304) and cache_data is not None:
                    self.data = cache_data
                else:
                    raise

        return self.data

    def filter_latest(self, version: str) -> Tuple[str, bool]:
        """Filter a version identifier if the 'release' alias is used, then it's replaced
        by the full identifier of the latest release, like `1.20.1`.

        :param version: The version id or alias.
        :return: A tuple containing the full version id and a boolean indicating if the
        given version identifier is an alias.
        :raises HttpError: Underlying HTTP error if manifest could not be requested, only
        possible when the given version is the alias.
        """

        if version == "release":
            latest = self._ensure_data().get("latest", {}).get(version)
            if latest is not None:
                return latest, True
        return version, False

    def get_version(self, version: str) -> Optional[dict]:
        """Get a manifest's release metadata, containing the descriptor's URL. Snapshots
        and old alpha/beta versions are never returned.

        :param version: The version identifier.
        :return: If found, the version is returned.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        version, _alias = self.filter_latest(version)
        for version_data in self._ensure_data().get("versions", []):
            if version_data.get("type") == "release" and version_data.get("id") == version:
                return version_data
        return None

    def get_version_url(self, version: str) -> str:
        """Resolve a release version to the URL of its descriptor.

        :raises VersionNotFoundError: If the version is absent or not a release.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        version_data = self.get_version(version)
        if version_data is None:
            raise VersionNotFoundError(version)
        url = version_data.get("url")
        if not isinstance(url, str):
            raise VersionNotFoundError(version)
        return url
