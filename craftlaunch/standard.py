"""Definition of the standard installation pipeline. A version is resolved from the
official manifest, its descriptor is fetched once and then used as the single source of
truth for installing its client JAR, assets, libraries and natives under a root
directory.
"""

from pathlib import Path
from zipfile import ZipFile, BadZipFile
import platform
import shutil
import json
import re

from .download import DownloadList, DownloadEntry, DownloadResult, DownloadResultProgress, \
    DownloadResultError, Fetcher, FetchError
from .manifest import VersionManifest, VersionNotFoundError, VERSION_MANIFEST_URL
from .http import http_request, HttpError

from typing import Optional, Iterator, Dict, List, Tuple, Any, Callable, Set, NamedTuple


RESOURCES_URL = "https://resources.download.minecraft.net"


class Context:
    """Local layout of an installation, every path is derived from the root directory
    given by the caller. The root is also the working directory of the game.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.work_dir = root
        self.cache_dir = root / "cache" / "json"
        self.versions_dir = root / "versions"
        self.assets_dir = root / "assets"
        self.assets_indexes_dir = self.assets_dir / "indexes"
        self.assets_objects_dir = self.assets_dir / "objects"
        self.libraries_dir = root / "libraries"
        self.natives_dir = root / "natives"
        self.profiles_file = root / "launcher_profiles.json"
        self.usercache_file = root / "usercache.json"
        self.options_file = root / "options.txt"

    def get_version(self, version: str) -> "VersionHandle":
        """Get a version's handle.
        """
        return VersionHandle(version, self.versions_dir / version)

    def get_natives_dir(self, version: str) -> Path:
        """Get the directory where natives of the given version are extracted.
        """
        return self.natives_dir / version

    def get_manifest_cache_file(self) -> Path:
        return self.cache_dir / "version_manifest.json"


class Watcher:
    """Base class for a watcher of the install and launch process, every progress and
    diagnostic is sent to it as an event object.
    """

    def handle(self, event: Any) -> None:
        """Called when the watcher can handle the given event. Default implementation
        does nothing.
        """


class SimpleWatcher(Watcher):
    """A watcher dispatching events to handlers depending on their exact type.
    """

    def __init__(self, handlers: Dict[type, Callable[[Any], None]]) -> None:
        self.handlers = handlers

    def handle(self, event: Any) -> None:
        handler = self.handlers.get(type(event))
        if handler is not None:
            handler(event)


class VersionHandle:
    """This class holds a version handle that allows reading and writing its descriptor
    (what we call its metadata) and knows where its client JAR is stored.
    """

    __slots__ = "id", "dir", "metadata"

    def __init__(self, id: str, dir: Path) -> None:
        self.id = id
        self.dir = dir
        self.metadata = {}

    def metadata_exists(self) -> bool:
        """This function returns true if the version's metadata file exists.
        """
        return self.metadata_file().is_file()

    def metadata_file(self) -> Path:
        """This function returns the computed path of the metadata file.
        """
        return self.dir / f"{self.id}.json"

    def jar_file(self) -> Path:
        """This function returns the computed path of the JAR file of the game.
        """
        return self.dir / f"{self.id}.jar"

    def read_metadata_file(self) -> None:
        """This function reads the metadata file and updates the internal data.

        :raises MetadataError: If the file cannot be read or is not a JSON object.
        """
        try:
            with self.metadata_file().open("rt", encoding="utf-8") as fp:
                metadata = json.load(fp)
        except OSError as error:
            raise MetadataError(f"failed to read metadata of {self.id}: {error}") from error
        except ValueError as error:
            raise MetadataError(f"failed to parse metadata of {self.id}: {error}") from error
        if not isinstance(metadata, dict):
            raise MetadataError(f"metadata of {self.id} must be an object")
        self.metadata = metadata

    def __str__(self) -> str:
        return self.id

    def __repr__(self) -> str:
        return f"<VersionHandle {self.id}>"


class InstallRequest(NamedTuple):
    """Immutable description of an installation, the version can be the 'release' alias.
    """
    version: Optional[str]
    root: Path


class StageReport:
    """Report of a stage fanning out to many items (assets, libraries or natives). The
    stage has completed once the report exists, failures are items that could not be
    fetched or extracted.
    """

    __slots__ = "stage", "count", "errors"

    def __init__(self, stage: str, count: int, errors: List[Exception]) -> None:
        self.stage = stage
        self.count = count
        self.errors = errors

    @property
    def ok(self) -> bool:
        return not len(self.errors)

    def __repr__(self) -> str:
        return f"<StageReport {self.stage}, count: {self.count}, errors: {len(self.errors)}>"


class InstallReport:
    """Report of a full installation, produced by `Installer.install`.
    """

    __slots__ = "version", "metadata", "jar_file", "assets", "libraries", "natives"

    def __init__(self, version: str, metadata: dict, jar_file: Path,
        assets: StageReport,
        libraries: StageReport,
        natives: StageReport
    ) -> None:
        self.version = version
        self.metadata = metadata
        self.jar_file = jar_file
        self.assets = assets
        self.libraries = libraries
        self.natives = natives

    @property
    def errors(self) -> List[Exception]:
        """All item failures of the installation, in stage order.
        """
        return [*self.assets.errors, *self.libraries.errors, *self.natives.errors]

    @property
    def ok(self) -> bool:
        return not len(self.errors)


class Installer:
    """The installation pipeline. It is configured once and can install any number of
    versions, each call to `install` is independent and only shares the configured
    fetcher and its bound of simultaneous connections.
    """

    def __init__(self, *,
        fetcher: Optional[Fetcher] = None,
        manifest: Optional[VersionManifest] = None,
        manifest_url: str = VERSION_MANIFEST_URL,
        resources_url: str = RESOURCES_URL,
        os_name: Optional[str] = None,
        arch_bits: Optional[int] = None,
        skip_existing: bool = False,
        verify_integrity: bool = False
    ) -> None:
        """Construct an installer.

        :param fetcher: The fetcher used for every artifact, by default a fetcher with
        two simultaneous connections.
        :param manifest: A version manifest to use for every install, by default a new
        manifest cached under the root of each installation is used.
        :param manifest_url: URL of the manifest when no manifest is given.
        :param resources_url: Base URL of the asset objects host.
        :param os_name: The operating system to select natives for, defaults to the
        running one.
        :param arch_bits: The pointer width to select natives for, defaults to the
        running one.
        :param skip_existing: Don't fetch again artifacts whose file already exists.
        :param verify_integrity: Check size and SHA-1 of artifacts against the values
        declared in the descriptors, when declared.
        """
        self.fetcher = fetcher or Fetcher()
        self.manifest = manifest
        self.manifest_url = manifest_url
        self.resources_url = resources_url.rstrip("/")
        self.os_name = minecraft_os if os_name is None else os_name
        self.arch_bits = minecraft_arch_bits if arch_bits is None else arch_bits
        self.skip_existing = skip_existing
        self.verify_integrity = verify_integrity

    def install(self, request: InstallRequest, *, watcher: Optional[Watcher] = None) -> InstallReport:
        """Install the requested version, stages are run in order: metadata, client,
        assets, libraries and natives. Each stage waits for all of its downloads.

        :raises MissingVersionError: If the request has no version.
        :raises InstallError: If a stage failed as a whole, the stage and the original
        error are given, later stages are not run.
        """

        if not request.version:
            raise MissingVersionError()

        watcher = watcher or Watcher()
        context = Context(request.root)

        handle: VersionHandle = self._stage(InstallError.METADATA, watcher,
            self.resolve_version, context, request.version, watcher)
        jar_file: Path = self._stage(InstallError.CLIENT, watcher,
            self.install_client, context, handle, watcher)
        assets: StageReport = self._stage(InstallError.ASSETS, watcher,
            self.install_assets, context, handle, watcher)
        libraries: StageReport = self._stage(InstallError.LIBRARIES, watcher,
            self.install_libraries, context, handle, watcher)
        natives: StageReport = self._stage(InstallError.NATIVES, watcher,
            self.install_natives, context, handle, watcher)

        return InstallReport(handle.id, handle.metadata, jar_file, assets, libraries, natives)

    def _stage(self, stage: str, watcher: Watcher, func: Callable[..., Any], *args: Any) -> Any:
        """Internal function running a stage, wrapping its errors into an install error.
        """

        watcher.handle(StageStartEvent(stage))

        try:
            result = func(*args)
        except (VersionNotFoundError, MetadataError, FetchError, HttpError, OSError, ValueError) as error:
            raise InstallError(stage, error) from error

        watcher.handle(StageCompleteEvent(stage, result if isinstance(result, StageReport) else None))
        return result

    def resolve_version(self, context: Context, version: str, watcher: Watcher) -> VersionHandle:
        """Resolve the given version from the manifest and fetch its descriptor into the
        version's directory.

        :raises VersionNotFoundError: If the version is absent or not a release.
        :raises MetadataError: If the manifest or the descriptor could not be fetched,
        parsed or stored.
        """

        watcher.handle(VersionResolvingEvent(version))

        manifest = self.manifest
        if manifest is None:
            manifest = VersionManifest(context.get_manifest_cache_file(), self.manifest_url)

        try:
            version, _alias = manifest.filter_latest(version)
            url = manifest.get_version_url(version)
        except HttpError as error:
            raise MetadataError(f"failed to fetch version manifest: {error}") from error
        except (KeyError, TypeError, AttributeError, ValueError) as error:
            raise MetadataError(f"invalid version manifest: {error}") from error

        handle = context.get_version(version)

        try:
            res = http_request("GET", url, accept="application/json", timeout=self.fetcher.timeout)
            metadata = res.json()
        except HttpError as error:
            raise MetadataError(f"failed to fetch metadata of {version}: {error}") from error
        except ValueError as error:
            raise MetadataError(f"failed to parse metadata of {version}: {error}") from error

        if not isinstance(metadata, dict):
            raise MetadataError(f"metadata of {version} must be an object")

        try:
            handle.dir.mkdir(parents=True, exist_ok=True)
            with handle.metadata_file().open("wb") as fp:
                fp.write(res.data)
        except OSError as error:
            raise MetadataError(f"failed to write metadata of {version}: {error}") from error

        handle.metadata = metadata
        watcher.handle(VersionResolvedEvent(version, url))
        return handle

    def install_client(self, context: Context, handle: VersionHandle, watcher: Watcher) -> Path:
        """Fetch the client JAR of the version into the version's directory.

        :raises FetchError: If the client could not be fetched.
        """

        downloads = handle.metadata.get("downloads")
        if not isinstance(downloads, dict):
            raise ValueError("metadata: /downloads must be an object")

        client = downloads.get("client")
        if not isinstance(client, dict):
            raise ValueError("metadata: /downloads/client must be an object")

        jar_file = handle.jar_file()

        dl = DownloadList()
        dl.add(self._new_entry(client, jar_file, jar_file.name, "metadata: /downloads/client"), verify=self.skip_existing)

        errors = self._download(InstallError.CLIENT, dl, watcher)
        if len(errors):
            raise errors[0]

        return jar_file

    def install_assets(self, context: Context, handle: VersionHandle, watcher: Watcher) -> StageReport:
        """Fetch the asset index of the version, then every object it references into
        the hash-bucketed object store. Objects sharing a hash are fetched once.

        :raises FetchError: If the asset index could not be fetched.
        """

        asset_index_info = handle.metadata.get("assetIndex")
        if not isinstance(asset_index_info, dict):
            raise ValueError("metadata: /assetIndex must be an object")

        asset_index_url = asset_index_info.get("url")
        if not isinstance(asset_index_url, str):
            raise ValueError("metadata: /assetIndex/url must be a string")

        # The index is kept both in the assets tree and in the metadata cache.
        index_file = self.fetcher.fetch(asset_index_url, context.assets_indexes_dir, f"{handle.id}.json")
        context.cache_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(index_file, context.cache_dir / index_file.name)

        with index_file.open("rb") as index_fp:
            asset_index = json.load(index_fp)

        if not isinstance(asset_index, dict):
            raise ValueError("assets index: / must be an object")

        asset_objects = asset_index.get("objects")
        if not isinstance(asset_objects, dict):
            raise ValueError("assets index: /objects must be an object")

        dl = DownloadList()
        hashes: Set[str] = set()

        for asset_id, asset_obj in asset_objects.items():

            if not isinstance(asset_obj, dict):
                raise ValueError(f"assets index: /objects/{asset_id} must be an object")

            asset_hash = asset_obj.get("hash")
            if not isinstance(asset_hash, str) or len(asset_hash) < 2:
                raise ValueError(f"assets index: /objects/{asset_id}/hash must be a string")

            if asset_hash in hashes:
                continue
            hashes.add(asset_hash)

            asset_bucket = asset_hash[:2]
            asset_file = context.assets_objects_dir / asset_bucket / asset_hash
            asset_info = {
                "url": f"{self.resources_url}/{asset_bucket}/{asset_hash}",
                "size": asset_obj.get("size"),
                "sha1": asset_hash,
            }

            dl.add(self._new_entry(asset_info, asset_file, asset_id, f"assets index: /objects/{asset_id}"), verify=self.skip_existing)

        errors = self._download(InstallError.ASSETS, dl, watcher)
        return StageReport(InstallError.ASSETS, len(hashes), errors)

    def install_libraries(self, context: Context, handle: VersionHandle, watcher: Watcher) -> StageReport:
        """Fetch every library declaring an artifact into the libraries directory, at the
        path declared by the artifact. Libraries without artifact are ignored.
        """

        dl = DownloadList()
        paths: Set[str] = set()

        for library_idx, library in iter_libraries(handle.metadata):

            downloads = library.get("downloads")
            if downloads is None:
                continue

            if not isinstance(downloads, dict):
                raise ValueError(f"metadata: /libraries/{library_idx}/downloads must be an object")

            artifact = downloads.get("artifact")
            if artifact is None:
                continue

            if not isinstance(artifact, dict):
                raise ValueError(f"metadata: /libraries/{library_idx}/downloads/artifact must be an object")

            artifact_path = artifact.get("path")
            if not isinstance(artifact_path, str):
                raise ValueError(f"metadata: /libraries/{library_idx}/downloads/artifact/path must be a string")

            # An empty URL means that the library has to be installed by other means.
            if not artifact.get("url") or artifact_path in paths:
                continue

            paths.add(artifact_path)
            lib_file = context.libraries_dir.joinpath(*split_artifact_path(artifact_path))
            lib_name = library.get("name") or artifact_path

            dl.add(self._new_entry(artifact, lib_file, lib_name, f"metadata: /libraries/{library_idx}/downloads/artifact"), verify=self.skip_existing)

        errors = self._download(InstallError.LIBRARIES, dl, watcher)
        return StageReport(InstallError.LIBRARIES, len(paths), errors)

    def install_natives(self, context: Context, handle: VersionHandle, watcher: Watcher) -> StageReport:
        """Fetch the native bundle of every library for the configured platform, then
        extract each bundle into the version's natives directory and delete it.
        """

        natives_dir = context.get_natives_dir(handle.id)
        natives_dir.mkdir(parents=True, exist_ok=True)

        dl = DownloadList()
        archives: Dict[Path, Tuple[str, List[str]]] = {}

        for library_idx, library in iter_libraries(handle.metadata):

            downloads = library.get("downloads")
            if not isinstance(downloads, dict):
                continue

            classifiers = downloads.get("classifiers")
            if classifiers is None:
                continue

            if not isinstance(classifiers, dict):
                raise ValueError(f"metadata: /libraries/{library_idx}/downloads/classifiers must be an object")

            classifier = select_native_classifier(library, self.os_name, self.arch_bits)
            if classifier is None:
                continue

            native = classifiers.get(classifier)
            if native is None:
                continue

            path = f"metadata: /libraries/{library_idx}/downloads/classifiers/{classifier}"
            if not isinstance(native, dict):
                raise ValueError(f"{path} must be an object")

            native_path = native.get("path")
            if not isinstance(native_path, str):
                raise ValueError(f"{path}/path must be a string")

            archive = context.natives_dir / split_artifact_path(native_path)[-1]
            if archive in archives:
                continue

            entry = self._new_entry(native, archive, archive.name, path)
            archives[archive] = (entry.url, parse_extract_exclude(library, f"metadata: /libraries/{library_idx}/extract"))
            dl.add(entry)

        errors: List[Exception] = []
        errors.extend(self._download(InstallError.NATIVES, dl, watcher))

        failed = set(error.entry.dst for error in errors if isinstance(error, FetchError))

        for archive, (url, exclude) in archives.items():

            if archive in failed:
                continue

            try:
                # Known broken nightly builds of LWJGL referenced by 1.8.
                if handle.id == "1.8" and "nightly" in url:
                    watcher.handle(NativeSkippedEvent(archive.name))
                else:
                    count = extract_native(archive, natives_dir, exclude)
                    watcher.handle(NativeExtractedEvent(archive.name, count))
            except (BadZipFile, OSError) as error:
                errors.append(ExtractError(archive.name, error))
            finally:
                try:
                    archive.unlink()
                except FileNotFoundError:
                    pass

        return StageReport(InstallError.NATIVES, len(archives), errors)

    def _new_entry(self, info: dict, dst: Path, name: str, path: str) -> DownloadEntry:
        """Internal function to create a download entry from a descriptor's download
        information, size and SHA-1 are only kept if integrity is verified.
        """

        url = info.get("url")
        if not isinstance(url, str):
            raise ValueError(f"{path}/url must be a string")

        size = info.get("size")
        if size is not None and not isinstance(size, int):
            raise ValueError(f"{path}/size must be an integer")

        sha1 = info.get("sha1")
        if sha1 is not None and not isinstance(sha1, str):
            raise ValueError(f"{path}/sha1 must be a string")

        if not self.verify_integrity:
            size, sha1 = None, None

        return DownloadEntry(url, dst, size=size, sha1=sha1, name=name)

    def _download(self, stage: str, dl: DownloadList, watcher: Watcher) -> List[FetchError]:
        """Internal function downloading the whole list, only returning when all entries
        have settled. Failures are sent to the watcher and returned.
        """

        if not dl.count:
            return []

        watcher.handle(DownloadStartEvent(stage, min(dl.count, self.fetcher.threads_count), dl.count, dl.size))

        def callback(result_count: int, result: DownloadResult) -> None:
            if isinstance(result, DownloadResultProgress):
                watcher.handle(DownloadProgressEvent(
                    result.thread_id,
                    result_count,
                    result.entry,
                    result.size,
                    result.done))
            elif isinstance(result, DownloadResultError):
                watcher.handle(DownloadErrorEvent(FetchError(result.entry, result.code, result.origin)))

        errors = self.fetcher.fetch_all(dl, callback)
        watcher.handle(DownloadCompleteEvent(stage, len(errors)))
        return errors


def iter_libraries(metadata: dict) -> Iterator[Tuple[int, dict]]:
    """Iterate over libraries of a version's metadata with their index.
    """

    libraries = metadata.get("libraries")
    if libraries is None:
        return

    if not isinstance(libraries, list):
        raise ValueError("metadata: /libraries must be a list")

    for library_idx, library in enumerate(libraries):
        if not isinstance(library, dict):
            raise ValueError(f"metadata: /libraries/{library_idx} must be an object")
        yield library_idx, library


def split_artifact_path(path: str) -> List[str]:
    """Split a declared artifact path into its segments, rejecting paths that would
    escape their directory.
    """
    parts = [part for part in path.split("/") if len(part)]
    if not len(parts) or any(part in (".", "..") for part in parts):
        raise ValueError(f"invalid artifact path: {path}")
    return parts


def select_native_classifier(library: dict, os_name: Optional[str], arch_bits: Optional[int]) -> Optional[str]:
    """Select the classifier of the native bundle of a library for the given platform.

    A legacy `natives` mapping from OS to classifier is used first when present, the
    `${arch}` variable being replaced by the pointer width. Without mapping, the known
    classifier names of the OS are tried in order.
    """

    natives = library.get("natives")
    if natives is not None:

        if not isinstance(natives, dict):
            raise ValueError("natives must be an object")

        classifier = natives.get(os_name)
        if classifier is None:
            return None
        if not isinstance(classifier, str):
            raise ValueError(f"natives/{os_name} must be a string")

        if arch_bits is not None:
            classifier = classifier.replace("${arch}", str(arch_bits))

        return classifier

    classifiers = library.get("downloads", {}).get("classifiers") or {}
    for classifier in native_classifiers.get(os_name, {}).get(arch_bits, []):
        if classifier in classifiers:
            return classifier

    return None


def parse_extract_exclude(library: dict, path: str) -> List[str]:
    """Return the list of path prefixes that should not be extracted from the native
    bundle of a library.
    """

    extract = library.get("extract")
    if extract is None:
        return []

    if not isinstance(extract, dict):
        raise ValueError(f"{path} must be an object")

    exclude = extract.get("exclude", [])
    if not isinstance(exclude, list) or not all(isinstance(prefix, str) for prefix in exclude):
        raise ValueError(f"{path}/exclude must be a list of strings")

    return exclude


def extract_native(archive: Path, dst_dir: Path, exclude: List[str]) -> int:
    """Extract the given native bundle into the destination directory, except members
    starting with one of the excluded prefixes.

    :return: The number of extracted members.
    """

    count = 0
    with ZipFile(archive, "r") as native_zip:
        for native_info in native_zip.infolist():
            if native_info.filename.startswith(tuple(exclude)):
                continue
            native_zip.extract(native_info, dst_dir)
            count += 1

    return count


def interpret_rule(rules: Any, features: Dict[str, bool], path: str) -> bool:
    """Common function to interpret rules and determine if the condition is met.
    """

    if not isinstance(rules, list):
        raise ValueError(f"{path} must be a list")

    allowed = False
    for i, rule in enumerate(rules):

        if not isinstance(rule, dict):
            raise ValueError(f"{path}/{i} must be an object")

        rule_os = rule.get("os")
        if rule_os is not None and not interpret_rule_os(rule_os, f"{path}/{i}/os"):
            continue

        rule_features = rule.get("features")
        if rule_features is not None:

            if not isinstance(rule_features, dict):
                raise ValueError(f"{path}/{i}/features must be an object")

            feat_valid = True
            for feat_name, feat_expected in rule_features.items():
                if features.get(feat_name, False) != feat_expected:
                    feat_valid = False

            if not feat_valid:
                continue

        action = rule.get("action")
        if action == "disallow":
            return False    # Early return because of disallow.
        elif action == "allow":
            allowed = True
        else:
            raise ValueError(f"{path}/{i}/action must be 'allow' and 'disallow'")

    return allowed


def interpret_rule_os(rule_os: Any, path: str) -> bool:
    """Common function to interpret a rule constraint on the running OS.
    """

    if not isinstance(rule_os, dict):
        raise ValueError(f"{path} must be an object")

    os_name = rule_os.get("name")
    if os_name is None or os_name == minecraft_os:
        os_arch = rule_os.get("arch")
        if os_arch is None or os_arch == minecraft_arch:
            os_version = rule_os.get("version")
            if os_version is not None and not isinstance(os_version, str):
                raise ValueError(f"{path}/version must be a string")
            if os_version is None or re.search(os_version, platform.version()) is not None:
                return True
    return False


def interpret_args(args: Any, features: Dict[str, bool], dst: List[str], path: str) -> None:
    """Common function for interpreting a list of arguments, whose may be conditional
    under some rules.
    """

    if not isinstance(args, list):
        raise ValueError(f"{path} must be a list")

    for i, arg in enumerate(args):

        if isinstance(arg, str):
            dst.append(arg)
        elif isinstance(arg, dict):

            rules = arg.get("rules")
            if rules is not None:
                if not interpret_rule(rules, features, f"{path}/{i}/rules"):
                    continue

            arg_value = arg.get("value")
            if isinstance(arg_value, list):
                dst.extend(arg_value)
            elif isinstance(arg_value, str):
                dst.append(arg_value)
            else:
                raise ValueError(f"{path}/{i}/value must be a list or a string")
        else:
            raise ValueError(f"{path}/{i} must be an object or a string")


class MissingVersionError(Exception):
    """Raised when an installation is requested without version.
    """

    def __str__(self) -> str:
        return "no version given"


class MetadataError(Exception):
    """Raised when a version's metadata (or the manifest) could not be fetched, parsed
    or stored. The message gives the reason.
    """


class ExtractError(Exception):
    """Reported when a native bundle could not be extracted, the archive's name and the
    original error are given.
    """

    def __init__(self, archive: str, origin: Exception) -> None:
        self.archive = archive
        self.origin = origin

    def __str__(self) -> str:
        return f"{self.archive}: {self.origin}"


class InstallError(Exception):
    """Raised when a stage of the installation has failed as a whole, the stage is given
    as one of the class' constants and the original error is given as origin.
    """

    METADATA = "metadata"
    CLIENT = "client"
    ASSETS = "assets"
    LIBRARIES = "libraries"
    NATIVES = "natives"

    def __init__(self, stage: str, origin: Exception) -> None:
        self.stage = stage
        self.origin = origin

    def __str__(self) -> str:
        return f"{self.stage}: {self.origin}"


class VersionResolvingEvent:
    """Event triggered when a version starts being resolved from the manifest.
    """
    __slots__ = "version",
    def __init__(self, version: str) -> None:
        self.version = version

class VersionResolvedEvent:
    """Event triggered when a version's metadata has been fetched.
    """
    __slots__ = "version", "url"
    def __init__(self, version: str, url: str) -> None:
        self.version = version
        self.url = url

class StageStartEvent:
    __slots__ = "stage",
    def __init__(self, stage: str) -> None:
        self.stage = stage

class StageCompleteEvent:
    """Event triggered when a stage has completed, the report is only given for stages
    fanning out to many items.
    """
    __slots__ = "stage", "report"
    def __init__(self, stage: str, report: Optional[StageReport]) -> None:
        self.stage = stage
        self.report = report

class DownloadStartEvent:
    __slots__ = "stage", "threads_count", "entries_count", "size"
    def __init__(self, stage: str, threads_count: int, entries_count: int, size: int) -> None:
        self.stage = stage
        self.threads_count = threads_count
        self.entries_count = entries_count
        self.size = size

class DownloadProgressEvent:
    __slots__ = "thread_id", "count", "entry", "size", "done"
    def __init__(self, thread_id: int, count: int, entry: DownloadEntry, size: int, done: bool) -> None:
        self.thread_id = thread_id
        self.count = count
        self.entry = entry
        self.size = size
        self.done = done

class DownloadErrorEvent:
    """Event triggered when a single entry has failed, siblings are not interrupted.
    """
    __slots__ = "error",
    def __init__(self, error: FetchError) -> None:
        self.error = error

class DownloadCompleteEvent:
    __slots__ = "stage", "errors_count"
    def __init__(self, stage: str, errors_count: int) -> None:
        self.stage = stage
        self.errors_count = errors_count

class NativeExtractedEvent:
    __slots__ = "archive", "count"
    def __init__(self, archive: str, count: int) -> None:
        self.archive = archive
        self.count = count

class NativeSkippedEvent:
    """Event triggered when a known broken native bundle has been deleted without being
    extracted.
    """
    __slots__ = "archive",
    def __init__(self, archive: str) -> None:
        self.archive = archive


# Name of the OS has used by Minecraft.
minecraft_os = {
    "Linux": "linux",
    "Windows": "windows",
    "Darwin": "osx",
    "FreeBSD": "freebsd"
}.get(platform.system())

# Name of the processor's architecture has used by Minecraft.
minecraft_arch = {
    "i386": "x86",
    "i686": "x86",
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm32",
    "armv6l": "arm32",
}.get(platform.machine().lower())

# Stores the bits length of pointers on the current system.
minecraft_arch_bits = {
    "64bit": 64,
    "32bit": 32
}.get(platform.architecture()[0])

# Classifiers of native bundles tried in order when a library has no natives mapping,
# depending on the OS and the pointer width.
native_classifiers: Dict[Optional[str], Dict[Optional[int], List[str]]] = {
    "windows": {
        64: ["natives-windows", "natives-windows-64"],
        32: ["natives-windows", "natives-windows-32"],
        None: ["natives-windows", "natives-windows-64", "natives-windows-32"],
    },
    "linux": {
        64: ["natives-linux"],
        32: ["natives-linux"],
        None: ["natives-linux"],
    },
    "osx": {
        64: ["natives-osx", "natives-macos"],
        32: ["natives-osx", "natives-macos"],
        None: ["natives-osx", "natives-macos"],
    },
}
