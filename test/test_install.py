"""Functional tests of the game's installation, run against a local fixture server.
"""

from pathlib import Path
import hashlib
import pytest

from craftlaunch.standard import Installer, InstallRequest, InstallError, InstallReport, \
    MissingVersionError, MetadataError, ExtractError, Watcher, \
    StageStartEvent, StageCompleteEvent, VersionResolvedEvent, NativeExtractedEvent, \
    NativeSkippedEvent, DownloadErrorEvent
from craftlaunch.download import FetchError, DownloadResultError
from craftlaunch.manifest import VersionNotFoundError

from conftest import make_zip

from typing import List, Optional, Any


CLIENT = b"client jar content"
LIBRARY = b"library jar content"
SOUND = b"sound asset"
ICON = b"icon asset"


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class RecordWatcher(Watcher):

    def __init__(self) -> None:
        self.events: List[Any] = []

    def handle(self, event: Any) -> None:
        self.events.append(event)

    def of(self, event_type: type) -> List[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


def _library(server, name: str, path: str, data: Optional[bytes]) -> dict:
    url = server.add(f"/maven/{path}", data) if data is not None else f"{server.url}/maven/{path}"
    return {
        "name": name,
        "downloads": {
            "artifact": {"path": path, "url": url, "size": len(data or b""), "sha1": _sha1(data or b"")}
        }
    }


def _native_library(server, version: str, classifier: str, data: bytes, *, natives: Optional[dict] = None, url_suffix: str = "") -> dict:
    path = f"org/lwjgl/lwjgl-platform/2.9.4{url_suffix}/lwjgl-platform-2.9.4{url_suffix}-{classifier}.jar"
    library = {
        "name": f"org.lwjgl:lwjgl-platform:2.9.4{url_suffix}",
        "downloads": {
            "classifiers": {
                classifier: {"path": path, "url": server.add(f"/maven/{path}", data)}
            }
        },
        "extract": {"exclude": ["META-INF/"]},
    }
    if natives is not None:
        library["natives"] = natives
    return library


def _setup(server, version: str = "1.20.1", *,
    libraries: Optional[list] = None,
    objects: Optional[dict] = None,
    client: Optional[bytes] = CLIENT,
    asset_index: bool = True,
    descriptor: bool = True
) -> None:
    """Publish a manifest with the given release version and its descriptor.
    """

    if objects is None:
        objects = {"minecraft/sounds/click.ogg": {"hash": _sha1(SOUND), "size": len(SOUND)}}

    for asset_data in (SOUND, ICON):
        asset_hash = _sha1(asset_data)
        server.add(f"/resources/{asset_hash[:2]}/{asset_hash}", asset_data)

    client_url = f"{server.url}/client/{version}.jar"
    if client is not None:
        server.add(f"/client/{version}.jar", client)

    index_url = f"{server.url}/indexes/{version}.json"
    if asset_index:
        server.add_json(f"/indexes/{version}.json", {"objects": objects})

    if descriptor:
        server.add_json(f"/v/{version}.json", {
            "id": version,
            "type": "release",
            "mainClass": "net.minecraft.client.main.Main",
            "downloads": {"client": {"url": client_url, "size": len(CLIENT), "sha1": _sha1(CLIENT)}},
            "assetIndex": {"id": "5", "url": index_url},
            "libraries": [] if libraries is None else libraries,
            "arguments": {"game": ["--username", "${auth_player_name}"]},
        })

    server.add_json("/manifest.json", {
        "latest": {"release": version, "snapshot": "23w31a"},
        "versions": [
            {"id": "23w31a", "type": "snapshot", "url": f"{server.url}/v/23w31a.json"},
            {"id": version, "type": "release", "url": f"{server.url}/v/{version}.json"},
        ]
    })


def _installer(server, **kwargs) -> Installer:
    kwargs.setdefault("os_name", "linux")
    kwargs.setdefault("arch_bits", 64)
    return Installer(
        manifest_url=f"{server.url}/manifest.json",
        resources_url=f"{server.url}/resources/",
        **kwargs)


def _files(directory: Path) -> List[Path]:
    return sorted(path for path in directory.rglob("*") if path.is_file())


def test_install_scenario_artifact_only(server, tmp_path):

    root = tmp_path / "game"
    lib_path = "com/example/lib/1.0/lib-1.0.jar"
    _setup(server, libraries=[_library(server, "com.example:lib:1.0", lib_path, LIBRARY)])

    report = _installer(server).install(InstallRequest("1.20.1", root))

    assert isinstance(report, InstallReport)
    assert report.ok
    assert report.version == "1.20.1"
    assert report.metadata["mainClass"] == "net.minecraft.client.main.Main"

    assert report.jar_file == root / "versions" / "1.20.1" / "1.20.1.jar"
    assert report.jar_file.read_bytes() == CLIENT
    assert (root / "versions" / "1.20.1" / "1.20.1.json").is_file()

    assert _files(root / "libraries") == [root / "libraries" / "com" / "example" / "lib" / "1.0" / "lib-1.0.jar"]

    sound_hash = _sha1(SOUND)
    assert _files(root / "assets" / "objects") == [root / "assets" / "objects" / sound_hash[:2] / sound_hash]
    assert (root / "assets" / "indexes" / "1.20.1.json").is_file()
    assert (root / "cache" / "json" / "1.20.1.json").read_bytes() == (root / "assets" / "indexes" / "1.20.1.json").read_bytes()
    assert (root / "cache" / "json" / "version_manifest.json").is_file()

    natives_dir = root / "natives" / "1.20.1"
    assert natives_dir.is_dir()
    assert list(natives_dir.iterdir()) == []

    assert (report.assets.count, report.libraries.count, report.natives.count) == (1, 1, 0)


def test_install_scenario_windows_natives(server, tmp_path):

    root = tmp_path / "game"
    archive_data = make_zip({
        "lwjgl64.dll": b"dll",
        "sub/OpenAL64.dll": b"openal",
        "META-INF/MANIFEST.MF": b"manifest",
    })
    _setup(server, libraries=[_native_library(server, "1.20.1", "natives-windows", archive_data)])

    watcher = RecordWatcher()
    report = _installer(server, os_name="windows").install(InstallRequest("1.20.1", root), watcher=watcher)

    assert report.ok
    assert report.natives.count == 1

    # The archive is deleted, only its extracted contents remain.
    assert not (root / "natives" / "lwjgl-platform-2.9.4-natives-windows.jar").exists()
    natives_dir = root / "natives" / "1.20.1"
    assert (natives_dir / "lwjgl64.dll").read_bytes() == b"dll"
    assert (natives_dir / "sub" / "OpenAL64.dll").read_bytes() == b"openal"
    assert not (natives_dir / "META-INF").exists()
    assert _files(root / "natives") == _files(natives_dir)

    extracted = watcher.of(NativeExtractedEvent)
    assert len(extracted) == 1 and extracted[0].count == 2

    # Classifier-only libraries are not installed as libraries.
    assert report.libraries.count == 0


def test_install_natives_other_platform(server, tmp_path):

    root = tmp_path / "game"
    _setup(server, libraries=[_native_library(server, "1.20.1", "natives-windows", make_zip({"a.dll": b"a"}))])

    report = _installer(server, os_name="linux").install(InstallRequest("1.20.1", root))

    assert report.ok
    assert report.natives.count == 0
    assert list((root / "natives" / "1.20.1").iterdir()) == []


def test_install_natives_mapping_arch(server, tmp_path):

    root = tmp_path / "game"
    library = _native_library(server, "1.20.1", "natives-windows-32", make_zip({"lwjgl.dll": b"32"}),
        natives={"windows": "natives-windows-${arch}", "linux": "natives-linux"})
    _setup(server, libraries=[library])

    report = _installer(server, os_name="windows", arch_bits=32).install(InstallRequest("1.20.1", root))

    assert report.ok
    assert (root / "natives" / "1.20.1" / "lwjgl.dll").read_bytes() == b"32"


def test_install_natives_invalid_mapping(server, tmp_path):

    library = _native_library(server, "1.20.1", "natives-linux", make_zip({"liblwjgl.so": b"so"}),
        natives={"linux": ["natives-linux"]})
    _setup(server, libraries=[library])

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.NATIVES
    assert isinstance(exc_info.value.origin, ValueError)


def test_install_natives_nightly_skipped(server, tmp_path):

    root = tmp_path / "game"
    library = _native_library(server, "1.8", "natives-linux", make_zip({"liblwjgl.so": b"so"}), url_suffix="-nightly-20140822")
    _setup(server, "1.8", libraries=[library])

    watcher = RecordWatcher()
    report = _installer(server).install(InstallRequest("1.8", root), watcher=watcher)

    assert report.ok
    assert len(watcher.of(NativeSkippedEvent)) == 1
    assert not watcher.of(NativeExtractedEvent)
    assert _files(root / "natives") == []
    assert (root / "natives" / "1.8").is_dir()


def test_install_natives_bad_archive(server, tmp_path):

    root = tmp_path / "game"
    good = _native_library(server, "1.20.1", "natives-linux", make_zip({"liblwjgl.so": b"so"}))
    bad_path = "org/lwjgl/lwjgl-openal/3.3.1/lwjgl-openal-3.3.1-natives-linux.jar"
    bad = {
        "name": "org.lwjgl:lwjgl-openal:3.3.1",
        "downloads": {"classifiers": {"natives-linux": {"path": bad_path, "url": server.add(f"/maven/{bad_path}", b"not a zip")}}}
    }
    _setup(server, libraries=[bad, good])

    report = _installer(server).install(InstallRequest("1.20.1", root))

    assert not report.ok
    assert report.natives.count == 2
    assert len(report.natives.errors) == 1
    error = report.natives.errors[0]
    assert isinstance(error, ExtractError)
    assert error.archive == "lwjgl-openal-3.3.1-natives-linux.jar"

    # The sibling has been extracted and both archives are gone.
    assert _files(root / "natives") == [root / "natives" / "1.20.1" / "liblwjgl.so"]


def test_install_stages_order(server, tmp_path):

    _setup(server)

    watcher = RecordWatcher()
    _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"), watcher=watcher)

    stages = [InstallError.METADATA, InstallError.CLIENT, InstallError.ASSETS, InstallError.LIBRARIES, InstallError.NATIVES]
    assert [event.stage for event in watcher.of(StageStartEvent)] == stages
    assert [event.stage for event in watcher.of(StageCompleteEvent)] == stages

    # Only fan-out stages have a report.
    reports = [event.report for event in watcher.of(StageCompleteEvent)]
    assert reports[0] is None and reports[1] is None
    assert all(report is not None for report in reports[2:])


def test_install_metadata_fetched_once(server, tmp_path):
    _setup(server)
    _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))
    assert server.count("/v/1.20.1.json") == 1
    assert server.count("/indexes/1.20.1.json") == 1


def test_install_release_alias(server, tmp_path):

    root = tmp_path / "game"
    _setup(server)

    watcher = RecordWatcher()
    report = _installer(server).install(InstallRequest("release", root), watcher=watcher)

    assert report.version == "1.20.1"
    assert (root / "versions" / "1.20.1" / "1.20.1.jar").is_file()
    assert watcher.of(VersionResolvedEvent)[0].version == "1.20.1"


@pytest.mark.parametrize("version", [None, ""])
def test_install_missing_version(tmp_path, version):

    with pytest.raises(MissingVersionError):
        Installer().install(InstallRequest(version, tmp_path / "game"))

    assert not (tmp_path / "game").exists()


@pytest.mark.parametrize("version", ["23w31a", "1.99"])
def test_install_version_not_found(server, tmp_path, version):

    root = tmp_path / "game"
    _setup(server)

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest(version, root))

    assert exc_info.value.stage == InstallError.METADATA
    assert isinstance(exc_info.value.origin, VersionNotFoundError)
    assert not (root / "versions").exists()


def test_install_metadata_error(server, tmp_path):

    _setup(server, descriptor=False)

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.METADATA
    assert isinstance(exc_info.value.origin, MetadataError)


def test_install_metadata_invalid_json(server, tmp_path):

    _setup(server)
    server.add("/v/1.20.1.json", b"{not json")

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.METADATA
    assert isinstance(exc_info.value.origin, MetadataError)


def test_install_client_error_stops(server, tmp_path):

    _setup(server, client=None)

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.CLIENT
    assert isinstance(exc_info.value.origin, FetchError)
    assert exc_info.value.origin.code == DownloadResultError.NOT_FOUND

    # Later stages did not run.
    assert server.count("/indexes/1.20.1.json") == 0


def test_install_asset_index_error(server, tmp_path):

    _setup(server, asset_index=False)

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.ASSETS
    assert isinstance(exc_info.value.origin, FetchError)


def test_install_item_failures_collected(server, tmp_path):

    root = tmp_path / "game"
    objects = {
        "minecraft/sounds/click.ogg": {"hash": _sha1(SOUND), "size": len(SOUND)},
        "minecraft/missing.png": {"hash": "ff" + "0" * 38, "size": 12},
    }
    libraries = [
        _library(server, "com.example:missing:1.0", "com/example/missing/1.0/missing-1.0.jar", None),
        _library(server, "com.example:lib:1.0", "com/example/lib/1.0/lib-1.0.jar", LIBRARY),
    ]
    _setup(server, libraries=libraries, objects=objects)

    watcher = RecordWatcher()
    report = _installer(server).install(InstallRequest("1.20.1", root), watcher=watcher)

    assert not report.ok
    assert len(report.errors) == 2
    assert len(report.assets.errors) == 1
    assert len(report.libraries.errors) == 1
    assert all(isinstance(error, FetchError) for error in report.errors)
    assert len(watcher.of(DownloadErrorEvent)) == 2

    # Siblings of failed items and later stages are installed.
    assert (root / "libraries" / "com" / "example" / "lib" / "1.0" / "lib-1.0.jar").is_file()
    assert (root / "assets" / "objects" / _sha1(SOUND)[:2] / _sha1(SOUND)).is_file()
    assert (root / "natives" / "1.20.1").is_dir()


def test_install_assets_deduplicated(server, tmp_path):

    root = tmp_path / "game"
    icon_hash = _sha1(ICON)
    objects = {
        "icons/icon_16x16.png": {"hash": icon_hash, "size": len(ICON)},
        "minecraft/icons/icon_16x16.png": {"hash": icon_hash, "size": len(ICON)},
    }
    _setup(server, objects=objects)

    report = _installer(server).install(InstallRequest("1.20.1", root))

    assert report.assets.count == 1
    assert server.count(f"/resources/{icon_hash[:2]}/{icon_hash}") == 1
    assert _files(root / "assets" / "objects") == [root / "assets" / "objects" / icon_hash[:2] / icon_hash]


def test_install_refetch_by_default(server, tmp_path):

    root = tmp_path / "game"
    lib_path = "com/example/lib/1.0/lib-1.0.jar"
    _setup(server, libraries=[_library(server, "com.example:lib:1.0", lib_path, LIBRARY)])

    _installer(server).install(InstallRequest("1.20.1", root))
    _installer(server).install(InstallRequest("1.20.1", root))
    assert server.count(f"/maven/{lib_path}") == 2
    assert server.count("/client/1.20.1.jar") == 2

    _installer(server, skip_existing=True).install(InstallRequest("1.20.1", root))
    assert server.count(f"/maven/{lib_path}") == 2
    assert server.count("/client/1.20.1.jar") == 2


def test_install_verify_integrity(server, tmp_path):

    lib_path = "com/example/lib/1.0/lib-1.0.jar"
    library = _library(server, "com.example:lib:1.0", lib_path, LIBRARY)
    library["downloads"]["artifact"]["sha1"] = "0" * 40
    _setup(server, libraries=[library])

    report = _installer(server).install(InstallRequest("1.20.1", tmp_path / "a"))
    assert report.ok

    report = _installer(server, verify_integrity=True).install(InstallRequest("1.20.1", tmp_path / "b"))
    assert len(report.libraries.errors) == 1
    assert report.libraries.errors[0].code == DownloadResultError.INVALID_SHA1
    assert not (tmp_path / "b" / "libraries" / "com" / "example" / "lib" / "1.0" / "lib-1.0.jar").exists()


def test_install_invalid_artifact_path(server, tmp_path):

    library = _library(server, "com.example:lib:1.0", "../../escape.jar", LIBRARY)
    _setup(server, libraries=[library])

    with pytest.raises(InstallError) as exc_info:
        _installer(server).install(InstallRequest("1.20.1", tmp_path / "game"))

    assert exc_info.value.stage == InstallError.LIBRARIES
    assert isinstance(exc_info.value.origin, ValueError)
