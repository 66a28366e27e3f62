"""Definition of the launch composition. It only reads the local layout produced by the
installer, together with the local identity cache, and builds the command running the
game with its classpath and substituted arguments.
"""

from subprocess import Popen, PIPE
from threading import Thread
from pathlib import Path
import uuid
import json
import time
import os
import re

from .standard import Context, VersionHandle, Watcher, MetadataError, iter_libraries, \
    split_artifact_path, interpret_args
from .util import LibrarySpecifier

from typing import Optional, List, Dict, Tuple, Iterable, NamedTuple, IO


# Versions whose classpath keeps the jars otherwise excluded as conflicting.
LEGACY_CLASSPATH_VERSIONS = frozenset(("1.14", "1.14.1", "1.14.2", "1.14.3"))
CLASSPATH_CONFLICT = "3.2.1"

VERSION_PATTERN = re.compile(r"\b1\.\d+(?:\.\d+)?\b")

HEAP_DUMP_ARG = "-XX:HeapDumpPath=MojangTricksIntelDriversForPerformance_javaw.exe_minecraft.exe.heapdump"
DEFAULT_RESOLUTION = (856, 482)


class LaunchRequest(NamedTuple):
    """Immutable description of a launch, the version may be decorated with a variant
    such as `1.20.1-fabric`.
    """
    version: str
    root: Path
    username: str = "Player"
    memory_min: str = "1G"
    memory_max: str = "2G"
    java_path: str = "java"
    resolution: Optional[Tuple[int, int]] = None


class Environment:
    """Describe the game's environment needed to run it. Such instance is produced by
    composing a launch and may be used to run the game.
    """

    def __init__(self, context: Context, version: str, main_class: str) -> None:
        self.context = context
        self.version = version
        self.main_class = main_class
        self.java_path = "java"
        self.jvm_args: List[str] = []
        self.game_args: List[str] = []
        self.classpath = ""
        self.uuid = ""

    def args(self) -> List[str]:
        """Return the full command line of the game.
        """
        return [self.java_path, *self.jvm_args, self.main_class, *self.game_args]


class ArgumentSource:
    """Base class for the game arguments of a descriptor, the legacy single string and
    the structured list are resolved the same way into an ordered list of tokens.
    """

    def resolve(self, features: Dict[str, bool]) -> List[str]:
        raise NotImplementedError


class LegacyArguments(ArgumentSource):
    """Arguments given as a single space-separated string, `minecraftArguments`.
    """

    __slots__ = "blob",

    def __init__(self, blob: str) -> None:
        self.blob = blob

    def resolve(self, features: Dict[str, bool]) -> List[str]:
        return self.blob.split()

    def __repr__(self) -> str:
        return f"<LegacyArguments {self.blob!r}>"


class StructuredArguments(ArgumentSource):
    """Arguments given as a list of strings and conditional objects, `arguments.game`.
    """

    __slots__ = "args",

    def __init__(self, args: list) -> None:
        self.args = args

    def resolve(self, features: Dict[str, bool]) -> List[str]:
        dst: List[str] = []
        interpret_args(self.args, features, dst, "metadata: /arguments/game")
        return dst

    def __repr__(self) -> str:
        return f"<StructuredArguments {len(self.args)}>"


class UserCache:
    """The local identity cache, a JSON list of `{name, uuid}` objects. It is only read,
    identities minted on a miss are not written back.
    """

    def __init__(self, file: Path) -> None:
        self.file = file

    def get(self, name: str) -> str:
        """Get the UUID of the given player name.

        :raises IdentityResolutionError: If the cache is missing or invalid, or if the
        name is unknown.
        """

        try:
            with self.file.open("rt", encoding="utf-8") as fp:
                data = json.load(fp)
        except OSError as error:
            raise IdentityResolutionError(name, f"cannot read {self.file.name}: {error}")
        except ValueError as error:
            raise IdentityResolutionError(name, f"cannot parse {self.file.name}: {error}")

        if isinstance(data, list):
            for record in data:
                if isinstance(record, dict) and record.get("name") == name:
                    record_uuid = record.get("uuid")
                    if isinstance(record_uuid, str):
                        return record_uuid

        raise IdentityResolutionError(name, "unknown name")


class Launcher:
    """Compose and spawn the game of an installed version.
    """

    def __init__(self, runner: "Optional[Runner]" = None) -> None:
        self.runner = runner or StreamRunner()

    def compose(self, request: LaunchRequest, *, watcher: Optional[Watcher] = None) -> Environment:
        """Compose the environment of the requested launch. If a variant is requested,
        its metadata is layered on the base version's one and the options file is
        deleted.

        :raises InvalidVersionError: If no base version can be found in the request.
        :raises VersionNotInstalledError: If the base or variant metadata is missing.
        :raises MetadataError: If a metadata cannot be read or is invalid.
        """

        watcher = watcher or Watcher()
        context = Context(request.root)
        base, custom = parse_version(request.version)

        handle = load_version(context, base)
        metadata = handle.metadata

        features = {"has_custom_resolution": request.resolution is not None}

        try:

            required = [split_artifact_path(artifact_path)[-1] for artifact_path in iter_artifact_paths(metadata)]

            main_class = metadata.get("mainClass")
            arguments = parse_arguments(metadata)
            if arguments is None:
                raise ValueError("metadata: /arguments or /minecraftArguments is required")

            game_args = arguments.resolve(features)

            if custom is not None:

                custom_metadata = load_version(context, custom).metadata

                for library_idx, library in iter_libraries(custom_metadata):
                    library_name = library.get("name")
                    if not isinstance(library_name, str):
                        raise ValueError(f"metadata: /libraries/{library_idx}/name must be a string")
                    required.append(LibrarySpecifier.from_str(library_name).file_name())

                main_class = custom_metadata.get("mainClass", main_class)

                custom_arguments = parse_arguments(custom_metadata)
                if isinstance(custom_arguments, LegacyArguments):
                    game_args = custom_arguments.resolve(features)
                elif custom_arguments is not None:
                    game_args.extend(custom_arguments.resolve(features))

            if not isinstance(main_class, str):
                raise ValueError("metadata: /mainClass must be a string")

        except ValueError as error:
            raise MetadataError(f"invalid metadata of {request.version}: {error}") from error

        if custom is not None:
            try:
                context.options_file.unlink()
                watcher.handle(OptionsResetEvent(context.options_file))
            except FileNotFoundError:
                pass

        if ensure_profile(context):
            watcher.handle(ProfileCreatedEvent(context.profiles_file))

        try:
            player_uuid = UserCache(context.usercache_file).get(request.username)
        except IdentityResolutionError as error:
            player_uuid = str(uuid.uuid4())
            watcher.handle(IdentityMintedEvent(request.username, player_uuid, error.reason))

        # Fabric variants run on the base client.
        if custom is None or "fabric" in custom:
            jar_file = handle.jar_file()
        else:
            jar_file = context.get_version(custom).jar_file()

        classpath = build_classpath(context.libraries_dir, required, base)
        classpath = os.pathsep.join(filter(None, (classpath, str(jar_file.absolute()))))

        env = Environment(context, base, main_class)
        env.java_path = request.java_path
        env.classpath = classpath
        env.uuid = player_uuid
        env.jvm_args.extend([
            f"-Djava.library.path={context.get_natives_dir(base).absolute()}",
            f"-Xmx{request.memory_max}",
            f"-Xms{request.memory_min}",
            HEAP_DUMP_ARG,
            "-cp",
            classpath,
        ])

        replacements = build_replacements(context, base, request.username, player_uuid, request.resolution)
        env.game_args.extend(replace_placeholders(game_args, replacements))

        return env

    def launch(self, request: LaunchRequest, *, watcher: Optional[Watcher] = None) -> Popen:
        """Compose the requested launch and spawn the game through the runner. The game
        runs in the root directory, use `wait` to wait for its termination.
        """
        watcher = watcher or Watcher()
        env = self.compose(request, watcher=watcher)
        watcher.handle(LaunchEvent(env.version, env.args()))
        return self.runner.run(env, watcher)

    def wait(self, process: Popen) -> int:
        return self.runner.wait(process)


class Runner:
    """Base class handling game spawning.
    """

    def run(self, env: Environment, watcher: Watcher) -> Popen:
        raise NotImplementedError

    def wait(self, process: Popen) -> int:
        return wait_process(process)


class StandardRunner(Runner):
    """This default implementation just create a process that inherits the outputs of
    the current process.
    """

    def run(self, env: Environment, watcher: Watcher) -> Popen:
        return Popen(env.args(), cwd=env.context.work_dir)


class StreamRunner(StandardRunner):
    """A specialized runner forwarding the game's stdout and stderr lines to the watcher
    as `GameOutputEvent`, as they arrive.
    """

    def __init__(self) -> None:
        self._threads: Dict[int, List[Thread]] = {}

    def run(self, env: Environment, watcher: Watcher) -> Popen:

        process = Popen(env.args(), cwd=env.context.work_dir, stdout=PIPE, stderr=PIPE,
            bufsize=1, universal_newlines=True, encoding="utf-8", errors="replace")

        threads = []
        for stream_name, stream in (("stdout", process.stdout), ("stderr", process.stderr)):
            thread = Thread(target=self.process_stream_thread, name=f"Game {stream_name} Thread",
                args=(stream_name, stream, watcher), daemon=True)
            thread.start()
            threads.append(thread)

        self._threads[process.pid] = threads
        return process

    def wait(self, process: Popen) -> int:
        try:
            return super().wait(process)
        finally:
            for thread in self._threads.pop(process.pid, []):
                thread.join()

    def process_stream_thread(self, stream_name: str, stream: Optional[IO[str]], watcher: Watcher) -> None:
        assert stream is not None, "should not be none because it should be piped"
        for line in iter(stream.readline, ""):
            watcher.handle(GameOutputEvent(stream_name, line.rstrip("\n")))


def wait_process(process: Popen) -> int:
    """Wait for the end of the given game process, killing it on keyboard interrupt.

    :return: The exit code of the process.
    """
    try:
        while process.poll() is None:
            time.sleep(1)
    except KeyboardInterrupt:
        process.kill()
        raise
    finally:
        process.wait()
    return process.returncode


def parse_version(version: str) -> Tuple[str, Optional[str]]:
    """Parse the given version string into its base version and optional variant. The
    variant is the full string when it differs from the base version token.

    :raises InvalidVersionError: If no base version is found.
    """
    match = VERSION_PATTERN.search(version)
    if match is None:
        raise InvalidVersionError(version)
    base = match.group(0)
    return base, (None if base == version else version)


def load_version(context: Context, version: str) -> VersionHandle:
    """Load the metadata of an installed version.

    :raises VersionNotInstalledError: If the metadata file doesn't exist.
    :raises MetadataError: If the metadata cannot be read.
    """
    handle = context.get_version(version)
    if not handle.metadata_exists():
        raise VersionNotInstalledError(version)
    handle.read_metadata_file()
    return handle


def iter_artifact_paths(metadata: dict) -> Iterable[str]:
    """Iterate over the declared artifact paths of all libraries of a metadata.
    """
    for library_idx, library in iter_libraries(metadata):
        downloads = library.get("downloads")
        if not isinstance(downloads, dict):
            continue
        artifact = downloads.get("artifact")
        if not isinstance(artifact, dict):
            continue
        artifact_path = artifact.get("path")
        if not isinstance(artifact_path, str):
            raise ValueError(f"metadata: /libraries/{library_idx}/downloads/artifact/path must be a string")
        yield artifact_path


def parse_arguments(metadata: dict) -> Optional[ArgumentSource]:
    """Parse the game arguments of a metadata, none if it declares no arguments.
    """

    arguments = metadata.get("arguments")
    if arguments is not None:
        if not isinstance(arguments, dict):
            raise ValueError("metadata: /arguments must be an object")
        game = arguments.get("game", [])
        if not isinstance(game, list):
            raise ValueError("metadata: /arguments/game must be a list")
        return StructuredArguments(game)

    blob = metadata.get("minecraftArguments")
    if blob is not None:
        if not isinstance(blob, str):
            raise ValueError("metadata: /minecraftArguments must be a string")
        return LegacyArguments(blob)

    return None


def build_classpath(lib_root: Path, required_names: Iterable[str], version: str) -> str:
    """Walk the libraries directory and join the paths of all required jars, in path
    order. Jars whose name contains the conflicting `3.2.1` token are excluded, except
    for a few legacy versions.
    """

    if not lib_root.is_dir():
        return ""

    required = set(required_names)
    keep_conflicting = version in LEGACY_CLASSPATH_VERSIONS

    jars = []
    for dir_path, dir_names, file_names in os.walk(lib_root):
        dir_names.sort()
        for file_name in sorted(file_names):
            if not file_name.endswith(".jar") or file_name not in required:
                continue
            if not keep_conflicting and CLASSPATH_CONFLICT in file_name:
                continue
            file = Path(dir_path, file_name)
            if file.is_file():
                jars.append(str(file.absolute()))

    return os.pathsep.join(jars)


def build_replacements(context: Context, version: str, username: str, player_uuid: str,
    resolution: Optional[Tuple[int, int]] = None
) -> Dict[str, str]:
    """Build the table of placeholders of the game arguments.
    """

    width, height = resolution or DEFAULT_RESOLUTION
    game_dir = str(context.work_dir.absolute())
    assets_dir = str(context.assets_dir.absolute())

    return {
        "${auth_access_token}": player_uuid,
        "${auth_session}": player_uuid,
        "${auth_player_name}": username,
        "${auth_uuid}": player_uuid,
        "${auth_xuid}": player_uuid,
        "${user_properties}": "{}",
        "${user_type}": "mojang",
        "${version_name}": version,
        "${assets_index_name}": version,
        "${game_directory}": game_dir,
        "${assets_root}": assets_dir,
        "${game_assets}": assets_dir,
        "${version_type}": "release",
        "${clientid}": player_uuid,
        "${resolution_width}": str(width),
        "${resolution_height}": str(height),
    }


def replace_placeholders(args: Iterable[str], replacements: Dict[str, str]) -> List[str]:
    """Replace every argument that is exactly a known placeholder, other arguments are
    kept unchanged.
    """
    return [replacements.get(arg, arg) for arg in args]


def ensure_profile(context: Context) -> bool:
    """Create the launcher profiles file if absent.

    :return: True if the file has been created.
    """
    if context.profiles_file.exists():
        return False
    context.profiles_file.parent.mkdir(parents=True, exist_ok=True)
    with context.profiles_file.open("wt", encoding="utf-8") as fp:
        json.dump({"profiles": {}}, fp)
    return True


class InvalidVersionError(Exception):
    """Raised when no base version can be found in a launch's version string.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)


class VersionNotInstalledError(Exception):
    """Raised when the metadata of a version to launch is not installed.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)


class IdentityResolutionError(Exception):
    """Raised when a player name cannot be resolved from the local identity cache.
    """
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.name}: {self.reason}"


class IdentityMintedEvent:
    __slots__ = "name", "uuid", "reason"
    def __init__(self, name: str, uuid: str, reason: str) -> None:
        self.name = name
        self.uuid = uuid
        self.reason = reason

class ProfileCreatedEvent:
    __slots__ = "file",
    def __init__(self, file: Path) -> None:
        self.file = file

class OptionsResetEvent:
    """Event triggered when the options file has been deleted because a variant is
    launched.
    """
    __slots__ = "file",
    def __init__(self, file: Path) -> None:
        self.file = file

class LaunchEvent:
    __slots__ = "version", "args"
    def __init__(self, version: str, args: List[str]) -> None:
        self.version = version
        self.args = args

class GameOutputEvent:
    """Event triggered for each line printed by the game, the stream is either 'stdout'
    or 'stderr'.
    """
    __slots__ = "stream", "line"
    def __init__(self, stream: str, line: str) -> None:
        self.stream = stream
        self.line = line
