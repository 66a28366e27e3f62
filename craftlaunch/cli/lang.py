"""CLI languages management.
"""

from craftlaunch.download import DownloadResultError
from craftlaunch.standard import InstallError

from typing import Optional


def get_raw(key: str, kwargs: Optional[dict]) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :param key: The key of the message to translate.
    :param kwargs: The keyword formatting dictionary.
    :return: Translated message, or the key itself if not found.
    """
    try:
        return lang[key].format_map(kwargs or {})
    except KeyError:
        return key


def get(key: str, **kwargs) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :param key: The key of the message to translate.
    :return: Translated message, or the key itself if not found.
    """
    return get_raw(key, kwargs)


lang = {
    # Args root
    "args": "craftlaunch installs a game version (client, assets, libraries and natives) "
        "under a root directory and launches it from that directory.",
    "args.main_dir": "Set the root directory where versions, assets, libraries and natives "
        "are installed, this is also the working directory of the game.",
    "args.timeout": "Set the timeout (in decimal seconds) of each network connection.",
    "args.output": "Set the output format of the launcher, defaults to human-color.",
    "args.verbose": "Enable verbose output. The more -v argument you put, the more verbose the launcher will be.",
    # Args install
    "args.install": "Install a game version.",
    "args.install.version": "Version identifier (default to release): release|<release-version>.",
    "args.install.threads": "Number of simultaneous connections, defaults to 2.",
    "args.install.skip_existing": "Don't download again files that already exist.",
    "args.install.verify": "Verify size and SHA-1 of downloaded files when declared.",
    # Args start
    "args.start": "Start an installed game version.",
    "args.start.version": "Version identifier, optionally decorated with a variant (for example 1.20.1-fabric).",
    "args.start.username": "Set the player name, its identity is read from the user cache if present.",
    "args.start.min_memory": "Set the initial heap size of the JVM, defaults to 1G.",
    "args.start.max_memory": "Set the maximum heap size of the JVM, defaults to 2G.",
    "args.start.java": "Set the path of the java executable, defaults to 'java'.",
    "args.start.resolution": "Set a custom resolution for the game window, <width>x<height>.",
    "args.start.resolution.invalid": "Invalid resolution {given}, expected <width>x<height>.",
    "args.start.dry": "Compose the command line of the game but don't run it.",
    # Common messages
    "echo": "{echo}",
    "keyboard_interrupt": "Interrupted by user",
    "error.os": "An unexpected OS error happened:",
    "error.socket": "This operation requires an operational network, but a socket error happened:",
    "error.cert": "Certificate verification failed, you can try installing 'certifi' package:",
    # Install
    "install.version.resolving": "Resolving version {version}... ",
    "install.version.resolved": "Resolved version {version}",
    "install.version.not_found": "Version {version} not found",
    "install.missing_version": "No version given",
    f"install.stage.{InstallError.METADATA}": "Version metadata",
    f"install.stage.{InstallError.CLIENT}": "Client",
    f"install.stage.{InstallError.ASSETS}": "Assets",
    f"install.stage.{InstallError.LIBRARIES}": "Libraries",
    f"install.stage.{InstallError.NATIVES}": "Natives",
    "install.stage.start": "{stage}...",
    "install.stage.complete": "{stage}: {count} installed",
    "install.stage.complete_with_errors": "{stage}: {count} installed, {errors_count} failed",
    "install.stage.failed": "{stage} failed: {message}",
    "install.natives.extracted": "Extracted {count} files from {archive}",
    "install.natives.skipped": "Skipped broken native bundle {archive}",
    "install.natives.extract_error": "Failed to extract {archive}: {message}",
    "install.done": "Installed version {version}",
    "install.done_with_errors": "Installed version {version} with {count} failures",
    # Start
    "start.version.invalid": "Invalid version {version}",
    "start.version.not_installed": "Version {version} is not installed",
    "start.metadata.error": "Invalid version metadata: {message}",
    "start.identity.minted": "Minted a new identity for {name} ({reason})",
    "start.profile.created": "Created launcher profiles file",
    "start.options.reset": "Deleted options file of the previous version",
    "start.launching": "Launching version {version}",
    "start.dry": "Dry run, stopping before launch",
    "start.exited": "Game exited with code {code}",
    # Pretty download
    "download.threads_count": "Download threads count: {count}",
    "download.start": "Download starting...",
    "download.progress": "Download: {count}/{total_count} {size:>8}",
    "download.error": "{name}: {message}",
    f"download.error.{DownloadResultError.CONNECTION}": "Connection error",
    f"download.error.{DownloadResultError.NOT_FOUND}": "Not found",
    f"download.error.{DownloadResultError.INVALID_SIZE}": "Invalid size",
    f"download.error.{DownloadResultError.INVALID_SHA1}": "Invalid SHA1",
}
