"""Main entry point of the command line, dispatching to the install and start commands.
"""

import socket
import sys

from .parse import register_arguments, RootNs, InstallNs, StartNs
from .output import Output, HumanOutput, MachineOutput
from .util import format_number, get_default_dir
from .lang import get as _

from craftlaunch.download import Fetcher, FetchError
from craftlaunch.http import DEFAULT_TIMEOUT
from craftlaunch.manifest import VersionNotFoundError
from craftlaunch.standard import Installer, InstallRequest, InstallError, MissingVersionError, \
    MetadataError, ExtractError, StageReport, SimpleWatcher, \
    VersionResolvingEvent, VersionResolvedEvent, StageStartEvent, StageCompleteEvent, \
    DownloadStartEvent, DownloadProgressEvent, DownloadCompleteEvent, \
    NativeExtractedEvent, NativeSkippedEvent
from craftlaunch.launch import Launcher, LaunchRequest, InvalidVersionError, \
    VersionNotInstalledError, IdentityMintedEvent, ProfileCreatedEvent, OptionsResetEvent, \
    LaunchEvent, GameOutputEvent

from typing import cast, Optional, List, Dict, Callable, Any


EXIT_OK = 0
EXIT_FAILURE = 1

CommandHandler = Callable[[Any], Any]


def main(args: Optional[List[str]] = None):
    """Main entry point of the CLI. This function parses the input arguments and try to
    find a command handler to dispatch to.
    """

    parser = register_arguments()
    ns: RootNs = cast(RootNs, parser.parse_args(sys.argv[1:] if args is None else args))

    # Setup common objects in the namespace.
    ns.out = get_output(ns.out_kind)
    ns.root = ns.main_dir or get_default_dir()
    if ns.timeout is not None:
        socket.setdefaulttimeout(ns.timeout)

    handler = get_command_handlers().get(ns.subcommand)
    if handler is None:
        parser.print_help()
        sys.exit(EXIT_FAILURE)

    cmd(handler, ns)


def get_output(kind: str) -> Output:
    """Internal function that construct the output depending on its kind.
    The kind is constrained by choices set to the arguments parser.
    """

    if kind == "human-color":
        return HumanOutput(True)
    elif kind == "human":
        return HumanOutput(False)
    elif kind == "machine":
        return MachineOutput()
    else:
        raise ValueError()


def get_command_handlers() -> Dict[str, CommandHandler]:
    return {
        "install": cmd_install,
        "start": cmd_start,
    }


def cmd(handler: CommandHandler, ns: RootNs):
    """Generic command handler that launch the given handler with the given namespace,
    it handles error in order to pretty print them.
    """

    try:
        handler(ns)
        sys.exit(EXIT_OK)

    except ValueError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        for arg in error.args:
            ns.out.task(None, "echo", echo=arg)
            ns.out.finish()

    except KeyboardInterrupt:
        ns.out.finish()
        ns.out.task("HALT", "keyboard_interrupt")
        ns.out.finish()

    except OSError as error:

        from urllib.error import URLError
        from ssl import SSLCertVerificationError

        key = "error.os"
        if isinstance(error, URLError) and isinstance(error.reason, SSLCertVerificationError):
            key = "error.cert"
        elif isinstance(error, (URLError, socket.gaierror, socket.timeout)):
            key = "error.socket"

        ns.out.task("FAILED", None)
        ns.out.finish()
        ns.out.task(None, key)
        ns.out.finish()

        import traceback
        traceback.print_exc()

    sys.exit(EXIT_FAILURE)


def cmd_install(ns: InstallNs):

    fetcher = Fetcher(ns.threads, DEFAULT_TIMEOUT if ns.timeout is None else ns.timeout)
    installer = Installer(fetcher=fetcher,
        skip_existing=ns.skip_existing,
        verify_integrity=ns.verify)

    try:
        report = installer.install(InstallRequest(ns.version, ns.root), watcher=InstallWatcher(ns))
    except MissingVersionError:
        ns.out.task("FAILED", "install.missing_version")
        ns.out.finish()
        sys.exit(EXIT_FAILURE)
    except InstallError as error:
        if isinstance(error.origin, VersionNotFoundError):
            ns.out.task("FAILED", "install.version.not_found", version=error.origin.version)
        else:
            ns.out.task("FAILED", "install.stage.failed",
                stage=_(f"install.stage.{error.stage}"),
                message=str(error.origin))
        ns.out.finish()
        sys.exit(EXIT_FAILURE)

    if report.ok:
        ns.out.task("OK", "install.done", version=report.version)
        ns.out.finish()
        sys.exit(EXIT_OK)

    ns.out.task("WARN", "install.done_with_errors", version=report.version, count=len(report.errors))
    ns.out.finish()
    sys.exit(EXIT_FAILURE)


def cmd_start(ns: StartNs):

    request = LaunchRequest(ns.version, ns.root,
        username=ns.username,
        memory_min=ns.min_memory,
        memory_max=ns.max_memory,
        java_path=ns.java,
        resolution=ns.resolution)

    launcher = Launcher()
    watcher = StartWatcher(ns)

    try:

        if ns.dry:
            env = launcher.compose(request, watcher=watcher)
            if ns.verbose >= 1:
                ns.out.print(" ".join(env.args()) + "\n")
            ns.out.task("OK", "start.dry")
            ns.out.finish()
            sys.exit(EXIT_OK)

        process = launcher.launch(request, watcher=watcher)
        code = launcher.wait(process)
        ns.out.task("INFO", "start.exited", code=code)
        ns.out.finish()
        sys.exit(EXIT_OK if code == 0 else EXIT_FAILURE)

    except InvalidVersionError as error:
        ns.out.task("FAILED", "start.version.invalid", version=error.version)
        ns.out.finish()

    except VersionNotInstalledError as error:
        ns.out.task("FAILED", "start.version.not_installed", version=error.version)
        ns.out.finish()

    except MetadataError as error:
        ns.out.task("FAILED", "start.metadata.error", message=str(error))
        ns.out.finish()

    sys.exit(EXIT_FAILURE)


class InstallWatcher(SimpleWatcher):

    def __init__(self, ns: RootNs) -> None:

        def stage_complete(e: StageCompleteEvent) -> None:
            stage = _(f"install.stage.{e.stage}")
            report = e.report
            if report is None:
                ns.out.task("OK", "install.stage.start", stage=stage)
            elif report.ok:
                ns.out.task("OK", "install.stage.complete", stage=stage, count=report.count)
            else:
                ns.out.task("WARN", "install.stage.complete_with_errors", stage=stage,
                    count=report.count - len(report.errors),
                    errors_count=len(report.errors))
            ns.out.finish()
            if report is not None:
                print_report_errors(ns, report)

        def native_extracted(e: NativeExtractedEvent) -> None:
            if ns.verbose >= 1:
                ns.out.task("INFO", "install.natives.extracted", archive=e.archive, count=e.count)
                ns.out.finish()

        def native_skipped(e: NativeSkippedEvent) -> None:
            ns.out.task("INFO", "install.natives.skipped", archive=e.archive)
            ns.out.finish()

        super().__init__({
            VersionResolvingEvent: lambda e: ns.out.task("..", "install.version.resolving", version=e.version),
            VersionResolvedEvent: lambda e: ns.out.task("..", "install.version.resolved", version=e.version),
            StageStartEvent: lambda e: ns.out.task("..", "install.stage.start", stage=_(f"install.stage.{e.stage}")),
            StageCompleteEvent: stage_complete,
            DownloadStartEvent: self.download_start,
            DownloadProgressEvent: self.download_progress,
            DownloadCompleteEvent: lambda e: None,
            NativeExtractedEvent: native_extracted,
            NativeSkippedEvent: native_skipped,
        })

        self.ns = ns
        self.entries_count = 0
        self.sizes: List[int] = []
        self.size = 0

    def download_start(self, e: DownloadStartEvent):

        if self.ns.verbose:
            self.ns.out.task("INFO", "download.threads_count", count=e.threads_count)
            self.ns.out.finish()

        self.entries_count = e.entries_count
        self.sizes = [0] * e.threads_count
        self.size = 0
        self.ns.out.task("..", "download.start")

    def download_progress(self, e: DownloadProgressEvent) -> None:

        self.sizes[e.thread_id] = e.size

        total_count = str(self.entries_count)
        count = f"{e.count:{len(total_count)}}"

        self.ns.out.task("..", "download.progress",
            count=count,
            total_count=total_count,
            size=f"{format_number(self.size + sum(self.sizes))}o")

        if e.done:
            self.size += e.size
            self.sizes[e.thread_id] = 0


def print_report_errors(ns: RootNs, report: StageReport) -> None:
    """Print every item failure of a stage report.
    """
    for error in report.errors:
        if isinstance(error, FetchError):
            ns.out.task(None, "download.error", name=error.entry.name, message=_(f"download.error.{error.code}"))
        elif isinstance(error, ExtractError):
            ns.out.task(None, "install.natives.extract_error", archive=error.archive, message=str(error.origin))
        else:
            ns.out.task(None, "echo", echo=str(error))
        ns.out.finish()


class StartWatcher(SimpleWatcher):

    def __init__(self, ns: RootNs) -> None:

        def profile_created(e: ProfileCreatedEvent) -> None:
            if ns.verbose >= 1:
                ns.out.task("INFO", "start.profile.created")
                ns.out.finish()

        def launch(e: LaunchEvent) -> None:
            ns.out.task("OK", "start.launching", version=e.version)
            ns.out.finish()
            ns.out.print("\n")
            if ns.verbose >= 1:
                ns.out.print(" ".join(e.args) + "\n")

        def identity_minted(e: IdentityMintedEvent) -> None:
            ns.out.task("INFO", "start.identity.minted", name=e.name, reason=e.reason)
            ns.out.finish()

        super().__init__({
            IdentityMintedEvent: identity_minted,
            ProfileCreatedEvent: profile_created,
            OptionsResetEvent: lambda e: (ns.out.task("INFO", "start.options.reset"), ns.out.finish()),
            LaunchEvent: launch,
            GameOutputEvent: lambda e: ns.out.print(f"{e.line}\n"),
        })
