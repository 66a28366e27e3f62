from argparse import ArgumentParser, HelpFormatter, ArgumentTypeError
from pathlib import Path

from .output import Output
from .lang import get as _

from typing import Optional, Type, Tuple, List


# The following classes are only used for type checking and represent a typed namespace
# as produced by the arguments registered to the argument parser.

class RootNs:
    main_dir: Optional[Path]
    timeout: Optional[float]
    out_kind: str
    verbose: int
    # Initialized by main function after argument parsing.
    out: Output
    root: Path

class InstallNs(RootNs):
    threads: int
    skip_existing: bool
    verify: bool
    version: str

class StartNs(RootNs):
    dry: bool
    username: str
    min_memory: str
    max_memory: str
    java: str
    resolution: Optional[Tuple[int, int]]
    version: str


def register_arguments() -> ArgumentParser:
    parser = ArgumentParser(allow_abbrev=False, prog="craftlaunch", description=_("args"))
    parser.add_argument("--main-dir", help=_("args.main_dir"), type=Path)
    parser.add_argument("--timeout", help=_("args.timeout"), type=float)
    parser.add_argument("--output", help=_("args.output"), dest="out_kind", choices=get_outputs(), default="human-color")
    parser.add_argument("-v", dest="verbose", help=_("args.verbose"), action="count", default=0)
    register_subcommands(parser.add_subparsers(title="subcommands", dest="subcommand"))
    return parser


def register_subcommands(subparsers):
    register_install_arguments(subparsers.add_parser("install", help=_("args.install")))
    register_start_arguments(subparsers.add_parser("start", help=_("args.start")))


def register_install_arguments(parser: ArgumentParser):
    parser.formatter_class = new_help_formatter_class(40)
    parser.add_argument("--threads", help=_("args.install.threads"), type=threads_from_str, default=2, metavar="N")
    parser.add_argument("--skip-existing", help=_("args.install.skip_existing"), action="store_true")
    parser.add_argument("--verify", help=_("args.install.verify"), action="store_true")
    parser.add_argument("version", nargs="?", default="release", help=_("args.install.version"))


def register_start_arguments(parser: ArgumentParser):
    parser.formatter_class = new_help_formatter_class(40)
    parser.add_argument("--dry", help=_("args.start.dry"), action="store_true")
    parser.add_argument("-u", "--username", help=_("args.start.username"), default="Player", metavar="NAME")
    parser.add_argument("--min-memory", help=_("args.start.min_memory"), default="1G", metavar="SIZE")
    parser.add_argument("--max-memory", help=_("args.start.max_memory"), default="2G", metavar="SIZE")
    parser.add_argument("--java", help=_("args.start.java"), default="java", metavar="PATH")
    parser.add_argument("--resolution", help=_("args.start.resolution"), type=resolution_from_str)
    parser.add_argument("version", help=_("args.start.version"))


def new_help_formatter_class(max_help_position: int) -> Type[HelpFormatter]:

    class CustomHelpFormatter(HelpFormatter):
        def __init__(self, prog):
            super().__init__(prog, max_help_position=max_help_position)

    return CustomHelpFormatter


def get_outputs() -> List[str]:
    return ["human-color", "human", "machine"]


def threads_from_str(s: str) -> int:
    try:
        count = int(s)
    except ValueError:
        raise ArgumentTypeError(f"invalid threads count: {s}")
    if count < 1:
        raise ArgumentTypeError(f"invalid threads count: {s}")
    return count


def resolution_from_str(s: str) -> Tuple[int, int]:
    parts = s.split("x")
    if len(parts) == 2:
        try:
            return (int(parts[0]), int(parts[1]))
        except ValueError:
            pass
    raise ArgumentTypeError(_("args.start.resolution.invalid", given=s))
