"""CLI interface for the pointmarker project.

Subcommands live in packages next to this file; each one exposes a
``COMMAND_DESCRIPTION`` and a ``command(subparser)`` returning its handler.
"""

import logging
import sys
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from gettext import gettext as _
from pathlib import Path

import pointmarker.utils.i18n  # noqa: F401
from pointmarker.utils.misc import load_module

logger = logging.getLogger(__name__)

VERSION_FILE = Path(__file__).parent.parent / "VERSION"


def add_subcommand(subparsers, name: str, submodule):
    subparser = subparsers.add_parser(name, help=submodule.COMMAND_DESCRIPTION)
    common_flags(subparser)
    handler = submodule.command(subparser)
    subparser.set_defaults(fn=handler)


def common_flags(parser):
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        help=_("Give more details about what is happening"),
    )  # noqa: E501
    parser.add_argument(
        "-V",
        "--version",
        dest="is_show_version",
        action="store_true",
        help=_("Print version and exit"),
    )  # noqa: E501


def get_version() -> str:
    return VERSION_FILE.read_text().strip()


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="pointmarker", formatter_class=ArgumentDefaultsHelpFormatter
    )
    common_flags(parser)
    subparsers = parser.add_subparsers()

    for module in sorted(Path(__file__).parent.glob("*/__init__.py")):
        if str(module).find("pycache") > 0:
            continue
        module_name = module.parent.name
        subcommand_module = load_module(
            module, module_name=f"pointmarker.cli.{module_name}"
        )
        add_subcommand(subparsers, module_name, subcommand_module)
    return parser


def main(argv=None):
    """
    The main function executes on commands:
    `python -m pointmarker` and `$ pointmarker`.
    """
    logging.basicConfig()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.root.setLevel(logging.DEBUG)

    version = get_version()
    if args.is_show_version:
        print(version)
        sys.exit(0)
    logger.debug(f"{_('Starting')} pointmarker v{version}")

    fn = args.__dict__.get("fn")
    args.__dict__["fn"] = None
    if fn is not None:
        return fn(args)
    parser.print_help()
    return None
