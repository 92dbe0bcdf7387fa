import argparse
import logging
import os
import shutil
import sys

from overrides import override

from .tools import move
from .tools.utils import generic_utils

TOOLS = {
    "move": (move.MoveTool(), "Merge all downloaded versions of an episode (languages, audio description, subtitles)\n"
                              "into one MKV file and put it into the library."),
}


class CustomParserFormatter(argparse.HelpFormatter):
    @override
    def _split_lines(self, text: str, width: int) -> list[str]:
        return text.splitlines()

    @override
    def _get_help_string(self, action: argparse.Action) -> str:
        help_str = action.help or ""
        if '%(default)' not in help_str and action.default not in (argparse.SUPPRESS, None, False):
            help_str += f' (default: {action.default})'
        return help_str


class CustomLoggerFormatter(logging.Formatter):
    grey = "\x1b[38;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"
    format_txt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

    COLOURS = {
        logging.DEBUG: grey,
        logging.INFO: grey,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    @override
    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelno, self.grey)
        return logging.Formatter(colour + self.format_txt + self.reset).format(record)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mvmover',
        description='Merges episodes downloaded from public broadcasters media libraries (MediathekView) '
                    'in many versions into single multi language files.\n'
                    'By default nothing is modified, planned operations are only logged.\n'
                    'Use --no-dry-run option to merge and move files.\n'
                    'It is safe to stop with ctrl+c - current episode will be abandoned '
                    'and no partial files will be left.',
        formatter_class=CustomParserFormatter
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose",
                           action="store_true",
                           help="Enable verbose output")
    verbosity.add_argument("--quiet",
                           action="store_true",
                           help="Disable all output")

    parser.add_argument("--no-dry-run", "-r",
                        action='store_true',
                        default=False,
                        help='Perform actual operation.')
    parser.add_argument("--working-dir", "-w",
                        default=generic_utils.get_mvmover_working_dir(),
                        help="Directory for temporary files")
    parser.add_argument("--log-file",
                        help="Also write log to given file")

    subparsers = parser.add_subparsers(dest="tool", help="Available tools:")
    for tool_name, (tool, desc) in TOOLS.items():
        tool_parser = subparsers.add_parser(tool_name, help=desc, formatter_class=CustomParserFormatter)
        tool.setup_parser(tool_parser)

    return parser


def setup_logger(args: argparse.Namespace) -> logging.Logger:
    logger = logging.getLogger("MvMover")

    if args.verbose:
        logger.setLevel(logging.DEBUG)
    elif args.quiet:
        logger.setLevel(logging.CRITICAL)

    if args.log_file:
        file_handler = logging.FileHandler(args.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(CustomLoggerFormatter.format_txt))
        logger.addHandler(file_handler)

    return logger


def execute(argv: list[str]) -> None:
    parser = build_parser()
    args = parser.parse_args(args=argv)

    if args.tool is None:
        parser.print_help()
        sys.exit(1)

    logger = setup_logger(args)
    tool, _ = TOOLS[args.tool]

    # per process directory, removed on exit
    process_wd = os.path.join(args.working_dir, str(os.getpid()))
    tool_wd = os.path.join(process_wd, args.tool)
    os.makedirs(tool_wd, exist_ok=True)

    try:
        tool.run(args, no_dry_run=args.no_dry_run, logger=logger.getChild(args.tool), working_dir=tool_wd)
    finally:
        shutil.rmtree(process_wd, ignore_errors=True)


def main() -> None:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(CustomLoggerFormatter())

    logging.basicConfig(level=logging.INFO, handlers=[console_handler])

    try:
        execute(sys.argv[1:])
    except RuntimeError as e:
        logging.error(f"Error occurred: {e}. Terminating")
        sys.exit(1)
    except ValueError as e:
        print(f"error: {e}")
        sys.exit(2)
    except OSError as e:
        logging.error(f"Filesystem error: {e}. Terminating")
        sys.exit(1)

if __name__ == '__main__':
    main()
