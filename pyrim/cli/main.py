# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import argparse

from . import decode_rim, fetch_rim, pretty_corim
from .command import run_command

COMMANDS = [
    ("fetch", fetch_rim),
    ("decode", decode_rim),
    ("pretty-corim", pretty_corim),
]


def main(argv=None):
    parser = argparse.ArgumentParser()
    sub = parser.add_subparsers(
        help="""Choose one of the available commands to run.
                                Use the --help flag to see the options for each command.
                                For instance 'rimtool fetch --help' will show the options for the fetch command.
                                """,
    )
    for name, module in COMMANDS:
        getattr(module, "cli")(lambda *args, **kw: sub.add_parser(name, *args, **kw))
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_usage()
    else:
        run_command(args)


if __name__ == "__main__":
    main()
