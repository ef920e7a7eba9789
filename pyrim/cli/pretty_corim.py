# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
import argparse
import json
from pathlib import Path

from ..rim import decode_document
from .command import run_command


def prettyprint_corim(corim_path: Path) -> str:
    """
    Pretty-print a signed CoRIM file, or the RIM of a saved RIM service response
    """
    signed_corim = decode_document(corim_path.read_bytes())

    fallback_serialization = lambda o: f"<<non-serializable: {type(o).__qualname__}>>"
    return json.dumps(signed_corim.as_dict(), default=fallback_serialization, indent=2)


def cli(fn):
    parser = fn(description=prettyprint_corim.__doc__)
    parser.add_argument("corim", type=Path, help="Path to a signed CoRIM file")

    def cmd(args):
        print(prettyprint_corim(args.corim))

    parser.set_defaults(func=cmd)
    return parser


if __name__ == "__main__":
    parser = cli(argparse.ArgumentParser)
    args = parser.parse_args()
    run_command(args)
