# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import argparse
from pathlib import Path
from typing import Optional

from ..client import RimServiceClient
from ..coserv import ResultSet
from ..crypto import load_public_key
from ..rim import fetch_reference_values
from .command import output_result_set, run_command
from .service_arguments import (
    add_output_arguments,
    add_service_arguments,
    create_client,
)


def fetch_rim(
    client: RimServiceClient,
    rimid: str,
    *,
    check_digest: bool = False,
    verify_key_path: Optional[Path] = None,
) -> ResultSet:
    """Download a RIM and collect its reference values into a CoSERV result set."""
    with client:
        verify_key = load_public_key(verify_key_path) if verify_key_path else None
        return fetch_reference_values(
            client, rimid, check_digest=check_digest, verify_key=verify_key
        )


def cli(fn):
    parser = fn(description=fetch_rim.__doc__)
    parser.add_argument(
        "-rimid",
        "--rimid",
        dest="rimid",
        required=True,
        metavar="RIM_ID",
        help="RIM identifier, e.g. NV_GPU_DRIVER_GH100_535.86.10",
    )
    add_service_arguments(parser)
    add_output_arguments(parser)

    def cmd(args):
        if not args.rimid:
            parser.error("the -rimid argument must not be empty")

        client = create_client(args)
        result_set = fetch_rim(
            client,
            args.rimid,
            check_digest=args.check_digest,
            verify_key_path=args.verify_key,
        )
        output_result_set(result_set, args.out, args.print_result)

    parser.set_defaults(func=cmd)
    return parser


def main(argv=None):
    parser = cli(argparse.ArgumentParser)
    args = parser.parse_args(argv)
    run_command(args)


if __name__ == "__main__":
    main()
