# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import argparse
from pathlib import Path
from typing import Optional

from ..coserv import ResultSet
from ..crypto import load_public_key
from ..rim import decode_document, extract_reference_values
from .command import output_result_set, run_command
from .service_arguments import add_output_arguments


def decode_rim_file(
    path: Path,
    *,
    check_digest: bool = False,
    verify_key_path: Optional[Path] = None,
) -> ResultSet:
    """
    Collect the reference values of a saved RIM service response, or of a
    signed CoRIM file.
    """
    signed_corim = decode_document(path.read_bytes(), check_digest=check_digest)
    verify_key = load_public_key(verify_key_path) if verify_key_path else None
    return extract_reference_values(signed_corim, verify_key=verify_key)


def cli(fn):
    parser = fn(description=decode_rim_file.__doc__)
    parser.add_argument(
        "path", type=Path, help="Path to a RIM service response (JSON) or a signed CoRIM"
    )
    add_output_arguments(parser)

    def cmd(args):
        result_set = decode_rim_file(
            args.path,
            check_digest=args.check_digest,
            verify_key_path=args.verify_key,
        )
        output_result_set(result_set, args.out, args.print_result)

    parser.set_defaults(func=cmd)
    return parser


if __name__ == "__main__":
    parser = cli(argparse.ArgumentParser)
    args = parser.parse_args()
    run_command(args)
