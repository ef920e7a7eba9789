# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import argparse
from pathlib import Path

from ..client import RIM_SERVICE_URL_DEFAULT, RimServiceClient


def add_service_arguments(parser: argparse.ArgumentParser):
    """
    Add command-line arguments to an argparse parser, such that a RIM service
    client instance can be configured.
    """

    parser.add_argument("--url", help="RIM service URL", default=RIM_SERVICE_URL_DEFAULT)
    parser.add_argument(
        "-k",
        "--development",
        action="store_true",
        help="Do not verify the TLS certificate of the RIM service",
    )
    parser.add_argument(
        "--cacert",
        type=Path,
        help="Path to a CA bundle used to verify the TLS certificate of the RIM service",
    )


def create_client(args: argparse.Namespace) -> RimServiceClient:
    """
    Create a client instance from the result of parsing command-line arguments.

    This assumes the argument parser was configured with the `add_service_arguments` function.
    """
    kwargs = {
        "url": args.url,
        "development": args.development,
    }

    if args.cacert is not None:
        kwargs["cacert"] = str(args.cacert)

    return RimServiceClient(**kwargs)


def add_output_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--check-digest",
        action="store_true",
        help="Fail if the SHA-256 digest declared by the RIM service does not match the RIM",
    )
    parser.add_argument(
        "--verify-key",
        type=Path,
        help="Path to a PEM public key or certificate used to verify the CoRIM signature",
    )
    parser.add_argument(
        "--out",
        type=Path,
        help="Output path for the CBOR-encoded CoSERV result set",
    )
    parser.add_argument(
        "--print",
        dest="print_result",
        action="store_true",
        help="Print the result set as JSON",
    )
