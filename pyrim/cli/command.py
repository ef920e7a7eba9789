# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as LOG

from ..coserv import ResultSet
from ..errors import RimError


def run_command(args: argparse.Namespace):
    """
    Run the command selected on the command line. Any pipeline failure is
    logged and terminates the process with exit status 1.
    """
    try:
        args.func(args)
    except RimError as e:
        LOG.error(str(e))
        sys.exit(1)


def output_result_set(
    result_set: ResultSet, out: Optional[Path] = None, print_result: bool = False
):
    LOG.info(f"Collected {len(result_set)} reference value triples.")
    if out is not None:
        out.write_bytes(result_set.to_cbor())
        LOG.info(f"Wrote CoSERV result set to {out}")
    if print_result:
        print(json.dumps(result_set.as_dict(), indent=2))
