# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import base64
import hashlib
import json
from typing import List, Optional

import cbor2
from cbor2 import CBORTag

from pyrim import crypto

# This file provides helpers to assemble CoMIDs, CoRIMs and RIM service
# responses from plain CBOR objects, so tests can control every byte that
# reaches the decoders.

CBOR_TAG_COSWID = 505
CBOR_TAG_COMID = 506
CBOR_TAG_COTL = 508
CBOR_TAG_UNSIGNED_CORIM = 501


def reference_triple(
    model: str = "GH100", index: int = 0, vendor: str = "NVIDIA"
) -> list:
    """A reference-triple-record with one measurement carrying a SHA-256 digest."""
    digest = hashlib.sha256(f"{model}-{index}".encode()).digest()
    return [
        {0: {1: vendor, 2: model}},
        [{0: f"component-{index}", 1: {0: {0: "1.0"}, 2: [[1, digest]]}}],
    ]


def comid(triples: List[list], tag_id: str = "comid-0") -> dict:
    return {1: {0: tag_id}, 4: {0: triples}}


def comid_tag(comid_map: dict) -> bytes:
    return cbor2.dumps(CBORTag(CBOR_TAG_COMID, comid_map))


def coswid_tag(name: str = "driver") -> bytes:
    return cbor2.dumps(CBORTag(CBOR_TAG_COSWID, {0: "swid-0", 12: 0, 1: name}))


def cotl_tag() -> bytes:
    return cbor2.dumps(CBORTag(CBOR_TAG_COTL, {0: {0: "cotl-0"}, 1: [], 2: {}}))


def unsigned_corim(tags: list, corim_id: str = "corim-0") -> bytes:
    return cbor2.dumps(CBORTag(CBOR_TAG_UNSIGNED_CORIM, {0: corim_id, 1: tags}))


def signed_corim(
    private_key: crypto.Pem,
    tags: list,
    *,
    kid: Optional[bytes] = b"test-key",
    signer_name: Optional[str] = "ACME Inc.",
) -> bytes:
    return crypto.sign_corim(
        private_key, unsigned_corim(tags), kid=kid, signer_name=signer_name
    )


def service_response(
    signed: bytes,
    *,
    rimid: str = "NV_GPU_DRIVER_GH100_535.86.10",
    rim_format: str = "CORIM",
    rim: Optional[str] = None,
    sha256: Optional[str] = None,
) -> bytes:
    return json.dumps(
        {
            "id": rimid,
            "rim": base64.b64encode(signed).decode("ascii") if rim is None else rim,
            "sha256": hashlib.sha256(signed).hexdigest() if sha256 is None else sha256,
            "last_updated": "2024-01-30T21:40:12.504Z",
            "rim_format": rim_format,
            "request_id": "b6a2a5b2-3d4b-44e5-8f8b-7ae3e0a3e0b1",
        }
    ).encode("utf-8")
