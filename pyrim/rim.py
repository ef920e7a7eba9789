# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import base64
import hashlib
import json
from typing import Iterable, Optional

from loguru import logger as LOG

from .client import RimServiceClient, RimServiceResponse
from .comid import Comid
from .corim import COMID_TAG, SignedCorim, Tag, split_tag
from .coserv import ResultSet
from .crypto import Pem
from .errors import (
    DigestMismatchError,
    EnvelopeError,
    RimEncodingError,
    RimFormatError,
)

EXPECTED_RIM_FORMAT = "CORIM"


def decode_envelope(body: bytes) -> RimServiceResponse:
    """
    Parse the JSON document returned by the RIM service.

    Unknown fields are ignored, but a body that is not a JSON object is
    rejected.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise EnvelopeError(f"Failed to decode RIM service response: {e}") from e

    if not isinstance(data, dict):
        raise EnvelopeError("RIM service response is not a JSON object")

    return RimServiceResponse.from_dict(data)


def decode_rim_bytes(
    response: RimServiceResponse, *, check_digest: bool = False
) -> bytes:
    """
    Extract the encoded signed CoRIM from a service response.

    The response must declare the CORIM format. If check_digest is set, the
    declared SHA-256 digest must match the decoded bytes, otherwise a mismatch
    is only logged.
    """
    if response.rim_format != EXPECTED_RIM_FORMAT:
        raise RimFormatError(response.rim_format)

    try:
        corim_bytes = base64.b64decode(response.rim, validate=True)
    except ValueError as e:
        raise RimEncodingError(
            f"Failed to base64 decode the RIM byte string {response.rim!r}"
        ) from e

    LOG.info(f"Decoded {len(corim_bytes)} bytes of CoRIM data.")

    if response.sha256:
        digest = hashlib.sha256(corim_bytes).hexdigest()
        if digest != response.sha256.lower():
            message = f"RIM digest mismatch: expected {response.sha256}, got {digest}"
            if check_digest:
                raise DigestMismatchError(message)
            LOG.warning(message)

    return corim_bytes


def decode_rim(
    response: RimServiceResponse, *, check_digest: bool = False
) -> SignedCorim:
    return SignedCorim.from_cose(decode_rim_bytes(response, check_digest=check_digest))


def decode_document(data: bytes, *, check_digest: bool = False) -> SignedCorim:
    """
    Decode either a saved RIM service response or a raw signed CoRIM.
    """
    if data.lstrip()[:1] == b"{":
        return decode_rim(decode_envelope(data), check_digest=check_digest)
    return SignedCorim.from_cose(data)


def collect_reference_values(
    tags: Iterable[Tag], result_set: Optional[ResultSet] = None
) -> ResultSet:
    """
    Copy the reference-value triples of every CoMID tag into a result set.

    Tags of any other type are skipped. If no result set is given, a new one
    is created. The result set is returned.
    """
    if result_set is None:
        result_set = ResultSet()

    for tag in tags:
        prefix, payload = split_tag(tag)
        if prefix != COMID_TAG:
            LOG.debug(f"Skipping tag of type {prefix.hex()}")
            continue

        LOG.info("Found a CoMID tag.")
        comid = Comid.from_cbor(payload)
        for triple in comid.triples.reference_values:
            LOG.debug("Adding a reference value triple to the result.")
            result_set.add_reference_values(triple)

    return result_set


def extract_reference_values(
    signed_corim: SignedCorim, *, verify_key: Optional[Pem] = None
) -> ResultSet:
    """
    Build a result set from a signed CoRIM, optionally checking its signature
    first. The CoRIM itself is recorded as the result set's source artifact.
    """
    if verify_key is not None:
        signed_corim.verify_signature(verify_key)
        LOG.info("CoRIM signature is valid.")

    result_set = ResultSet().add_source_artifact(signed_corim.encoded)
    return collect_reference_values(signed_corim.tags, result_set)


def fetch_reference_values(
    client: RimServiceClient,
    rimid: str,
    *,
    check_digest: bool = False,
    verify_key: Optional[Pem] = None,
) -> ResultSet:
    """
    Download a RIM and collect the reference values it carries.
    """
    response = decode_envelope(client.get_rim(rimid))
    signed_corim = decode_rim(response, check_digest=check_digest)
    return extract_reference_values(signed_corim, verify_key=verify_key)
