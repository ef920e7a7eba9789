# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import datetime
from typing import Any, Dict, Iterator, List, Optional

import cbor2
from cbor2 import CBOREncodeError, CBOREncoder

from .comid import EncodedCbor, ReferenceValueTriple, cbor_to_printable

# result-set map keys
RESULT_SET_REFERENCE_VALUES = 0
RESULT_SET_EXPIRY = 10
RESULT_SET_SOURCE_ARTIFACTS = 11

# reference-value quad keys
QUAD_AUTHORITIES = 1
QUAD_TRIPLE = 2


def _encode_cbor_item(encoder: CBOREncoder, value: Any):
    if not isinstance(value, EncodedCbor):
        raise CBOREncodeError(f"cannot serialize type {type(value).__name__}")
    encoder.write(value.data)


class ResultSet:
    """
    Accumulator for the reference values of a CoSERV query result.

    Triples are kept exactly as they were added, in insertion order.
    """

    reference_values: List[ReferenceValueTriple]
    authorities: List[Any]
    expiry: Optional[datetime.datetime]
    source_artifacts: List[bytes]

    def __init__(
        self,
        *,
        authorities: Optional[List[Any]] = None,
        expiry: Optional[datetime.datetime] = None,
    ):
        self.reference_values = []
        self.authorities = authorities or []
        self.expiry = expiry
        self.source_artifacts = []

    def __len__(self) -> int:
        return len(self.reference_values)

    def __iter__(self) -> Iterator[ReferenceValueTriple]:
        return iter(self.reference_values)

    def add_reference_values(self, triple: ReferenceValueTriple) -> "ResultSet":
        self.reference_values.append(triple)
        return self

    def add_source_artifact(self, artifact: bytes) -> "ResultSet":
        self.source_artifacts.append(artifact)
        return self

    def to_cbor_obj(self, preserve_encoding: bool = False) -> Dict[int, Any]:
        """
        If preserve_encoding is set, triples decoded from a CoMID are
        returned as EncodedCbor items holding their original encoding.
        """
        result: Dict[int, Any] = {
            RESULT_SET_REFERENCE_VALUES: [
                {
                    QUAD_AUTHORITIES: self.authorities,
                    QUAD_TRIPLE: t.to_cbor_item()
                    if preserve_encoding
                    else t.to_cbor_obj(),
                }
                for t in self.reference_values
            ]
        }
        if self.expiry is not None:
            result[RESULT_SET_EXPIRY] = self.expiry
        if self.source_artifacts:
            result[RESULT_SET_SOURCE_ARTIFACTS] = self.source_artifacts
        return result

    def to_cbor(self) -> bytes:
        # Expiry is encoded as an epoch-based date/time (tag 1). Triples keep
        # the encoding they were received in.
        return cbor2.dumps(
            self.to_cbor_obj(preserve_encoding=True),
            default=_encode_cbor_item,
            datetime_as_timestamp=True,
            timezone=datetime.timezone.utc,
        )

    def as_dict(self) -> dict:
        """
        Return a representation of the result set that is amenable to
        pretty-printing.
        """
        result: Dict[str, Any] = {
            "reference-values": [
                {
                    "authorities": cbor_to_printable(self.authorities),
                    "triple": t.as_dict(),
                }
                for t in self.reference_values
            ]
        }
        if self.expiry is not None:
            result["expiry"] = self.expiry.isoformat()
        if self.source_artifacts:
            result["source-artifacts"] = [len(a) for a in self.source_artifacts]
        return result
