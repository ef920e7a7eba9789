# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import cbor2
from cbor2 import CBORError, CBORTag
from pycose.exceptions import CoseException
from pycose.headers import KID, Algorithm, ContentType
from pycose.messages import Sign1Message

from . import crypto
from .comid import Comid, cbor_to_printable, display_cbor_val
from .errors import CoseDecodeError, SignatureError

# Encoded CBOR tag headers (major type 6, 2-byte argument) of the tags a
# CoRIM may carry.
COSWID_TAG = bytes.fromhex("d901f9")  # 505
COMID_TAG = bytes.fromhex("d901fa")  # 506
COTL_TAG = bytes.fromhex("d901fc")  # 508

TAG_PREFIX_LENGTH = 3

TAG_NAMES = {
    COSWID_TAG: "coswid",
    COMID_TAG: "comid",
    COTL_TAG: "cotl",
}

CBOR_TAG_UNSIGNED_CORIM = 501

# corim-map keys
CORIM_ID = 0
CORIM_TAGS = 1
CORIM_DEPENDENT_RIMS = 2
CORIM_PROFILE = 3
CORIM_RIM_VALIDITY = 4
CORIM_ENTITIES = 5

# corim-meta-map keys
META_SIGNER = 0
META_SIGNATURE_VALIDITY = 1
SIGNER_NAME = 0
SIGNER_URI = 1

Tag = bytes


def split_tag(tag: Tag) -> Tuple[bytes, bytes]:
    """Split an encoded CoRIM tag into its type prefix and its payload."""
    return tag[:TAG_PREFIX_LENGTH], tag[TAG_PREFIX_LENGTH:]


def _encode_tag(item: Any) -> Tag:
    # Tags are either carried as byte strings holding the encoded tagged
    # item, or inline as tagged items.
    if isinstance(item, bytes):
        return item
    if isinstance(item, CBORTag):
        return cbor2.dumps(item)
    raise CoseDecodeError(f"Unsupported CoRIM tag entry: {type(item).__name__}")


def _header_value(headers: dict, label: int) -> Any:
    # pycose replaces registered labels by header classes and keeps unknown
    # labels as plain integers.
    for k, v in headers.items():
        if getattr(k, "identifier", k) == label:
            return v
    return None


@dataclass
class UnsignedCorim:
    """
    A corim-map: an identifier and the list of encoded tags it carries.
    """

    id: Union[str, uuid.UUID]
    tags: List[Tag]
    dependent_rims: Optional[list] = None
    profile: Any = None
    rim_validity: Optional[dict] = None
    entities: Optional[list] = None

    @classmethod
    def from_cbor(cls, data: bytes) -> "UnsignedCorim":
        try:
            obj = cbor2.loads(data)
        except CBORError as e:
            raise CoseDecodeError(f"Failed to decode CoRIM: {e}") from e
        return cls.from_cbor_obj(obj)

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "UnsignedCorim":
        if isinstance(obj, CBORTag):
            if obj.tag != CBOR_TAG_UNSIGNED_CORIM:
                raise CoseDecodeError(f"Unexpected CBOR tag {obj.tag} for CoRIM")
            obj = obj.value

        if not isinstance(obj, Mapping):
            raise CoseDecodeError("CoRIM must be a map")
        if not isinstance(obj.get(CORIM_ID), (str, uuid.UUID)):
            raise CoseDecodeError("CoRIM has no valid identifier")
        tags = obj.get(CORIM_TAGS)
        if not isinstance(tags, Sequence) or isinstance(tags, (str, bytes)):
            raise CoseDecodeError("CoRIM has no tag list")

        return cls(
            id=obj[CORIM_ID],
            tags=[_encode_tag(t) for t in tags],
            dependent_rims=obj.get(CORIM_DEPENDENT_RIMS),
            profile=obj.get(CORIM_PROFILE),
            rim_validity=obj.get(CORIM_RIM_VALIDITY),
            entities=obj.get(CORIM_ENTITIES),
        )

    def as_dict(self) -> dict:
        tags = []
        for tag in self.tags:
            prefix, payload = split_tag(tag)
            name = TAG_NAMES.get(prefix, prefix.hex())
            if prefix == COMID_TAG:
                tags.append({"type": name, "comid": Comid.from_cbor(payload).as_dict()})
            else:
                tags.append({"type": name, "size": len(payload)})

        result: Dict[str, Any] = {"id": display_cbor_val(self.id), "tags": tags}
        if self.profile is not None:
            result["profile"] = cbor_to_printable(self.profile)
        if self.rim_validity is not None:
            result["rim-validity"] = cbor_to_printable(self.rim_validity)
        if self.entities is not None:
            result["entities"] = cbor_to_printable(self.entities)
        if self.dependent_rims is not None:
            result["dependent-rims"] = cbor_to_printable(self.dependent_rims)
        return result


@dataclass
class SignedCorim:
    """
    A CoRIM wrapped in a COSE_Sign1 envelope.
    """

    message: Sign1Message
    unsigned_corim: UnsignedCorim
    encoded: bytes

    @classmethod
    def from_cose(cls, data: bytes) -> "SignedCorim":
        try:
            message = Sign1Message.decode(data)
        except (
            CBORError,
            CoseException,
            AttributeError,
            IndexError,
            KeyError,
            TypeError,
            ValueError,
        ) as e:
            raise CoseDecodeError(f"Failed to parse COSE: {e}") from e

        if not isinstance(message, Sign1Message):
            raise CoseDecodeError("Failed to parse COSE: not a COSE_Sign1 message")
        if not message.payload:
            raise CoseDecodeError("Failed to parse COSE: signed CoRIM has no payload")

        return cls(message, UnsignedCorim.from_cbor(message.payload), data)

    @property
    def tags(self) -> List[Tag]:
        return self.unsigned_corim.tags

    @property
    def payload(self) -> bytes:
        return self.message.payload

    @property
    def protected(self) -> dict:
        return self.message.phdr

    @property
    def unprotected(self) -> dict:
        return self.message.uhdr

    @property
    def content_type(self) -> Optional[str]:
        return self.message.get_attr(ContentType)

    @property
    def kid(self) -> Optional[bytes]:
        return self.message.get_attr(KID)

    @property
    def algorithm(self) -> Optional[str]:
        alg = self.message.get_attr(Algorithm)
        if alg is None:
            return None
        return getattr(alg, "fullname", str(alg))

    @property
    def meta(self) -> Optional[Mapping]:
        """The decoded corim-meta-map, if the envelope carries one."""
        value = _header_value(self.protected, crypto.COSE_HEADER_PARAM_CORIM_META)
        if value is None:
            return None
        if isinstance(value, bytes):
            try:
                value = cbor2.loads(value)
            except CBORError as e:
                raise CoseDecodeError(f"Failed to decode CoRIM meta: {e}") from e
        if not isinstance(value, Mapping):
            raise CoseDecodeError("CoRIM meta must be a map")
        return value

    @property
    def signer_name(self) -> Optional[str]:
        meta = self.meta
        if meta is None:
            return None
        signer = meta.get(META_SIGNER)
        if not isinstance(signer, Mapping):
            return None
        return signer.get(SIGNER_NAME)

    def verify_signature(self, key_pem: crypto.Pem):
        """
        Verify the COSE signature with the given PEM public key or certificate.
        """
        try:
            self.message.key = crypto.cose_public_key_from_pem(key_pem)
            valid = self.message.verify_signature()
        except (CoseException, ValueError, TypeError) as e:
            raise SignatureError(f"Failed to verify CoRIM signature: {e}") from e
        if not valid:
            raise SignatureError("CoRIM signature is invalid")

    def as_dict(self) -> dict:
        """
        Return a representation of the envelope and its contents that is
        amenable to pretty-printing.
        """
        protected: Dict[str, Any] = {}
        if self.algorithm is not None:
            protected["alg"] = self.algorithm
        if self.content_type is not None:
            protected["content-type"] = display_cbor_val(self.content_type)
        if self.kid is not None:
            protected["kid"] = display_cbor_val(self.kid)
        if self.meta is not None:
            protected["corim-meta"] = cbor_to_printable(self.meta)

        return {
            "protected": protected,
            "corim": self.unsigned_corim.as_dict(),
        }
