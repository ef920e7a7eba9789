# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import datetime
import io
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

import cbor2
from cbor2 import CBORError, CBORTag

from .errors import ComidDecodeError

# concise-mid-tag map keys
COMID_LANGUAGE = 0
COMID_TAG_IDENTITY = 1
COMID_ENTITIES = 2
COMID_LINKED_TAGS = 3
COMID_TRIPLES = 4

# tag-identity-map keys
TAG_ID = 0
TAG_VERSION = 1

# triples-map keys
TRIPLES_REFERENCE_VALUES = 0
TRIPLES_ENDORSED_VALUES = 1
TRIPLES_IDENTITY = 2
TRIPLES_ATTEST_KEY = 3

# environment-map keys
ENVIRONMENT_CLASS = 0
ENVIRONMENT_INSTANCE = 1
ENVIRONMENT_GROUP = 2

# measurement-map keys
MEASUREMENT_KEY = 0
MEASUREMENT_VALUES = 1
MEASUREMENT_AUTHORIZED_BY = 2

MVAL_DIGESTS = 2

# CBOR major types
MAJOR_TYPE_ARRAY = 4
MAJOR_TYPE_MAP = 5
CBOR_BREAK = b"\xff"

CLASS_MAP_KEYS = {
    0: "id",
    1: "vendor",
    2: "model",
    3: "layer",
    4: "index",
}

MEASUREMENT_VALUES_KEYS = {
    0: "version",
    1: "svn",
    2: "digests",
    3: "flags",
    4: "raw-value",
    5: "raw-value-mask",
    6: "mac-addr",
    7: "ip-addr",
    8: "serial-number",
    9: "ueid",
    10: "uuid",
    11: "name",
    13: "cryptokeys",
    14: "integrity-registers",
}

TRIPLES_KEYS = {
    TRIPLES_REFERENCE_VALUES: "reference-triples",
    TRIPLES_ENDORSED_VALUES: "endorsed-triples",
    TRIPLES_IDENTITY: "identity-triples",
    TRIPLES_ATTEST_KEY: "attest-key-triples",
    4: "dependency-triples",
    5: "membership-triples",
    6: "coswid-triples",
    8: "conditional-endorsement-series-triples",
    10: "conditional-endorsement-triples",
}

# Named Information Hash Algorithm Registry
HASH_ALGORITHMS = {
    1: "sha-256",
    2: "sha-256-128",
    3: "sha-256-120",
    4: "sha-256-96",
    5: "sha-256-64",
    6: "sha-256-32",
    7: "sha-384",
    8: "sha-512",
    9: "sha3-224",
    10: "sha3-256",
    11: "sha3-384",
    12: "sha3-512",
}


def display_cbor_val(item: Any) -> Any:
    """Convert a CBOR scalar to a JSON-friendly value for pretty-printing."""
    if isinstance(item, (bytes, bytearray)):
        return bytes(item).hex()
    if isinstance(item, uuid.UUID):
        return str(item)
    if isinstance(item, (datetime.datetime, datetime.date)):
        return item.isoformat()
    if isinstance(item, (str, int, float, bool)) or item is None:
        return item
    return str(item)


def cbor_to_printable(cbor_obj: Any, key_names: Optional[Dict[int, str]] = None) -> Any:
    """
    Return a printable representation of a decoded CBOR object.

    key_names optionally maps integer keys of the top-level map to names.
    """
    if isinstance(cbor_obj, CBORTag):
        return {"tag": cbor_obj.tag, "value": cbor_to_printable(cbor_obj.value)}
    if isinstance(cbor_obj, (list, tuple)):
        return [cbor_to_printable(v) for v in cbor_obj]
    if isinstance(cbor_obj, Mapping):
        names = key_names or {}
        return {
            str(names.get(k, display_cbor_val(k))): cbor_to_printable(v)
            for k, v in cbor_obj.items()
        }
    return display_cbor_val(cbor_obj)


def display_digest(digest: Any) -> str:
    if not isinstance(digest, (list, tuple)) or len(digest) != 2:
        return str(cbor_to_printable(digest))
    alg, value = digest
    alg_name = HASH_ALGORITHMS.get(alg, str(alg))
    return f"{alg_name};{display_cbor_val(value)}"


def _is_array(obj: Any) -> bool:
    return isinstance(obj, Sequence) and not isinstance(obj, (str, bytes))


def _expect_map(obj: Any, what: str) -> Mapping:
    if not isinstance(obj, Mapping):
        raise ComidDecodeError(f"{what} must be a map, got {type(obj).__name__}")
    return obj


def _expect_array(obj: Any, what: str) -> Sequence:
    if not _is_array(obj):
        raise ComidDecodeError(f"{what} must be an array, got {type(obj).__name__}")
    return obj


@dataclass(frozen=True)
class EncodedCbor:
    """A CBOR data item kept in its original encoding."""

    data: bytes


def _read_container_header(
    fp: BinaryIO, major_type: int, what: str
) -> Optional[int]:
    # Returns the number of entries, or None for an indefinite-length item.
    initial = fp.read(1)
    if not initial or initial[0] >> 5 != major_type:
        raise ComidDecodeError(f"Unexpected encoding of {what}")
    info = initial[0] & 0x1F
    if info < 24:
        return info
    if info <= 27:
        size = 1 << (info - 24)
        argument = fp.read(size)
        if len(argument) != size:
            raise ComidDecodeError(f"Truncated encoding of {what}")
        return int.from_bytes(argument, "big")
    if info == 31:
        return None
    raise ComidDecodeError(f"Unexpected encoding of {what}")


def _has_next(fp: BinaryIO, remaining: Optional[int]) -> bool:
    if remaining is not None:
        return remaining > 0
    position = fp.tell()
    if fp.read(1) == CBOR_BREAK:
        return False
    fp.seek(position)
    return True


def _seek_map_value(
    fp: BinaryIO, decoder: cbor2.CBORDecoder, key: int, what: str
) -> bool:
    """
    Advance past the entries of the map at the current position until the
    value of the given key is next. Returns False if the key is absent.
    """
    remaining = _read_container_header(fp, MAJOR_TYPE_MAP, what)
    while _has_next(fp, remaining):
        if decoder.decode() == key:
            return True
        decoder.decode()
        if remaining is not None:
            remaining -= 1
    return False


def reference_triple_encodings(data: bytes) -> List[bytes]:
    """
    Return the encoded reference-triple-records of an encoded
    concise-mid-tag, in order.
    """
    fp = io.BytesIO(data)
    decoder = cbor2.CBORDecoder(fp)
    try:
        if not _seek_map_value(fp, decoder, COMID_TRIPLES, "concise-mid-tag"):
            return []
        if not _seek_map_value(fp, decoder, TRIPLES_REFERENCE_VALUES, "triples-map"):
            return []

        encodings = []
        remaining = _read_container_header(fp, MAJOR_TYPE_ARRAY, "reference-triples")
        while _has_next(fp, remaining):
            start = fp.tell()
            decoder.decode()
            encodings.append(data[start : fp.tell()])
            if remaining is not None:
                remaining -= 1
    except CBORError as e:
        raise ComidDecodeError(f"Failed to populate CoMID from CBOR: {e}") from e
    return encodings


@dataclass
class Measurement:
    """
    A measurement-map: an optional measured element key and a map of
    measurement values.
    """

    raw: Dict[int, Any]

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "Measurement":
        obj = _expect_map(obj, "measurement-map")
        if MEASUREMENT_VALUES not in obj:
            raise ComidDecodeError("measurement-map is missing measurement values")
        _expect_map(obj[MEASUREMENT_VALUES], "measurement-values-map")
        return cls(obj)

    @property
    def key(self) -> Any:
        return self.raw.get(MEASUREMENT_KEY)

    @property
    def values(self) -> Dict[int, Any]:
        return self.raw[MEASUREMENT_VALUES]

    @property
    def digests(self) -> List[Tuple[Any, bytes]]:
        digests = []
        for alg, value in self.values.get(MVAL_DIGESTS, []):
            digests.append((alg, value))
        return digests

    def to_cbor_obj(self) -> Dict[int, Any]:
        return self.raw

    def as_dict(self) -> dict:
        values = cbor_to_printable(self.values, MEASUREMENT_VALUES_KEYS)
        if MVAL_DIGESTS in self.values:
            values["digests"] = [display_digest(d) for d in self.values[MVAL_DIGESTS]]
        result = {"value": values}
        if MEASUREMENT_KEY in self.raw:
            result["key"] = cbor_to_printable(self.key)
        if MEASUREMENT_AUTHORIZED_BY in self.raw:
            result["authorized-by"] = cbor_to_printable(
                self.raw[MEASUREMENT_AUTHORIZED_BY]
            )
        return result


@dataclass
class Environment:
    """
    An environment-map, identifying the target environment by class,
    instance and/or group.
    """

    raw: Dict[int, Any]

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "Environment":
        obj = _expect_map(obj, "environment-map")
        if ENVIRONMENT_CLASS in obj:
            _expect_map(obj[ENVIRONMENT_CLASS], "class-map")
        return cls(obj)

    @property
    def class_map(self) -> Optional[Dict[int, Any]]:
        return self.raw.get(ENVIRONMENT_CLASS)

    @property
    def vendor(self) -> Optional[str]:
        return (self.class_map or {}).get(1)

    @property
    def model(self) -> Optional[str]:
        return (self.class_map or {}).get(2)

    @property
    def instance(self) -> Any:
        return self.raw.get(ENVIRONMENT_INSTANCE)

    @property
    def group(self) -> Any:
        return self.raw.get(ENVIRONMENT_GROUP)

    def to_cbor_obj(self) -> Dict[int, Any]:
        return self.raw

    def as_dict(self) -> dict:
        result = {}
        if self.class_map is not None:
            result["class"] = cbor_to_printable(self.class_map, CLASS_MAP_KEYS)
        if ENVIRONMENT_INSTANCE in self.raw:
            result["instance"] = cbor_to_printable(self.instance)
        if ENVIRONMENT_GROUP in self.raw:
            result["group"] = cbor_to_printable(self.group)
        return result


@dataclass
class ReferenceValueTriple:
    """
    A reference-triple-record: an environment paired with the measurements
    expected from it.
    """

    environment: Environment
    measurements: List[Measurement] = field(default_factory=list)
    encoded: Optional[bytes] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "ReferenceValueTriple":
        obj = _expect_array(obj, "reference-triple-record")
        if len(obj) != 2:
            raise ComidDecodeError(
                f"reference-triple-record must have 2 elements, got {len(obj)}"
            )
        environment = Environment.from_cbor_obj(obj[0])
        measurements = [
            Measurement.from_cbor_obj(m)
            for m in _expect_array(obj[1], "reference claims")
        ]
        return cls(environment, measurements)

    def to_cbor_obj(self) -> list:
        return [
            self.environment.to_cbor_obj(),
            [m.to_cbor_obj() for m in self.measurements],
        ]

    def to_cbor_item(self) -> Any:
        """
        The triple as an item for a CBOR encoder: its original encoding when
        it was decoded from one, so that tagged values such as dates are
        emitted unchanged.
        """
        if self.encoded is not None:
            return EncodedCbor(self.encoded)
        return self.to_cbor_obj()

    def as_dict(self) -> dict:
        return {
            "environment": self.environment.as_dict(),
            "measurements": [m.as_dict() for m in self.measurements],
        }


@dataclass
class Triples:
    """
    A triples-map. Reference-value triples are decoded, every other kind of
    triple is kept as decoded CBOR.
    """

    reference_values: List[ReferenceValueTriple]
    raw: Dict[int, Any]

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "Triples":
        obj = _expect_map(obj, "triples-map")
        reference_values = [
            ReferenceValueTriple.from_cbor_obj(t)
            for t in _expect_array(
                obj.get(TRIPLES_REFERENCE_VALUES, []), "reference-triples"
            )
        ]
        return cls(reference_values, obj)

    def as_dict(self) -> dict:
        result = cbor_to_printable(
            {k: v for k, v in self.raw.items() if k != TRIPLES_REFERENCE_VALUES},
            TRIPLES_KEYS,
        )
        if self.reference_values:
            result[TRIPLES_KEYS[TRIPLES_REFERENCE_VALUES]] = [
                t.as_dict() for t in self.reference_values
            ]
        return result


@dataclass
class TagIdentity:
    tag_id: Union[str, uuid.UUID]
    tag_version: int = 0

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "TagIdentity":
        obj = _expect_map(obj, "tag-identity-map")
        tag_id = obj.get(TAG_ID)
        if not isinstance(tag_id, (str, uuid.UUID)):
            raise ComidDecodeError("tag-identity-map has no valid tag-id")
        return cls(tag_id, obj.get(TAG_VERSION, 0))


@dataclass
class Comid:
    """
    A concise-mid-tag, as carried in a CoRIM.
    """

    tag_identity: TagIdentity
    triples: Triples
    language: Optional[str] = None
    entities: Optional[list] = None
    linked_tags: Optional[list] = None

    @classmethod
    def from_cbor(cls, data: bytes) -> "Comid":
        """
        Decode a CoMID from the payload of a CoMID tag. The payload is either
        the encoded map itself, or a byte string wrapping it.
        """
        try:
            encoded = data
            obj = cbor2.loads(encoded)
            if isinstance(obj, bytes):
                encoded = obj
                obj = cbor2.loads(encoded)
        except CBORError as e:
            raise ComidDecodeError(f"Failed to populate CoMID from CBOR: {e}") from e
        comid = cls.from_cbor_obj(obj)

        encodings = reference_triple_encodings(encoded)
        reference_values = comid.triples.reference_values
        if len(encodings) != len(reference_values):
            raise ComidDecodeError("Inconsistent reference-triples encoding")
        for triple, triple_encoding in zip(reference_values, encodings):
            triple.encoded = triple_encoding
        return comid

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "Comid":
        obj = _expect_map(obj, "concise-mid-tag")
        if COMID_TAG_IDENTITY not in obj:
            raise ComidDecodeError("concise-mid-tag is missing tag-identity")
        if COMID_TRIPLES not in obj:
            raise ComidDecodeError("concise-mid-tag is missing triples")

        return cls(
            tag_identity=TagIdentity.from_cbor_obj(obj[COMID_TAG_IDENTITY]),
            triples=Triples.from_cbor_obj(obj[COMID_TRIPLES]),
            language=obj.get(COMID_LANGUAGE),
            entities=obj.get(COMID_ENTITIES),
            linked_tags=obj.get(COMID_LINKED_TAGS),
        )

    def as_dict(self) -> dict:
        result: Dict[str, Any] = {
            "tag-identity": {
                "id": display_cbor_val(self.tag_identity.tag_id),
                "version": self.tag_identity.tag_version,
            },
            "triples": self.triples.as_dict(),
        }
        if self.language is not None:
            result["language"] = self.language
        if self.entities is not None:
            result["entities"] = cbor_to_printable(self.entities)
        if self.linked_tags is not None:
            result["linked-tags"] = cbor_to_printable(self.linked_tags)
        return result
