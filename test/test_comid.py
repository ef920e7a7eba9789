# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import hashlib
import uuid
from types import MappingProxyType

import cbor2
import pytest
from cbor2 import CBORTag

from pyrim.comid import (
    Comid,
    Environment,
    Measurement,
    ReferenceValueTriple,
    cbor_to_printable,
    display_digest,
    reference_triple_encodings,
)
from pyrim.errors import ComidDecodeError

from .infra.corim_builder import comid, reference_triple


def test_from_cbor():
    triples = [reference_triple(index=i) for i in range(3)]
    decoded = Comid.from_cbor(cbor2.dumps(comid(triples, tag_id="comid-x")))

    assert decoded.tag_identity.tag_id == "comid-x"
    assert decoded.tag_identity.tag_version == 0
    assert [t.to_cbor_obj() for t in decoded.triples.reference_values] == triples


def test_from_cbor_wrapped_in_byte_string():
    triples = [reference_triple()]
    decoded = Comid.from_cbor(cbor2.dumps(cbor2.dumps(comid(triples))))
    assert [t.to_cbor_obj() for t in decoded.triples.reference_values] == triples


def test_from_cbor_keeps_triple_encoding():
    triples = [reference_triple(index=i) for i in range(2)]
    triples[1][1][0][1][11] = CBORTag(0, "2024-01-01T00:00:00Z")
    decoded = Comid.from_cbor(cbor2.dumps(comid(triples)))

    assert [t.encoded for t in decoded.triples.reference_values] == [
        cbor2.dumps(t) for t in triples
    ]


def test_reference_triple_encodings_indefinite_length():
    triple = cbor2.dumps(reference_triple())
    # {1: {0: "comid"}, 4: {_ 0: [_ triple, triple]}}
    data = (
        b"\xa2\x01"
        + cbor2.dumps({0: "comid"})
        + b"\x04\xbf\x00\x9f"
        + triple
        + triple
        + b"\xff\xff"
    )
    assert reference_triple_encodings(data) == [triple, triple]

    decoded = Comid.from_cbor(data)
    assert [t.to_cbor_obj() for t in decoded.triples.reference_values] == [
        reference_triple(),
        reference_triple(),
    ]


def test_reference_triple_encodings_without_reference_values():
    assert reference_triple_encodings(cbor2.dumps({1: {0: "comid"}})) == []
    assert reference_triple_encodings(cbor2.dumps({1: {0: "c"}, 4: {1: []}})) == []


def test_from_cbor_obj_accepts_immutable_containers():
    environment, measurements = reference_triple()
    comid_map = MappingProxyType(
        {
            1: MappingProxyType({0: "comid"}),
            4: MappingProxyType({0: ((environment, tuple(measurements)),)}),
        }
    )
    decoded = Comid.from_cbor_obj(comid_map)

    (triple,) = decoded.triples.reference_values
    assert triple.environment.model == "GH100"
    assert triple.measurements[0].key == "component-0"
    assert triple.encoded is None


def test_optional_fields():
    tag_id = uuid.uuid4()
    comid_map = {
        0: "en-US",
        1: {0: tag_id, 1: 3},
        2: [{0: "NVIDIA", 2: [1]}],
        4: {1: [["endorsed"]]},
    }
    decoded = Comid.from_cbor(cbor2.dumps(comid_map))

    assert decoded.language == "en-US"
    assert decoded.tag_identity.tag_id == tag_id
    assert decoded.tag_identity.tag_version == 3
    assert decoded.entities == [{0: "NVIDIA", 2: [1]}]
    assert decoded.linked_tags is None
    assert decoded.triples.reference_values == []
    assert decoded.triples.raw[1] == [["endorsed"]]


@pytest.mark.parametrize(
    "comid_map",
    [
        [],
        {4: {0: []}},
        {1: {0: "comid"}},
        {1: {0: 42}, 4: {0: []}},
        {1: {0: "comid"}, 4: []},
        {1: {0: "comid"}, 4: {0: {}}},
        {1: {0: "comid"}, 4: {0: [[{}]]}},
        {1: {0: "comid"}, 4: {0: [[[], []]]}},
        {1: {0: "comid"}, 4: {0: [[{}, {}]]}},
        {1: {0: "comid"}, 4: {0: [[{}, [{0: "key"}]]]}},
        {1: {0: "comid"}, 4: {0: [[{}, [{1: []}]]]}},
        {1: {0: "comid"}, 4: {0: [[{0: "class"}, []]]}},
    ],
)
def test_invalid_structure(comid_map):
    with pytest.raises(ComidDecodeError):
        Comid.from_cbor(cbor2.dumps(comid_map))


@pytest.mark.parametrize("data", [b"", b"\x1c", b"\xa1\x01"])
def test_invalid_cbor(data):
    with pytest.raises(ComidDecodeError):
        Comid.from_cbor(data)


def test_reference_triple_accessors():
    triple = ReferenceValueTriple.from_cbor_obj(reference_triple(model="GB100"))
    assert triple.environment.vendor == "NVIDIA"
    assert triple.environment.model == "GB100"
    assert triple.environment.instance is None
    assert len(triple.measurements) == 1

    measurement = triple.measurements[0]
    assert measurement.key == "component-0"
    assert measurement.digests == [(1, hashlib.sha256(b"GB100-0").digest())]


def test_environment_instance_and_group():
    environment = Environment.from_cbor_obj(
        {1: CBORTag(550, b"\x01" * 8), 2: CBORTag(37, uuid.UUID(int=1).bytes)}
    )
    assert environment.class_map is None
    assert environment.vendor is None
    assert environment.as_dict() == {
        "instance": {"tag": 550, "value": "01" * 8},
        "group": {"tag": 37, "value": uuid.UUID(int=1).bytes.hex()},
    }


def test_measurement_as_dict():
    digest = bytes(range(32))
    measurement = Measurement.from_cbor_obj(
        {0: 7, 1: {1: 2, 2: [[1, digest], [7, b"\xaa"]], 11: "vbios"}}
    )
    assert measurement.as_dict() == {
        "key": 7,
        "value": {
            "svn": 2,
            "digests": [f"sha-256;{digest.hex()}", "sha-384;aa"],
            "name": "vbios",
        },
    }


def test_triple_as_dict():
    triple = ReferenceValueTriple.from_cbor_obj(reference_triple())
    printable = triple.as_dict()
    assert printable["environment"] == {"class": {"vendor": "NVIDIA", "model": "GH100"}}
    assert printable["measurements"][0]["value"]["version"] == {"0": "1.0"}


def test_display_digest_unknown_algorithm():
    assert display_digest(["sha-999", b"\x00"]) == "sha-999;00"
    assert display_digest(42) == "42"


def test_cbor_to_printable():
    assert cbor_to_printable({1: [b"\x01", uuid.UUID(int=0)]}, {1: "one"}) == {
        "one": ["01", "00000000-0000-0000-0000-000000000000"]
    }
