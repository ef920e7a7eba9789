# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from dataclasses import dataclass


class RimError(Exception):
    """Base class for every failure of the RIM fetch and decode pipeline."""


@dataclass
class ServiceError(RimError):
    """The RIM service answered with a non-200 status."""

    status_code: int
    reason: str
    body: str

    def __str__(self):
        return f"Error response from RIM service: {self.status_code} {self.reason}\nResponse body: {self.body}"


class TransportError(RimError):
    """The request could not be sent, or its response could not be read."""


class EnvelopeError(RimError):
    """The service response is not a JSON object."""


class RimFormatError(RimError):
    def __init__(self, rim_format: str):
        super().__init__(
            f"Expected RIM to be formatted as CORIM, but the actual format is {rim_format!r}"
        )
        self.rim_format = rim_format


class RimEncodingError(RimError):
    """The `rim` field is not valid base64."""


class DigestMismatchError(RimError):
    pass


class CoseDecodeError(RimError):
    """The signed CoRIM envelope could not be decoded."""


class ComidDecodeError(RimError):
    """A CoMID tag payload could not be decoded."""


class SignatureError(RimError):
    pass
