"""Identity codec for persisted switch identities.

A host-local switch is addressed by its host reference plus its name and is
persisted as ``<host_ref>|<name>``. A distributed switch is persisted as its
bare managed object reference. Platform references are alphanumeric with
hyphens and colons, so the pipe never collides with them.
"""
from typing import Optional

from ..errors import EncodingError, MalformedIdentity
from .schema import DistributedRef, HostScoped, SwitchIdentity, SwitchKind

DELIMITER = "|"


def encode_identity(identity: SwitchIdentity) -> str:
    """
    Encode an identity into the opaque string stored by the caller.

    Raises:
        EncodingError: if a component is empty or contains the delimiter
    """
    if isinstance(identity, HostScoped):
        if not identity.host_ref or not identity.name:
            raise EncodingError("Host-local identity needs both a host reference and a name")
        if DELIMITER in identity.name:
            raise EncodingError(
                f"Switch name {identity.name!r} contains reserved character {DELIMITER!r}"
            )
        if DELIMITER in identity.host_ref:
            raise EncodingError(
                f"Host reference {identity.host_ref!r} contains reserved character {DELIMITER!r}"
            )
        return f"{identity.host_ref}{DELIMITER}{identity.name}"

    if isinstance(identity, DistributedRef):
        if not identity.mo_ref:
            raise EncodingError("Distributed identity needs a managed object reference")
        if DELIMITER in identity.mo_ref:
            raise EncodingError(
                f"Reference {identity.mo_ref!r} contains reserved character {DELIMITER!r}"
            )
        return identity.mo_ref

    raise EncodingError(f"Unsupported identity type: {type(identity).__name__}")


def decode_identity(
    value: str,
    expected_kind: Optional[SwitchKind] = None,
) -> SwitchIdentity:
    """
    Decode a persisted identity string.

    A string without the delimiter is a distributed switch reference. When
    ``expected_kind`` is HOST the string must contain exactly one delimiter.

    Raises:
        MalformedIdentity: if the string cannot be decoded unambiguously
    """
    if not value:
        raise MalformedIdentity("Empty identity")

    count = value.count(DELIMITER)

    if count == 0:
        if expected_kind == SwitchKind.HOST:
            raise MalformedIdentity(
                f"Identity {value!r} is not a host-local switch identity "
                f"(expected <host>{DELIMITER}<name>)"
            )
        return DistributedRef(mo_ref=value)

    if count > 1:
        raise MalformedIdentity(
            f"Identity {value!r} contains {count} {DELIMITER!r} separators, expected 1"
        )

    if expected_kind == SwitchKind.DISTRIBUTED:
        raise MalformedIdentity(f"Identity {value!r} is not a distributed switch reference")

    host_ref, name = value.split(DELIMITER)
    if not host_ref or not name:
        raise MalformedIdentity(f"Identity {value!r} has an empty host reference or name")

    return HostScoped(host_ref=host_ref, name=name)


def identity_kind(identity: SwitchIdentity) -> SwitchKind:
    """Switch kind addressed by an identity."""
    if isinstance(identity, HostScoped):
        return SwitchKind.HOST
    return SwitchKind.DISTRIBUTED
