"""Tests for delegation_gateway.identity — DID parsing and normalization."""
from __future__ import annotations

import pytest

from delegation_gateway.errors import IdentityError, MalformedIdentifier, UnsupportedMethod
from delegation_gateway.identity import (
    Ed25519Keypair,
    Identity,
    did_to_public_key,
    from_chain_account,
    parse,
    public_key_to_did,
    to_string,
    verify_signature,
)

KNOWN_KEY_HEX = "3b6a27bcceb6a42d62a3a8d02a6f0d73653215771de243a63ac048a18b59da29"
KNOWN_KEY_DID = "did:key:z6MkiTBz1ymuepAQ4HEHYSF1H8quG5GLVVQR3djdX3mDooWp"
CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


# ---------------------------------------------------------------------------
# did:key
# ---------------------------------------------------------------------------


class TestDidKey:
    def test_known_vector(self) -> None:
        assert public_key_to_did(bytes.fromhex(KNOWN_KEY_HEX)) == KNOWN_KEY_DID

    def test_decode_known_vector(self) -> None:
        assert did_to_public_key(KNOWN_KEY_DID).hex() == KNOWN_KEY_HEX

    def test_generated_key_round_trip(self) -> None:
        keypair = Ed25519Keypair.generate()
        assert keypair.did.startswith("did:key:z6Mk")
        assert did_to_public_key(keypair.did) == keypair.public_bytes

    def test_wrong_key_length_rejected(self) -> None:
        with pytest.raises(ValueError):
            public_key_to_did(b"\x01" * 31)

    def test_missing_multibase_prefix_rejected(self) -> None:
        with pytest.raises(ValueError):
            did_to_public_key("did:key:6MkiTBz1ymuepAQ4HEHYSF1H8quG5GLVVQR3djdX3mDooWp")

    def test_parse_key(self) -> None:
        identity = parse(KNOWN_KEY_DID)
        assert identity == Identity("key", KNOWN_KEY_DID[len("did:key:"):])

    def test_parse_corrupt_key_raises(self) -> None:
        with pytest.raises(MalformedIdentifier):
            parse("did:key:z0OIl")


# ---------------------------------------------------------------------------
# did:pkh
# ---------------------------------------------------------------------------


class TestDidPkh:
    def test_lowercase_address_is_checksummed(self) -> None:
        identity = parse(f"did:pkh:eip155:1:{CHECKSUMMED.lower()}")
        assert str(identity) == f"did:pkh:eip155:1:{CHECKSUMMED}"

    def test_case_variants_are_equal(self) -> None:
        upper = parse(f"did:pkh:eip155:137:0x{CHECKSUMMED[2:].upper()}")
        lower = parse(f"did:pkh:eip155:137:{CHECKSUMMED.lower()}")
        assert upper == lower

    def test_from_chain_account(self) -> None:
        identity = from_chain_account(1, CHECKSUMMED.lower())
        assert to_string(identity) == f"did:pkh:eip155:1:{CHECKSUMMED}"

    def test_from_chain_account_rejects_bad_address(self) -> None:
        with pytest.raises(MalformedIdentifier):
            from_chain_account(1, "0x1234")

    def test_from_chain_account_rejects_negative_chain(self) -> None:
        with pytest.raises(MalformedIdentifier):
            from_chain_account(-1, CHECKSUMMED)

    def test_non_ethereum_namespace_kept_verbatim(self) -> None:
        text = "did:pkh:solana:4sGjMW1sUnHzSxGspuhpqLDx6wiyjNtZ:CKg5d12Jhpej1JqtmxLJgaFqqeYjxgPqToJ4LBdvG9Ev"
        assert str(parse(text)) == text

    def test_missing_account_segment(self) -> None:
        with pytest.raises(MalformedIdentifier):
            parse("did:pkh:eip155:1")

    def test_bad_chain_reference(self) -> None:
        with pytest.raises(MalformedIdentifier):
            parse(f"did:pkh:eip155:01:{CHECKSUMMED}")


# ---------------------------------------------------------------------------
# did:web and general syntax
# ---------------------------------------------------------------------------


class TestDidWebAndSyntax:
    def test_web_host_lowercased(self) -> None:
        assert str(parse("did:web:Example.COM:users:Alice")) == "did:web:example.com:users:Alice"

    def test_web_requires_dotted_host(self) -> None:
        with pytest.raises(MalformedIdentifier):
            parse("did:web:intranet")

    def test_unsupported_method(self) -> None:
        with pytest.raises(UnsupportedMethod) as exc_info:
            parse("did:example:123456")
        assert exc_info.value.method == "example"

    @pytest.mark.parametrize(
        "text",
        ["", "did:", "did:key", "key:z6Mk", "did:KEY:z6Mk", "did:web:exa mple.com", 42],
    )
    def test_malformed(self, text: object) -> None:
        with pytest.raises(IdentityError):
            parse(text)  # type: ignore[arg-type]

    def test_parse_is_idempotent(self) -> None:
        for text in (KNOWN_KEY_DID, f"did:pkh:eip155:1:{CHECKSUMMED}", "did:web:example.com"):
            identity = parse(text)
            assert parse(to_string(identity)) == identity

    def test_identity_errors_report_400(self) -> None:
        with pytest.raises(IdentityError) as exc_info:
            parse("did:nope:x")
        assert exc_info.value.status == 400


# ---------------------------------------------------------------------------
# Ed25519 keys
# ---------------------------------------------------------------------------


class TestEd25519Keypair:
    def test_sign_and_verify(self) -> None:
        keypair = Ed25519Keypair.generate()
        signature = keypair.sign(b"payload")
        assert len(signature) == 64
        assert verify_signature(keypair.public_bytes, signature, b"payload") is True

    def test_wrong_data_fails(self) -> None:
        keypair = Ed25519Keypair.generate()
        assert verify_signature(keypair.public_bytes, keypair.sign(b"payload"), b"other") is False

    def test_seed_determines_key(self) -> None:
        assert Ed25519Keypair.from_hex("0x" + "07" * 32).did == Ed25519Keypair(b"\x07" * 32).did

    def test_short_seed_rejected(self) -> None:
        with pytest.raises(ValueError):
            Ed25519Keypair(b"\x07" * 31)

    def test_seed_not_in_repr(self) -> None:
        assert "07070707" not in repr(Ed25519Keypair(b"\x07" * 32))
