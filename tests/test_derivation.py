from __future__ import annotations

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from conftest import PROGRAM_ID
from econdata.client import derive_account_address, identity_bytes
from econdata.errors import InvalidInputError
from econdata.layout import SEED_TAG, u64_le


def test_same_inputs_give_same_address(owner: Keypair) -> None:
    first = derive_account_address(SEED_TAG, owner.pubkey(), 1, PROGRAM_ID)
    second = derive_account_address(SEED_TAG, owner.pubkey(), 1, PROGRAM_ID)
    assert first == second
    address, bump = first
    assert len(bytes(address)) == 32
    assert 0 <= bump <= 255


def test_address_matches_program_seeds(owner: Keypair) -> None:
    address, bump = derive_account_address(SEED_TAG, owner.pubkey(), 1, PROGRAM_ID)
    seeds = [b"economic_data", bytes(owner.pubkey()), (1).to_bytes(8, "little"), bytes([bump])]
    assert Pubkey.create_program_address(seeds, PROGRAM_ID) == address


def test_owner_forms_are_interchangeable(owner: Keypair) -> None:
    pk = owner.pubkey()
    expected = derive_account_address(SEED_TAG, pk, 42, PROGRAM_ID)
    assert derive_account_address(SEED_TAG, bytes(pk), 42, PROGRAM_ID) == expected
    assert derive_account_address(SEED_TAG, str(pk), 42, PROGRAM_ID) == expected


def test_distinct_ids_give_distinct_addresses(owner: Keypair) -> None:
    addresses = {derive_account_address(SEED_TAG, owner.pubkey(), i, PROGRAM_ID)[0] for i in range(64)}
    assert len(addresses) == 64


def test_distinct_owners_give_distinct_addresses() -> None:
    a = Keypair.from_seed(bytes([1] * 32)).pubkey()
    b = Keypair.from_seed(bytes([2] * 32)).pubkey()
    assert derive_account_address(SEED_TAG, a, 1, PROGRAM_ID) != derive_account_address(SEED_TAG, b, 1, PROGRAM_ID)


def test_id_is_little_endian() -> None:
    assert u64_le(1) == b"\x01" + b"\x00" * 7
    assert u64_le(2**64 - 1) == b"\xff" * 8


@pytest.mark.parametrize("owner_identity", [b"\x01" * 31, b"\x01" * 33, "not-base58-0OIl", 12345])
def test_rejects_malformed_owner(owner_identity) -> None:
    with pytest.raises(InvalidInputError):
        derive_account_address(SEED_TAG, owner_identity, 1, PROGRAM_ID)


@pytest.mark.parametrize("hash_id", [-1, 2**64, True, "1"])
def test_rejects_id_outside_u64(owner: Keypair, hash_id) -> None:
    with pytest.raises(InvalidInputError):
        derive_account_address(SEED_TAG, owner.pubkey(), hash_id, PROGRAM_ID)


def test_rejects_long_seed_tag(owner: Keypair) -> None:
    with pytest.raises(InvalidInputError):
        derive_account_address("x" * 33, owner.pubkey(), 1, PROGRAM_ID)


def test_identity_bytes_from_base58(owner: Keypair) -> None:
    assert identity_bytes(str(owner.pubkey())) == bytes(owner.pubkey())


@pytest.mark.parametrize("seed_tag", [5, None, ["economic_data"]])
def test_rejects_non_text_seed_tag(owner: Keypair, seed_tag) -> None:
    with pytest.raises(InvalidInputError, match="seed tag"):
        derive_account_address(seed_tag, owner.pubkey(), 1, PROGRAM_ID)


def test_bytes_seed_tag_matches_str(owner: Keypair) -> None:
    assert derive_account_address(b"economic_data", owner.pubkey(), 1, PROGRAM_ID) == \
        derive_account_address("economic_data", owner.pubkey(), 1, PROGRAM_ID)
