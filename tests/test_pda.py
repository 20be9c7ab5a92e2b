import pytest
from solders.pubkey import Pubkey

from hello_client.core.errors import DerivationExhausted, InvalidSeeds, SeedTooLong
from hello_client.core.keypair import Keypair
from hello_client.programs import pda
from hello_client.programs.pda import (
    MAX_SEED_LEN,
    create_program_address,
    find_program_address,
    is_on_curve,
)

from conftest import PROGRAM_ID


# Published Solana SDK vectors: (program id, seed, bump, address)
KNOWN_ADDRESSES = [
    ("BPFLoader1111111111111111111111111111111111", b"", 1,
     "3gF2KMe9KiC6FNVBmfg9i267aMPvK37FewCip4eGBFcT"),
    ("BPFLoaderUpgradeab1e11111111111111111111111", b"", 1,
     "BwqrghZA2htAcqq8dzP1WDAhTXYTYWj7CHxF5j7TDBAe"),
    ("BPFLoaderUpgradeab1e11111111111111111111111", "☉".encode('utf-8'), 0,
     "13yWmRpaTR4r5nAktwLqMpRNr28tnVUZw26rTvPSSB19"),
]


@pytest.mark.parametrize("program_id, seed, bump, expected", KNOWN_ADDRESSES)
def test_known_program_addresses(program_id, seed, bump, expected):
    address = create_program_address(seed, bump, Pubkey.from_string(program_id))
    assert address == Pubkey.from_string(expected)


@pytest.mark.parametrize("seed", [b"", b"hello", b"x", bytes(32), b"\xff" * 32] + [bytes([i]) for i in range(40)])
def test_matches_solders_search(seed):
    assert find_program_address(seed, PROGRAM_ID) == Pubkey.find_program_address([seed], PROGRAM_ID)


def test_derivation_is_deterministic():
    assert find_program_address(b"hello", PROGRAM_ID) == find_program_address(b"hello", PROGRAM_ID)


def test_derived_address_is_off_curve():
    for seed in (b"", b"hello", b"x", bytes(32)):
        address, _ = find_program_address(seed, PROGRAM_ID)
        assert not is_on_curve(bytes(address))


def test_bump_is_the_highest_valid_one():
    address, bump = find_program_address(b"hello", PROGRAM_ID)

    for higher in range(bump + 1, 256):
        with pytest.raises(InvalidSeeds):
            create_program_address(b"hello", higher, PROGRAM_ID)
    assert create_program_address(b"hello", bump, PROGRAM_ID) == address


def test_different_seeds_and_programs_give_different_addresses():
    other_program = Keypair.from_seed(bytes([9] * 32)).pubkey()
    hello, _ = find_program_address(b"hello", PROGRAM_ID)
    assert find_program_address(b"hellp", PROGRAM_ID)[0] != hello
    assert find_program_address(b"hello", other_program)[0] != hello


def test_seed_length_limit():
    find_program_address(b"a" * MAX_SEED_LEN, PROGRAM_ID)
    with pytest.raises(SeedTooLong) as excinfo:
        find_program_address(b"a" * (MAX_SEED_LEN + 1), PROGRAM_ID)
    assert excinfo.value.length == MAX_SEED_LEN + 1


def test_exhausted_search_fails_explicitly(monkeypatch):
    monkeypatch.setattr(pda, 'is_on_curve', lambda data: True)
    with pytest.raises(DerivationExhausted):
        find_program_address(b"hello", PROGRAM_ID)


def test_real_public_keys_are_on_curve():
    for _ in range(5):
        assert is_on_curve(bytes(Keypair.generate().pubkey()))


def test_on_curve_rejects_wrong_length():
    assert not is_on_curve(b"\x01" * 31)


def test_bump_out_of_range():
    with pytest.raises(InvalidSeeds):
        create_program_address(b"hello", 256, PROGRAM_ID)
