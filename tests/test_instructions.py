"""Tests for c-Token instruction layouts."""

import struct

import pytest
from solders.keypair import Keypair
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from light_payments.core.instructions import (
    Compression,
    CompressionMode,
    PackedAccounts,
    create_ata_interface_idempotent_instruction,
    create_decompress_instruction,
    create_transfer_interface_instruction,
    create_unwrap_instruction,
    encode_transfer2,
)
from light_payments.core.programs import (
    CTOKEN_PROGRAM_ID,
    LIGHT_SYSTEM_PROGRAM_ID,
    find_associated_token_address_interface,
    get_associated_token_address_interface,
    get_spl_associated_token_address,
    get_token_pool_address,
)
from light_payments.core.rpc import CompressedTokenAccount, ValidityProof


def test_transfer_layout(mint, recipient, payer):
    source = get_associated_token_address_interface(mint, payer.pubkey())
    destination = get_associated_token_address_interface(mint, recipient)

    ix = create_transfer_interface_instruction(source, destination, payer.pubkey(), 1_000_000)

    assert ix.program_id == CTOKEN_PROGRAM_ID
    assert bytes(ix.data) == bytes([3]) + (1_000_000).to_bytes(8, "little")
    assert [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts] == [
        (source, False, True),
        (destination, False, True),
        (payer.pubkey(), True, False),
    ]


@pytest.mark.parametrize("amount", [0, -1, 2**64])
def test_transfer_rejects_out_of_range_amounts(mint, payer, amount):
    ata = get_associated_token_address_interface(mint, payer.pubkey())
    with pytest.raises(ValueError):
        create_transfer_interface_instruction(ata, ata, payer.pubkey(), amount)


def test_transfer_rejects_non_integer_amounts(mint, payer):
    ata = get_associated_token_address_interface(mint, payer.pubkey())
    with pytest.raises(TypeError):
        create_transfer_interface_instruction(ata, ata, payer.pubkey(), True)
    with pytest.raises(TypeError):
        create_transfer_interface_instruction(ata, ata, payer.pubkey(), 1.5)


def test_create_ata_idempotent_layout(mint, recipient, payer):
    ata, bump = find_associated_token_address_interface(mint, recipient)

    ix = create_ata_interface_idempotent_instruction(payer.pubkey(), ata, recipient, mint)

    assert ix.program_id == CTOKEN_PROGRAM_ID
    assert bytes(ix.data) == bytes([102, bump, 0])
    metas = ix.accounts
    assert metas[0].pubkey == recipient
    assert metas[1].pubkey == mint
    assert metas[2].pubkey == payer.pubkey() and metas[2].is_signer
    assert metas[3].pubkey == ata and metas[3].is_writable


def test_create_ata_rejects_foreign_address(mint, recipient, payer):
    wrong = get_associated_token_address_interface(mint, payer.pubkey())
    with pytest.raises(ValueError):
        create_ata_interface_idempotent_instruction(payer.pubkey(), wrong, recipient, mint)


def test_create_ata_for_spl_program_uses_associated_token_program(mint, recipient, payer):
    ata = get_spl_associated_token_address(mint, recipient)

    ix = create_ata_interface_idempotent_instruction(
        payer.pubkey(), ata, recipient, mint, TOKEN_PROGRAM_ID
    )

    assert ix.program_id == ASSOCIATED_TOKEN_PROGRAM_ID
    assert ata in [meta.pubkey for meta in ix.accounts]


def test_create_ata_rejects_unknown_program(mint, recipient, payer):
    ata = get_associated_token_address_interface(mint, recipient)
    with pytest.raises(ValueError):
        create_ata_interface_idempotent_instruction(
            payer.pubkey(), ata, recipient, mint, Keypair().pubkey()
        )


def test_packed_accounts_deduplicate_and_widen_flags():
    first = Keypair().pubkey()
    second = Keypair().pubkey()
    packed = PackedAccounts()

    assert packed.insert(first) == 0
    assert packed.insert(second, writable=True) == 1
    assert packed.insert(first, signer=True) == 0
    assert packed.insert(second) == 1

    metas = packed.to_account_metas()
    assert len(packed) == 2
    assert (metas[0].is_signer, metas[0].is_writable) == (True, False)
    assert (metas[1].is_signer, metas[1].is_writable) == (False, True)


def test_encode_transfer2_without_payload():
    data = encode_transfer2()

    assert data[0] == 101
    # flags, indices, cpi context, compressions, proof
    assert data[1:9] == bytes(8)
    # empty input and output vectors, then four empty options
    assert data[9:] == struct.pack("<II", 0, 0) + bytes(4)


def test_encode_transfer2_rejects_short_proof():
    with pytest.raises(ValueError):
        encode_transfer2(proof=b"\x01" * 64)


def test_compression_pack_size():
    compression = Compression(CompressionMode.DECOMPRESS, 10, 1, 2, 3, 4, 0, 255)
    packed = compression.pack()

    assert len(packed) == 15
    assert packed[0] == 1
    assert struct.unpack_from("<Q", packed, 1)[0] == 10
    assert packed[-1] == 255


def _cold_account(owner, mint, amount, leaf_index=0):
    return CompressedTokenAccount(
        hash=f"hash-{leaf_index}",
        tree=Keypair().pubkey(),
        leaf_index=leaf_index,
        owner=owner,
        mint=mint,
        amount=amount,
        queue=Keypair().pubkey(),
    )


def test_decompress_instruction(mint, payer):
    owner = payer.pubkey()
    ata = get_associated_token_address_interface(mint, owner)
    accounts = [_cold_account(owner, mint, 40, 1), _cold_account(owner, mint, 60, 2)]
    proof = ValidityProof(compressed_proof=bytes(range(128)), root_indices=[7, 8])

    ix = create_decompress_instruction(owner, owner, mint, ata, accounts, proof)

    assert ix.program_id == CTOKEN_PROGRAM_ID
    assert ix.accounts[0].pubkey == LIGHT_SYSTEM_PROGRAM_ID
    assert ix.accounts[1].pubkey == owner and ix.accounts[1].is_signer
    data = bytes(ix.data)
    assert data[0] == 101
    assert bytes(range(128)) in data
    assert (100).to_bytes(8, "little") in data
    keys = [meta.pubkey for meta in ix.accounts]
    assert ata in keys
    assert accounts[0].tree in keys and accounts[1].tree in keys


def test_decompress_requires_matching_proof(mint, payer):
    owner = payer.pubkey()
    ata = get_associated_token_address_interface(mint, owner)
    accounts = [_cold_account(owner, mint, 40)]
    proof = ValidityProof(compressed_proof=None, root_indices=[])

    with pytest.raises(ValueError):
        create_decompress_instruction(owner, owner, mint, ata, accounts, proof)


def test_decompress_rejects_foreign_accounts(mint, payer, recipient):
    owner = payer.pubkey()
    ata = get_associated_token_address_interface(mint, owner)
    accounts = [_cold_account(recipient, mint, 40)]
    proof = ValidityProof(compressed_proof=None, root_indices=[0])

    with pytest.raises(ValueError):
        create_decompress_instruction(owner, owner, mint, ata, accounts, proof)


def test_unwrap_instruction_settles_against_pool(mint, payer):
    owner = payer.pubkey()
    source = get_associated_token_address_interface(mint, owner)
    destination = get_spl_associated_token_address(mint, owner)
    pool, _ = get_token_pool_address(mint)

    ix = create_unwrap_instruction(owner, owner, mint, source, destination, 1_000_000)

    keys = [meta.pubkey for meta in ix.accounts]
    assert ix.program_id == CTOKEN_PROGRAM_ID
    assert {source, destination, pool, TOKEN_PROGRAM_ID} <= set(keys)
    assert bytes(ix.data).count((1_000_000).to_bytes(8, "little")) == 2
