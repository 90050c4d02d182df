"""Tests for the keypair signer and Horizon helpers, with Horizon faked out."""

import asyncio

import pytest
from stellar_sdk import Account, Asset, Keypair, Network, TransactionBuilder, TransactionEnvelope

from anchor_ramp.network import HorizonSubmitter, parse_asset
from anchor_ramp.signer import KeypairSigner

PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE
ISSUER = Keypair.random().public_key


def unsigned_payment(source: Keypair) -> str:
    return (
        TransactionBuilder(Account(source.public_key, 1), PASSPHRASE, base_fee=100)
        .append_payment_op(destination=ISSUER, asset=Asset.native(), amount="1")
        .set_timeout(300)
        .build()
        .to_xdr()
    )


class FakeCall:
    def __init__(self, record):
        self._record = record

    def account_id(self, account):
        return self

    def call(self):
        return self._record


class FakeServer:
    def __init__(self, account_record=None):
        self.submitted = []
        self.account_record = account_record or {}

    def submit_transaction(self, envelope):
        self.submitted.append(envelope)
        return {"hash": envelope.hash_hex()}

    def accounts(self):
        return FakeCall(self.account_record)

    def load_account(self, account_id):
        return Account(account_id, 41)


class TestParseAsset:
    def test_native(self):
        assert parse_asset("native").is_native()
        assert parse_asset("XLM").is_native()

    def test_issued(self):
        asset = parse_asset(f"USDC:{ISSUER}")
        assert asset.code == "USDC"
        assert asset.issuer == ISSUER

    def test_rejects_bare_code(self):
        with pytest.raises(ValueError):
            parse_asset("USDC")


class TestKeypairSigner:
    def test_signs_envelope(self):
        keypair = Keypair.random()
        signer = KeypairSigner.from_secret(keypair.secret)

        signed = asyncio.run(
            signer.sign_transaction(unsigned_payment(keypair), network_passphrase=PASSPHRASE)
        )

        envelope = TransactionEnvelope.from_xdr(signed, PASSPHRASE)
        assert signer.address == keypair.public_key
        assert len(envelope.signatures) == 1
        keypair.verify(envelope.hash(), envelope.signatures[0].signature.signature)


class TestHorizonSubmitter:
    def test_submit_returns_hash(self):
        keypair = Keypair.random()
        server = FakeServer()
        submitter = HorizonSubmitter("stellar:testnet", server=server)
        signed = asyncio.run(KeypairSigner(keypair).sign_transaction(
            unsigned_payment(keypair), network_passphrase=PASSPHRASE
        ))

        tx_hash = asyncio.run(submitter.submit(signed, PASSPHRASE))

        assert tx_hash == server.submitted[0].hash_hex()

    def test_build_payment_transaction(self):
        source = Keypair.random()
        submitter = HorizonSubmitter("stellar:testnet", server=FakeServer())

        xdr = asyncio.run(submitter.build_payment_transaction(
            source=source.public_key,
            destination=ISSUER,
            asset=f"USDC:{ISSUER}",
            amount="10",
            network_passphrase=PASSPHRASE,
            memo="12345",
        ))

        tx = TransactionEnvelope.from_xdr(xdr, PASSPHRASE).transaction
        assert tx.sequence == 42
        assert tx.fee == 100_000
        assert tx.operations[0].asset.code == "USDC"
        assert tx.memo.memo_text == b"12345"

    def test_check_trustline(self):
        record = {
            "balances": [
                {"asset_type": "native", "balance": "100.0000000"},
                {
                    "asset_type": "credit_alphanum4",
                    "asset_code": "USDC",
                    "asset_issuer": ISSUER,
                    "balance": "5.0000000",
                },
            ]
        }
        submitter = HorizonSubmitter("stellar:testnet", server=FakeServer(record))

        usdc = asyncio.run(submitter.check_trustline("GACCOUNT", f"USDC:{ISSUER}"))
        eurc = asyncio.run(submitter.check_trustline("GACCOUNT", f"EURC:{ISSUER}"))

        assert usdc.exists and usdc.has_trustline
        assert usdc.balance == "5.0000000"
        assert eurc.exists and not eurc.has_trustline
