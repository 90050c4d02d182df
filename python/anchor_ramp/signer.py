"""Signer protocols for Stellar transactions.

Private keys never pass through the authenticator or the ramp engine; both
hand base64 XDR to a signer and get signed XDR back.
"""

from typing import Protocol

from stellar_sdk import Keypair, TransactionEnvelope


class TransactionSigner(Protocol):
    """Protocol for signing Stellar transaction envelopes (e.g. a wallet)."""

    @property
    def address(self) -> str:
        """The signer's Stellar public key (G-account)."""
        ...

    async def sign_transaction(
        self,
        tx_xdr: str,
        *,
        network_passphrase: str,
    ) -> str:
        """Sign a Stellar transaction envelope.

        Args:
            tx_xdr: Base64 XDR of the transaction envelope to sign.
            network_passphrase: Network passphrase for signing context.

        Returns:
            Base64 XDR of the signed transaction envelope.
        """
        ...


class KeypairSigner:
    """TransactionSigner backed by an in-process keypair.

    Intended for server-side custody and tests; browser flows use a wallet.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> "KeypairSigner":
        return cls(Keypair.from_secret(secret))

    @property
    def address(self) -> str:
        return self._keypair.public_key

    async def sign_transaction(
        self,
        tx_xdr: str,
        *,
        network_passphrase: str,
    ) -> str:
        envelope = TransactionEnvelope.from_xdr(tx_xdr, network_passphrase)
        envelope.sign(self._keypair)
        return envelope.to_xdr()
