# Vault - Key Derivation and Tier Cipher
#
# Master secret + account identity + salt + tier → 256-bit key (PBKDF2)
# public tier:  reversible base64 encoding (no confidentiality)
# private tier: AES-256-GCM, fresh nonce per call
# secret tier:  AES-256-GCM + access proof checked before decrypt

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.config import DEFAULT_KDF_ITERATIONS, MAX_KDF_ITERATIONS, MIN_KDF_ITERATIONS
from ..exceptions import DecryptionError
from .models import EncryptedPayload, PrivacyTier

EXPORT_KEY_LABEL = "export"


def encode_for_storage(data: bytes) -> str:
    """Encode binary data as base64 text for JSON documents."""
    return base64.b64encode(data).decode('utf-8')


def decode_from_storage(data: str) -> bytes:
    """Decode base64 text; malformed input raises binascii.Error."""
    return base64.b64decode(data.encode('utf-8'), validate=True)


class KeyDerivation:
    """
    Derives per-tier symmetric keys from a master secret.

    Flow:
    1. Caller supplies master secret and account identity
    2. A fresh random salt is generated for every encryption
    3. PBKDF2-SHA256 derives a 256-bit key from
       master secret + identity + tier label, salted per record
    """

    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 32  # 256-bit salt
    MIN_SALT_LENGTH = 16  # 128 bits

    def __init__(self, iterations: int = DEFAULT_KDF_ITERATIONS):
        if not MIN_KDF_ITERATIONS <= iterations <= MAX_KDF_ITERATIONS:
            raise ValueError(
                f"PBKDF2 iterations must be between {MIN_KDF_ITERATIONS} and {MAX_KDF_ITERATIONS}"
            )
        self.iterations = iterations

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(KeyDerivation.SALT_LENGTH)

    def derive_key(
        self,
        master_secret: str,
        account_identity: str,
        salt: bytes,
        tier: PrivacyTier,
    ) -> bytes:
        """
        Derive an encryption key for one record.

        Args:
            master_secret: User's master secret
            account_identity: Identity the vault is scoped to
            salt: Per-record random salt (at least 128 bits)
            tier: Privacy tier; keys for different tiers are independent

        Returns:
            256-bit key
        """
        return self._derive(master_secret, account_identity, salt, tier.value)

    def derive_export_key(self, master_secret: str, account_identity: str, salt: bytes) -> bytes:
        """Derive the key protecting sensitive fields in an export file."""
        return self._derive(master_secret, account_identity, salt, EXPORT_KEY_LABEL)

    def _derive(self, master_secret: str, account_identity: str, salt: bytes, label: str) -> bytes:
        if len(salt) < self.MIN_SALT_LENGTH:
            raise ValueError(f"Salt must be at least {self.MIN_SALT_LENGTH} bytes")

        material = "\x00".join((master_secret, account_identity, label))
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
            backend=default_backend()
        )
        return kdf.derive(material.encode('utf-8'))


class TierCipher:
    """
    Tier-aware encryption of record payloads.

    The tier label is bound as GCM associated data, so a payload written
    for one tier cannot be opened as another.  Secret-tier payloads only
    open with an access proof accepted by ``proof_verifier``.
    """

    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)

    def __init__(self, proof_verifier=None):
        """
        Args:
            proof_verifier: Object with ``verify(proof) -> bool``; required
                            to decrypt secret-tier payloads.
        """
        self.proof_verifier = proof_verifier

    def encrypt(
        self,
        plaintext: str,
        tier: PrivacyTier,
        key: Optional[bytes] = None,
        salt: bytes = b"",
    ) -> EncryptedPayload:
        """
        Encrypt plaintext for the given tier.

        Args:
            plaintext: Serialized record payload
            tier: Privacy tier
            key: 256-bit key (ignored for public tier)
            salt: Salt the key was derived with (stored alongside)

        Returns:
            EncryptedPayload
        """
        data = plaintext.encode('utf-8')

        if not tier.is_encrypted:
            return EncryptedPayload(
                ciphertext=encode_for_storage(data),
                iv="",
                salt=encode_for_storage(salt),
                tier=tier,
            )

        if key is None or len(key) != KeyDerivation.KEY_LENGTH:
            raise ValueError("A 256-bit key is required for encrypted tiers")

        # Must be unique per encryption
        nonce = os.urandom(self.NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, data, tier.value.encode('utf-8'))

        return EncryptedPayload(
            ciphertext=encode_for_storage(ciphertext),
            iv=encode_for_storage(nonce),
            salt=encode_for_storage(salt),
            tier=tier,
        )

    def decrypt(
        self,
        payload: EncryptedPayload,
        tier: PrivacyTier,
        key: Optional[bytes] = None,
        proof=None,
    ) -> str:
        """
        Decrypt a payload.

        Raises:
            DecryptionError: authentication failure, malformed payload,
                             tier mismatch, or missing/invalid proof for
                             the secret tier
        """
        if payload.tier != tier:
            raise DecryptionError(
                f"Payload tier {payload.tier.value!r} does not match {tier.value!r}"
            )

        if tier.requires_proof:
            if proof is None:
                raise DecryptionError("Secret-tier payload requires an access proof")
            if self.proof_verifier is None or not self.proof_verifier.verify(proof):
                raise DecryptionError("Access proof rejected")

        try:
            ciphertext = decode_from_storage(payload.ciphertext)
            if not tier.is_encrypted:
                return ciphertext.decode('utf-8')

            if key is None or len(key) != KeyDerivation.KEY_LENGTH:
                raise DecryptionError("A 256-bit key is required for encrypted tiers")
            nonce = decode_from_storage(payload.iv)
            if len(nonce) != self.NONCE_LENGTH:
                raise DecryptionError("Malformed payload: bad nonce length")

            plaintext = AESGCM(key).decrypt(nonce, ciphertext, tier.value.encode('utf-8'))
            return plaintext.decode('utf-8')

        except InvalidTag as exc:
            # Wrong key or tampered ciphertext
            raise DecryptionError("Authentication failed") from exc
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise DecryptionError(f"Malformed payload: {exc}") from exc

    @staticmethod
    def payload_salt(payload: EncryptedPayload) -> bytes:
        """Recover the key-derivation salt stored with a payload."""
        try:
            return decode_from_storage(payload.salt)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError(f"Malformed payload salt: {exc}") from exc
