import base64
import math
import re

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ, namedtype


class TimedRSAInterface(ABC):
    """
    Raw RSA operations that also report how long they took.

    Implementations are not bound to a key: the key is passed to every call, so one
    instance (and one accelerator behind it) can serve several key pairs.
    """

    @abstractmethod
    def timed_encrypt(self, message: int, public_key: 'RSAPublicKey') -> Tuple[int, float]:
        """
        Encrypts message (< n) with the public key.

        Returns:
            Tuple of (ciphertext, elapsed_seconds)
        """
        pass

    @abstractmethod
    def timed_decrypt(self, ciphertext: int, private_key: 'RSAPrivateKey') -> Tuple[int, float]:
        """
        Decrypts ciphertext (< n) with the private key.

        Returns:
            Tuple of (plaintext, elapsed_seconds)
        """
        pass

    @abstractmethod
    def timed_sign(self, message: int, private_key: 'RSAPrivateKey') -> Tuple[int, float]:
        """
        Raw signature (no padding, no hashing): message^d mod n.

        Returns:
            Tuple of (signature, elapsed_seconds)
        """
        pass

    @abstractmethod
    def timed_verify(self, signature: int, message: int, public_key: 'RSAPublicKey') -> Tuple[bool, float]:
        """
        Checks signature^e mod n == message.

        Returns:
            Tuple of (is_valid, elapsed_seconds)
        """
        pass


# ============== #
# Key structures #
# ============== #
@dataclass
class RSAPublicKey:
    """
    Attributes:
        n: The RSA modulus (odd, so usable as a Montgomery modulus)
        e: The public exponent
    """
    n: int
    e: int

    @property
    def e_bits(self) -> int:
        """Exponent bits the square-and-multiply loop has to scan."""
        return self.e.bit_length()


@dataclass
class RSAPrivateKey:
    """
    Attributes:
        n: The RSA modulus
        d: The private exponent
        p: First prime factor
        q: Second prime factor
    """
    n: int
    d: int
    p: int
    q: int

    @property
    def d_bits(self) -> int:
        return self.d.bit_length()


@dataclass
class RSAKeyPair:
    public_key: RSAPublicKey
    private_key: RSAPrivateKey

    @classmethod
    def from_components(cls, p: int, q: int, e: int, d: int) -> 'RSAKeyPair':
        """
        Builds a key pair from its components.

        Raises:
            ValueError: If d is not an inverse of e modulo lcm(p - 1, q - 1)
        """
        if (e * d) % math.lcm(p - 1, q - 1) != 1:
            raise ValueError("d is not an inverse of e modulo lcm(p - 1, q - 1)")
        n = p * q
        return cls(public_key=RSAPublicKey(n=n, e=e), private_key=RSAPrivateKey(n=n, d=d, p=p, q=q))

    def fits_scalar_exponents(self, max_bits: int = 32) -> bool:
        """True when both exponents fit the controller's scalar exponent."""
        return self.public_key.e_bits <= max_bits and self.private_key.d_bits <= max_bits

    @classmethod
    def from_pem_private(cls, pem_data: str) -> 'RSAKeyPair':
        """Import a PKCS#1 'RSA PRIVATE KEY' PEM block."""
        der_data = _pem_to_der(pem_data, "RSA PRIVATE KEY")
        try:
            asn1_key, _ = decoder.decode(der_data, asn1Spec=_RSAPrivateKeyASN1())
        except PyAsn1Error as e:
            raise ValueError(f"Invalid ASN.1 structure for private key: {e}")

        n = int(asn1_key['modulus'])
        private_key = RSAPrivateKey(n=n, d=int(asn1_key['privateExponent']),
                                    p=int(asn1_key['prime1']), q=int(asn1_key['prime2']))
        return cls(public_key=RSAPublicKey(n=n, e=int(asn1_key['publicExponent'])),
                   private_key=private_key)

    def export_private_pem(self) -> str:
        """Export as a PKCS#1 'RSA PRIVATE KEY' PEM block, CRT values included."""
        priv = self.private_key
        asn1_key = _RSAPrivateKeyASN1()
        asn1_key['version'] = 0
        asn1_key['modulus'] = priv.n
        asn1_key['publicExponent'] = self.public_key.e
        asn1_key['privateExponent'] = priv.d
        asn1_key['prime1'] = priv.p
        asn1_key['prime2'] = priv.q
        asn1_key['exponent1'] = priv.d % (priv.p - 1)
        asn1_key['exponent2'] = priv.d % (priv.q - 1)
        asn1_key['coefficient'] = pow(priv.q, -1, priv.p)
        return _der_to_pem(encoder.encode(asn1_key), "RSA PRIVATE KEY")

    def export_public_pem(self) -> str:
        asn1_key = _RSAPublicKeyASN1()
        asn1_key['modulus'] = self.public_key.n
        asn1_key['publicExponent'] = self.public_key.e
        return _der_to_pem(encoder.encode(asn1_key), "RSA PUBLIC KEY")


def public_key_from_pem(pem_data: str) -> RSAPublicKey:
    """Import a PKCS#1 'RSA PUBLIC KEY' PEM block."""
    der_data = _pem_to_der(pem_data, "RSA PUBLIC KEY")
    try:
        asn1_key, _ = decoder.decode(der_data, asn1Spec=_RSAPublicKeyASN1())
    except PyAsn1Error as e:
        raise ValueError(f"Invalid ASN.1 structure for public key: {e}")
    return RSAPublicKey(n=int(asn1_key['modulus']), e=int(asn1_key['publicExponent']))


# ==================================== #
# ASN.1 structures and PEM/DER helpers #
# ==================================== #
class _RSAPrivateKeyASN1(univ.Sequence):
    """PKCS#1 RSAPrivateKey (RFC 8017, two-prime form)."""
    componentType = namedtype.NamedTypes(
        namedtype.NamedType('version', univ.Integer()),
        namedtype.NamedType('modulus', univ.Integer()),
        namedtype.NamedType('publicExponent', univ.Integer()),
        namedtype.NamedType('privateExponent', univ.Integer()),
        namedtype.NamedType('prime1', univ.Integer()),
        namedtype.NamedType('prime2', univ.Integer()),
        namedtype.NamedType('exponent1', univ.Integer()),    # d mod (p-1)
        namedtype.NamedType('exponent2', univ.Integer()),    # d mod (q-1)
        namedtype.NamedType('coefficient', univ.Integer()),  # q^-1 mod p
    )


class _RSAPublicKeyASN1(univ.Sequence):
    """PKCS#1 RSAPublicKey."""
    componentType = namedtype.NamedTypes(
        namedtype.NamedType('modulus', univ.Integer()),
        namedtype.NamedType('publicExponent', univ.Integer()),
    )


def _der_to_pem(der_data: bytes, label: str) -> str:
    encoded = base64.b64encode(der_data).decode('ascii')
    body = [encoded[i:i + 64] for i in range(0, len(encoded), 64)]
    return '\n'.join([f"-----BEGIN {label}-----"] + body + [f"-----END {label}-----"])


def _pem_to_der(pem_data: str, label: str) -> bytes:
    match = re.search(rf"-----BEGIN {label}-----(.*?)-----END {label}-----", pem_data, re.DOTALL)
    if match is None:
        raise ValueError(f"No {label} block found in PEM data")
    try:
        return base64.b64decode(re.sub(r'\s+', '', match.group(1)), validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid Base64 encoding in PEM data: {e}")
