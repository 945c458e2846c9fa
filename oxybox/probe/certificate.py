"""X.509 certificate expiry extraction."""

from cryptography import x509


class CertificateParseError(Exception):
    """Raised when certificate bytes are not a valid DER X.509 certificate."""


class CertificateInspector:
    """Reads validity information from DER-encoded certificates."""

    @staticmethod
    def expiry(der_bytes: bytes) -> int:
        """
        Return the notAfter instant of a certificate.

        Args:
            der_bytes: A single DER-encoded X.509 certificate

        Returns:
            int: Expiry as Unix timestamp in seconds

        Raises:
            CertificateParseError: If the bytes cannot be parsed
        """
        if not der_bytes:
            raise CertificateParseError("Empty certificate")

        try:
            cert = x509.load_der_x509_certificate(bytes(der_bytes))
            not_after = cert.not_valid_after_utc
        except (ValueError, TypeError) as e:
            raise CertificateParseError(f"Malformed certificate: {e}") from e

        return int(not_after.timestamp())
