# /tools/errors.py
"""
Error taxonomy for passport processing.

Two families:
  - PassportDataError: the input bytes are not what they claim to be
    (unparseable DER, CMS without SignerInfo, short DG1...). These are raised.
  - EnvironmentSetupError: the host is missing something (circuit artifacts,
    prover binary, trust store). These carry a remediation hint.

A document that parses but does not verify is NOT an error: verification
predicates return False and result objects carry per-check booleans.
"""
from typing import Optional


class PassportDataError(Exception):
    """Base class for structurally invalid passport or certificate input."""
    pass


class InvalidEncodingError(PassportDataError):
    """Raised when input data cannot be decoded from Base64 or hex."""
    pass


class DERParseError(PassportDataError):
    """Raised when a DER header runs past the end of its buffer."""
    pass


class CMSParseError(PassportDataError):
    """Raised when a CMS SignedData envelope is malformed or incomplete."""
    pass


class SODParseError(PassportDataError):
    """Raised when the Security Object Document (SOD) cannot be parsed."""
    pass


class CertificateParseError(PassportDataError):
    """Raised when a certificate cannot be loaded as PEM or DER."""
    pass


class DG1ParseError(PassportDataError):
    """Raised when DG1 is too short or does not carry an MRZ."""
    pass


class CircuitInputError(PassportDataError):
    """Raised when data does not fit the fixed sizes a circuit expects."""
    pass


class EnvironmentSetupError(Exception):
    """Base class for errors the operator fixes, not the document holder."""

    def __init__(self, message: str, remediation: Optional[str] = None) -> None:
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({self.remediation})" if self.remediation else base


class CircuitArtifactsMissingError(EnvironmentSetupError):
    """Raised when the wasm/zkey/vkey files of a circuit are not on disk."""
    pass


class ProverNotInstalledError(EnvironmentSetupError):
    """Raised when the prover binary cannot be found on PATH."""
    pass


class ProverTimeoutError(EnvironmentSetupError):
    """Raised when the prover process exceeds its time budget."""
    pass


class ProverProcessError(EnvironmentSetupError):
    """Raised when the prover exits unexpectedly or produces no output."""
    pass


class TrustStoreUnavailableError(EnvironmentSetupError):
    """Raised when no CSCA certificates can be loaded."""
    pass
