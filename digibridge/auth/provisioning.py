"""
Provisioning artifacts for authenticator apps.

Builds the otpauth:// key URI and renders it as a QR code that Google
Authenticator, Authy and similar apps can scan.
"""
import base64
import io
import logging
from dataclasses import dataclass
from urllib.parse import quote

import qrcode
from qrcode.exceptions import DataOverflowError

from ..errors import ArtifactEncodingError
from .mfa import DEFAULT_DIGITS, DEFAULT_STEP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningArtifact:
    """A provisioning URI together with its rendered QR code."""
    uri: str
    png: bytes

    @property
    def data_url(self) -> str:
        """Data URL ready for an <img src=...> attribute."""
        b64 = base64.b64encode(self.png).decode('utf-8')
        return f"data:image/png;base64,{b64}"


class ProvisioningEncoder:
    """
    Turns a secret and account label into a scannable QR code.

    Example usage:
        encoder = ProvisioningEncoder()
        artifact = encoder.provision("DigiBridge", "alice@example.com", secret)
        html = f'<img src="{artifact.data_url}">'
    """

    def __init__(self, digits: int = DEFAULT_DIGITS, period: int = DEFAULT_STEP):
        self.digits = digits
        self.period = period

    def build_uri(self, issuer_label: str, account_label: str, secret: str) -> str:
        """
        Generate a provisioning URI for TOTP apps.

        Format:
            otpauth://totp/Issuer:account?secret=...&issuer=...&algorithm=SHA1&digits=6&period=30

        Args:
            issuer_label: Service name shown in the authenticator app.
            account_label: Account name shown in the authenticator app (email).
            secret: Base32-encoded TOTP secret.

        Returns:
            otpauth:// URI string.
        """
        label = f"{quote(issuer_label, safe='')}:{quote(account_label, safe='')}"
        params = [
            ("secret", secret),
            ("issuer", issuer_label),
            ("algorithm", "SHA1"),
            ("digits", str(self.digits)),
            ("period", str(self.period)),
        ]
        query = "&".join(f"{key}={quote(value, safe='')}" for key, value in params)
        return f"otpauth://totp/{label}?{query}"

    def render_artifact(self, uri: str) -> bytes:
        """
        Generate a QR code image for the provisioning URI.

        Args:
            uri: otpauth:// provisioning URI.

        Returns:
            PNG image bytes.

        Raises:
            ArtifactEncodingError: If the URI does not fit in a QR code.
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(uri)
        try:
            qr.make(fit=True)
        # qrcode 8 reports overflow as ValueError("Invalid version ...")
        except (DataOverflowError, ValueError) as e:
            logger.warning(f"Provisioning URI too long for a QR code ({len(uri)} chars)")
            raise ArtifactEncodingError(
                f"URI of {len(uri)} characters exceeds QR code capacity"
            ) from e

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def provision(self, issuer_label: str, account_label: str, secret: str) -> ProvisioningArtifact:
        """Build the URI and render it in one step."""
        uri = self.build_uri(issuer_label, account_label, secret)
        return ProvisioningArtifact(uri=uri, png=self.render_artifact(uri))
