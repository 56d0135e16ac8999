import qrcode

from app.core.config import settings


QR_CODE_DIR = settings.static_dir / "qrcodes"


def generate_and_save_qr(verification_url: str, certificate_id: str) -> str:
    """
    Renders the certificate's verification URL as a PNG under
    `static/qrcodes/<certificate_id>.png` and returns the public URL of the
    image. Raises OSError if the file cannot be written.
    """
    QR_CODE_DIR.mkdir(parents=True, exist_ok=True)

    # M level survives light wear on printed certificates
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(verification_url)
    qr.make(fit=True)

    qr.make_image(fill_color="black", back_color="white").save(
        QR_CODE_DIR / f"{certificate_id}.png")

    return f"{settings.api_public_url}/static/qrcodes/{certificate_id}.png"
