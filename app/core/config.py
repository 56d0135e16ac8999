from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
import os


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Fishers of Men Certificate API"
    debug: bool = False
    database_url: str = "sqlite:///./certificates.db"
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    certificate_secret_key: str = ""
    access_token_expire_minutes: int = 60
    allowed_hosts: str = ""
    static_dir: Path = Path(__file__).parent.parent.parent / "static"
    log_dir: Path = Path("logs")
    public_url: str = "http://localhost:3000"
    api_public_url: str = "http://localhost:8000"
    generate_qr_codes: bool = True
    seed_on_startup: bool = True
    default_organization_id: str = "fom"
    super_admin_email: str = ""
    super_admin_password: str = ""

    @property
    def signing_key(self) -> str:
        """Key used for certificate signatures. Falls back to the JWT secret."""
        return self.certificate_secret_key or self.secret_key


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")


os.makedirs(settings.static_dir, exist_ok=True)
