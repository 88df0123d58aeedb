from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Organic Marketplace API"
    debug: bool = False
    database_url: str = "sqlite:///marketplace.sqlite3"
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 60
    refresh_token_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 12
    allowed_hosts: str = ""
    log_file: Optional[str] = "logs/application.log"

    # Checkout pricing
    tax_rate: float = 0.08
    flat_shipping: float = 10.0
    free_shipping_threshold: float = 100.0

    # Bootstrap admin used by seed.py
    admin_email: str = "admin@organicmarket.local"
    admin_password: str = ""


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")
