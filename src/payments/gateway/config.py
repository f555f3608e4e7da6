from pydantic_settings import BaseSettings, SettingsConfigDict


class RazorpaySettings(BaseSettings):
    """Razorpay credentials and endpoint, from ``RAZORPAY_*`` variables."""

    model_config = SettingsConfigDict(env_prefix="RAZORPAY_")

    key_id: str = ""
    key_secret: str = ""
    base_url: str = "https://api.razorpay.com"
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
