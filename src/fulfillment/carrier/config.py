from pydantic_settings import BaseSettings, SettingsConfigDict


class IThinkSettings(BaseSettings):
    """iThink Logistics credentials and defaults, from ``ITHINK_*`` variables."""

    model_config = SettingsConfigDict(env_prefix="ITHINK_")

    api_url: str = "https://my.ithinklogistics.com/api_v3"
    access_token: str = ""
    secret_key: str = ""
    pickup_address_id: str = ""
    return_address_id: str = ""
    logistics: str = "Delhivery"
    label_page_size: str = "A4"
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
