"""Checkout configuration, loaded from ``CHECKOUT_*`` environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckoutSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHECKOUT_")

    order_number_prefix: str = "WC"
    currency: str = "INR"

    # Tiered shipping
    free_shipping_threshold: float = 499
    reduced_shipping_threshold: float = 249
    reduced_shipping_price: float = 50
    fallback_shipping_price: float = 60

    # Origin and default parcel used for rate quotes and shipment booking
    warehouse_postal_code: str = "400067"
    package_length_cm: float = 15
    package_width_cm: float = 15
    package_height_cm: float = 10
    package_weight_kg: float = 0.5

    admin_email: str = "orders@crunchstream.in"
    store_name: str = "Crunchstream"
