"""
Configuration for storebroker-client.

All tunables live on a single settings object that is passed to each
collaborator when it is constructed. Values can be supplied directly or
through ``STOREBROKER_*`` environment variables / a ``.env`` file.
"""

from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import EndpointType

BASE_URIS = {
    EndpointType.PROD: "https://manage.devcenter.microsoft.com",
    EndpointType.INT: "https://manage.devcenter.microsoft-int.com",
}


class StoreBrokerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOREBROKER_", env_file=".env", extra="ignore"
    )

    # Credentials (Azure AD application registered with the Partner Center account)
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""

    endpoint_type: EndpointType = EndpointType.PROD
    token_url_template: str = "https://login.microsoftonline.com/{tenant_id}/oauth2/token"

    # Authenticating proxy. When set, requests go to the proxy, which holds the
    # credentials; tenant_id or tenant_name pick the account it acts for.
    proxy_endpoint: Optional[str] = None
    tenant_name: Optional[str] = None

    # Transport
    request_timeout_seconds: float = 100.0
    max_transient_retries: int = 3
    transient_retry_delay_seconds: float = 5.0

    # Access tokens are issued for an hour; refresh 90s early
    token_validity_seconds: int = 3600
    token_expiration_buffer_seconds: int = 90

    # Monitor
    poll_interval_seconds: int = 60

    # Mail notifications (Resend)
    resend_api_key: Optional[str] = None
    mail_from: Optional[str] = None
    mail_retry_count: int = 3
    mail_retry_delay_seconds: float = 10.0

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper().strip()

    @field_validator("proxy_endpoint")
    @classmethod
    def _strip_proxy_endpoint(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip().rstrip("/")

    @model_validator(mode="after")
    def _check_combinations(self) -> "StoreBrokerSettings":
        if self.tenant_id and self.tenant_name:
            raise ValueError(
                "tenant_id and tenant_name are mutually exclusive; set only one of them"
            )
        if self.resend_api_key and not self.mail_from:
            raise ValueError("mail_from is required when mail notifications are enabled")
        return self

    @property
    def uses_proxy(self) -> bool:
        return bool(self.proxy_endpoint)

    @property
    def base_uri(self) -> str:
        return BASE_URIS[self.endpoint_type]

    @property
    def request_base_uri(self) -> str:
        """Where API requests are sent: the proxy when configured, otherwise the service."""
        return self.proxy_endpoint if self.uses_proxy else self.base_uri

    @property
    def token_url(self) -> str:
        return self.token_url_template.format(tenant_id=self.tenant_id)
