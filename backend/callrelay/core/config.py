import json
import logging
from functools import lru_cache
from typing import Annotated, Dict, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Zadarma ATZ Relay"
    port: int = 3000
    log_level: str = "INFO"

    atz_enable: bool = True
    atz_base_url: str = "https://api.atzcrm.com/v1"
    atz_api_token: str = Field(
        default="",
        validation_alias=AliasChoices("atz_api_token", "atz_token"),
    )
    atz_owner_id: Optional[int] = None
    atz_owner_map: Annotated[Dict[str, str], NoDecode] = {}
    atz_custom_field_key: str = "Zadarma Call Log"
    atz_activity_path: str = ""
    atz_log_mode: Literal["custom_field", "activity"] = "custom_field"
    atz_list_users_on_boot: bool = False
    atz_timeout_seconds: float = 15.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("atz_owner_id", mode="before")
    def parse_owner_id(cls, value: object) -> Optional[int]:
        if value is None or isinstance(value, int):
            return value or None
        cleaned = str(value).strip()
        if cleaned == "":
            return None
        try:
            return int(cleaned) or None
        except ValueError:
            logger.warning("ATZ_OWNER_ID %r is not an integer; ignoring", value)
            return None

    @field_validator("atz_owner_map", mode="before")
    def parse_owner_map(cls, value: object) -> Dict[str, str]:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(key): str(item) for key, item in value.items()}
        cleaned = str(value).strip()
        if cleaned == "":
            return {}
        try:
            parsed = json.loads(cleaned)
        except ValueError:
            logger.warning("ATZ_OWNER_MAP is not valid JSON; using an empty mapping")
            return {}
        if not isinstance(parsed, dict):
            logger.warning("ATZ_OWNER_MAP must be a JSON object; using an empty mapping")
            return {}
        return {str(key): str(item) for key, item in parsed.items()}

    @field_validator("atz_custom_field_key", "atz_activity_path", "atz_api_token", mode="before")
    def strip_text(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @property
    def atz_ready(self) -> bool:
        return self.atz_enable and bool(self.atz_api_token)


@lru_cache
def get_settings() -> Settings:
    return Settings()
