from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic.alias_generators import to_camel

MAX_CREDENTIAL_LEN = 4096
MAX_BASE_URL_LEN = 2048
MAX_MODEL_LEN = 200


class CamelModel(BaseModel):
    # wire format is camelCase; python side stays snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AiConfigPutIn(CamelModel):
    # absent vs null is read from model_fields_set, not from the values
    provider: Optional[StrictStr] = None
    credential: Optional[StrictStr] = Field(default=None, max_length=MAX_CREDENTIAL_LEN)
    base_url: Optional[StrictStr] = Field(default=None, max_length=MAX_BASE_URL_LEN)
    model: Optional[StrictStr] = Field(default=None, max_length=MAX_MODEL_LEN)
    is_active: Optional[StrictBool] = None


class AiConfigView(CamelModel):
    """Client-facing config; the raw credential is never part of it."""

    id: str
    provider: str
    provider_label: str
    model: str
    base_url: Optional[str] = None
    is_active: bool
    has_credential: bool
    masked_credential: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AiConfigDefaults(CamelModel):
    provider: str
    model: str
    base_url: Optional[str] = None


class AiConfigGetOut(CamelModel):
    config: Optional[AiConfigView] = None
    defaults: AiConfigDefaults


class AiConfigPutOut(CamelModel):
    config: AiConfigView


class ConnectionTestOut(CamelModel):
    success: bool
    provider: str
    provider_label: str
    model: str


class ModelOut(CamelModel):
    id: str
    label: str


class ModelsOut(CamelModel):
    provider: str
    provider_label: str
    model: str
    models: List[ModelOut] = Field(default_factory=list)


class LocalServiceHealthOut(CamelModel):
    url: str
    reachable: bool
    error: Optional[str] = None


class ProviderTypeOut(CamelModel):
    provider: str
    label: str
    default_base_url: Optional[str] = None
    default_model: str
    requires_credential: bool
    is_local: bool


class ProviderTypesOut(CamelModel):
    items: List[ProviderTypeOut]
