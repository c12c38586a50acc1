from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

class SettingsSchema(BaseModel):
    db_path: str = "workout.db"
    backend_url: Optional[str] = None
    backend_key: Optional[str] = None
    request_timeout: float = Field(10.0, gt=0)
    read_retries: int = Field(3, ge=0)
    retry_backoff: float = Field(0.5, ge=0)
    log_level: str = "INFO"
    weight_unit: Literal["kg", "lb"] = "lb"
    default_window: Literal["1month", "2months", "3months", "alltime"] = "2months"
    session_ttl_hours: float = Field(12.0, gt=0)

def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
