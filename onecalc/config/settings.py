from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_FORECAST_YEARS = ["2026", "2027", "2028", "2029"]


class Settings(BaseSettings):
    forecast_years: list[str] = list(DEFAULT_FORECAST_YEARS)
    include_additional_items: bool = True
    schema_file: str = ""
    compile_cache_enabled: bool = True
    max_buffered_events: int = 1000
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    @field_validator("forecast_years")
    @classmethod
    def horizon_has_three_years(cls, v: list[str]) -> list[str]:
        if len(v) < 3 or len(set(v)) != len(v):
            raise ValueError(
                f"forecast_years needs at least three unique period keys, got {v}"
            )
        return v

    @property
    def horizon(self) -> tuple[str, ...]:
        return tuple(self.forecast_years)

    class Config:
        env_file = ".env"
        env_prefix = "ONECALC_"
