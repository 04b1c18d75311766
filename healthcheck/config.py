from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigError(Exception):
    """Raised when the checker configuration cannot be read or parsed."""


class Endpoint(BaseModel):
    name: str
    url: str
    method: str = "GET"
    timeout_seconds: float = 5
    expected_status: int = 200


class Webhook(BaseModel):
    url: str = ""
    enabled: bool = False


class CheckerConfig(BaseModel):
    endpoints: list[Endpoint] = Field(default_factory=list)
    interval_seconds: float = 30
    webhook: Webhook = Field(default_factory=Webhook)

    def apply_defaults(self) -> "CheckerConfig":
        # zero or negative values in the file mean "use the default"
        if self.interval_seconds <= 0:
            self.interval_seconds = 30
        for ep in self.endpoints:
            if not ep.method:
                ep.method = "GET"
            ep.method = ep.method.upper()
            if ep.timeout_seconds <= 0:
                ep.timeout_seconds = 5
            if ep.expected_status <= 0:
                ep.expected_status = 200
        return self


def load_config(path: str | Path) -> CheckerConfig:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"read config: {e}") from e

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"parse config: {e}") from e

    try:
        return CheckerConfig.model_validate(data).apply_defaults()
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e
