"""Model configuration record read from the model store."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

REQUIRED_VALUE_KEYS = (
    "ANTHROPIC_BASE_URL",
    "ANTHROPIC_AUTH_TOKEN",
    "ANTHROPIC_MODEL",
    "ANTHROPIC_SMALL_FAST_MODEL",
)

OPTIONAL_MODEL_KEYS = (
    "ANTHROPIC_DEFAULT_SONNET_MODEL",
    "ANTHROPIC_DEFAULT_OPUS_MODEL",
    "ANTHROPIC_DEFAULT_HAIKU_MODEL",
)


@dataclass
class ModelConfig:
    """A named backend configuration: environment values for the child process."""

    name: str
    value: Dict[str, Any] = field(default_factory=dict)
    description: str = ""
    order: Optional[int] = None
    is_default: bool = False

    def __post_init__(self):
        """Validate the record after initialization."""
        self._validate_name()
        self._validate_value()

    def _validate_name(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Model name is required")
        self.name = self.name.strip()

    def _validate_value(self):
        if not isinstance(self.value, dict):
            raise ValueError(f"Model '{self.name}' value must be a mapping")

        for key in REQUIRED_VALUE_KEYS:
            if not isinstance(self.value.get(key, ""), str):
                raise ValueError(f"Model '{self.name}': {key} must be a string")
            self.value.setdefault(key, "")
        for key in OPTIONAL_MODEL_KEYS:
            if not isinstance(self.value.get(key, ""), str):
                raise ValueError(f"Model '{self.name}': {key} must be a string")
            self.value.setdefault(key, "")

        timeout = self.value.get("API_TIMEOUT_MS")
        # bool is an int subclass, reject it explicitly
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
            raise ValueError(f"Model '{self.name}': API_TIMEOUT_MS must be a number")

        traffic = self.value.get("DISABLE_NONESSENTIAL_TRAFFIC")
        if traffic is not None and not isinstance(traffic, bool):
            raise ValueError(f"Model '{self.name}': DISABLE_NONESSENTIAL_TRAFFIC must be a boolean")

        for key, val in self.value.items():
            if key in ("API_TIMEOUT_MS", "DISABLE_NONESSENTIAL_TRAFFIC"):
                continue
            if not isinstance(val, str):
                raise ValueError(f"Model '{self.name}': {key} must be a string")

    def to_json(self) -> dict:
        """Serialize using the on-disk field names."""
        data: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "value": dict(self.value),
        }
        if self.order is not None:
            data["order"] = self.order
        if self.is_default:
            data["isDefault"] = True
        return data

    @classmethod
    def from_json(cls, data: dict) -> "ModelConfig":
        """Build a record from its on-disk form."""
        if not isinstance(data, dict):
            raise ValueError("Model entry must be an object")
        order = data.get("order")
        if order is not None and (isinstance(order, bool) or not isinstance(order, (int, float))):
            raise ValueError("Model order must be a number")
        return cls(
            name=data.get("name", ""),
            value=dict(data.get("value") or {}),
            description=data.get("description") or "",
            order=order,
            is_default=bool(data.get("isDefault", False)),
        )
