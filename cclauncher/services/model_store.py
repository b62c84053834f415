"""Persistent store of model configurations (models.json)."""

from pathlib import Path
from typing import Dict, List, Optional

from cclauncher.config import get_app_dir
from cclauncher.exceptions import StoreError
from cclauncher.logging_config import get_logger
from cclauncher.models.model import ModelConfig
from cclauncher.services.json_file import read_json, write_json

logger = get_logger(__name__)

MODELS_FILE = "models.json"


def sample_models() -> List[ModelConfig]:
    """Example entries written the first time the store is opened."""
    return [
        ModelConfig(
            name="Z.ai GLM 4.7",
            description="Sample configuration (Z.ai GLM 4.7)",
            order=1,
            value={
                "ANTHROPIC_BASE_URL": "https://api.z.ai/api/anthropic",
                "ANTHROPIC_AUTH_TOKEN": "token",
                "ANTHROPIC_MODEL": "glm-4.7",
                "ANTHROPIC_SMALL_FAST_MODEL": "glm-4.7",
                "API_TIMEOUT_MS": 3000000,
                "DISABLE_NONESSENTIAL_TRAFFIC": True,
            },
        ),
        ModelConfig(
            name="MiniMax M2",
            description="Sample configuration (MiniMax M2)",
            order=2,
            value={
                "ANTHROPIC_BASE_URL": "https://api.minimax.io/anthropic",
                "ANTHROPIC_AUTH_TOKEN": "authtoken",
                "ANTHROPIC_MODEL": "MiniMax-M2",
                "ANTHROPIC_SMALL_FAST_MODEL": "MiniMax-M2",
                "ANTHROPIC_DEFAULT_SONNET_MODEL": "MiniMax-M2",
                "ANTHROPIC_DEFAULT_OPUS_MODEL": "MiniMax-M2",
                "ANTHROPIC_DEFAULT_HAIKU_MODEL": "MiniMax-M2",
                "API_TIMEOUT_MS": 3000000,
                "DISABLE_NONESSENTIAL_TRAFFIC": True,
            },
        ),
    ]


def _sort_key(model: ModelConfig):
    # Models without an order go last
    return (model.order is None, model.order or 0, model.name.lower())


class ModelStore:
    """Name-keyed model configurations kept in a JSON file.

    Every method reads the file fresh, so several launcher processes can
    share it. Failures raise StoreError with a reason.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_app_dir() / MODELS_FILE

    def _read(self) -> Dict[str, ModelConfig]:
        if not self.path.exists():
            models = {m.name: m for m in sample_models()}
            logger.info(f"Creating {self.path} with sample models")
            self._write(models)
            return models

        data = read_json(self.path)
        if not isinstance(data, dict):
            raise StoreError("validation", f"{self.path} must contain an object keyed by model name")

        models = {}
        for key, entry in data.items():
            try:
                model = ModelConfig.from_json(entry)
            except ValueError as e:
                raise StoreError("validation", f"Invalid model '{key}' in {self.path}: {e}")
            models[model.name] = model
        return models

    def _write(self, models: Dict[str, ModelConfig]) -> None:
        write_json(self.path, {name: model.to_json() for name, model in models.items()})

    def list_models(self) -> List[ModelConfig]:
        """All models, ordered by their order field and then by name."""
        return sorted(self._read().values(), key=_sort_key)

    def get_model(self, name: str) -> ModelConfig:
        models = self._read()
        if name not in models:
            raise StoreError("not_found", f'Model "{name}" not found.')
        return models[name]

    def get_default_model(self) -> ModelConfig:
        """The model flagged as default, else the first in list order."""
        models = self.list_models()
        if not models:
            raise StoreError("not_found", "No models configured.")
        for model in models:
            if model.is_default:
                return model
        return models[0]

    def save_model(self, model: ModelConfig) -> None:
        """Add a new model; an order after the existing ones is assigned if missing."""
        models = self._read()
        if model.name in models:
            raise StoreError("duplicate", f'A model with the name "{model.name}" already exists.')
        if model.order is None:
            model.order = max([m.order or 0 for m in models.values()] + [0]) + 1
        models[model.name] = model
        self._write(models)
        logger.info(f"Saved model {model.name}")

    def update_model(self, original_name: str, model: ModelConfig) -> None:
        """Replace ``original_name`` with ``model``, renaming if the name changed."""
        models = self._read()
        if original_name not in models:
            raise StoreError("not_found", f'Model "{original_name}" not found.')
        if model.name != original_name and model.name in models:
            raise StoreError("duplicate", f'A model with the name "{model.name}" already exists.')

        previous = models.pop(original_name)
        if model.order is None:
            model.order = previous.order
        models[model.name] = model
        self._write(models)

    def delete_model(self, name: str) -> None:
        models = self._read()
        if name not in models:
            raise StoreError("not_found", f'Model "{name}" not found.')
        del models[name]
        self._write(models)
        logger.info(f"Deleted model {name}")

    def set_default(self, name: str) -> None:
        """Flag ``name`` as the default and clear the flag everywhere else."""
        models = self._read()
        if name not in models:
            raise StoreError("not_found", f'Model "{name}" not found.')
        for model in models.values():
            model.is_default = model.name == name
        self._write(models)
