# storeplan_suite/core/repository.py
"""
Storage for fitted store models.

Everything downstream of fitting (landing, budget, simulation) reads models
through a ModelRepository that is passed in explicitly. Two implementations:

- InMemoryModelRepository: dict-backed, for tests and one-off analyses
- JsonModelRepository: one JSON file of to_dict() records keyed by store name.
  Records that fail to load are kept on disk; a file that cannot be parsed
  is moved aside to <name>.bak before anything is written
"""

from abc import ABC, abstractmethod
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..logging_config import get_logger
from .models import FittedStoreModel

logger = get_logger(__name__)


class ModelRepository(ABC):
    """Store models keyed by store name."""

    @abstractmethod
    def get_model(self, name: str) -> Optional[FittedStoreModel]:
        ...

    @abstractmethod
    def all_models(self) -> List[FittedStoreModel]:
        ...

    @abstractmethod
    def save_model(self, model: FittedStoreModel) -> str:
        """Insert or replace a model. Returns the key."""

    @abstractmethod
    def delete_model(self, name: str) -> bool:
        """Returns True if deleted."""

    def save_models(self, models: Iterable[FittedStoreModel]) -> List[str]:
        return [self.save_model(m) for m in models]

    def active_models(self) -> List[FittedStoreModel]:
        """Active stores with a usable fit."""
        return [m for m in self.all_models() if m.is_active and not m.error]

    def model_exists(self, name: str) -> bool:
        return self.get_model(name) is not None

    def __contains__(self, name: str) -> bool:
        return self.model_exists(name)

    def __len__(self) -> int:
        return len(self.all_models())


class InMemoryModelRepository(ModelRepository):

    def __init__(self, models: Optional[Iterable[FittedStoreModel]] = None):
        self._models: Dict[str, FittedStoreModel] = {}
        for m in models or []:
            self._models[m.name] = m

    def get_model(self, name: str) -> Optional[FittedStoreModel]:
        return self._models.get(name)

    def all_models(self) -> List[FittedStoreModel]:
        return list(self._models.values())

    def save_model(self, model: FittedStoreModel) -> str:
        self._models[model.name] = model
        return model.name

    def delete_model(self, name: str) -> bool:
        return self._models.pop(name, None) is not None


class JsonModelRepository(ModelRepository):
    """Models persisted to a JSON file (created on first save)."""

    def __init__(self, storage_path: Optional[str] = None):
        if storage_path:
            self.storage_path = Path(storage_path)
        else:
            # Default to user's home directory
            self.storage_path = Path.home() / ".storeplan" / "models.json"

        self._models: Dict[str, FittedStoreModel] = {}
        # Records that failed to load; written back untouched on save
        self._unreadable: Dict[str, dict] = {}
        self._load_models()

    def _load_models(self):
        if not self.storage_path.exists():
            return
        try:
            with open(self.storage_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object keyed by store name")
        except ValueError as e:  # JSONDecodeError and UnicodeDecodeError included
            backup = self.storage_path.with_name(self.storage_path.name + ".bak")
            self.storage_path.replace(backup)
            logger.warning("model_store_unreadable", path=str(self.storage_path),
                           backup=str(backup), error=str(e))
            return

        for key, record in data.items():
            try:
                self._models[key] = FittedStoreModel.from_dict(record)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self._unreadable[key] = record
                logger.warning("model_record_unreadable", path=str(self.storage_path),
                               store=key, error=str(e))

    def _save_models(self):
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: record for key, record in self._unreadable.items() if key not in self._models}
        data.update({key: model.to_dict() for key, model in self._models.items()})
        with open(self.storage_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def get_model(self, name: str) -> Optional[FittedStoreModel]:
        return self._models.get(name)

    def all_models(self) -> List[FittedStoreModel]:
        return list(self._models.values())

    def save_model(self, model: FittedStoreModel) -> str:
        self._models[model.name] = model
        self._save_models()
        return model.name

    def save_models(self, models: Iterable[FittedStoreModel]) -> List[str]:
        keys = []
        for m in models:
            self._models[m.name] = m
            keys.append(m.name)
        self._save_models()
        return keys

    def delete_model(self, name: str) -> bool:
        if name not in self._models and name not in self._unreadable:
            return False
        self._models.pop(name, None)
        self._unreadable.pop(name, None)
        self._save_models()
        return True
