"""
Static dataset registry.

Descriptors live in a JSON table (bundled ingestion/datasets.json, or the
file named by settings.DATASETS_CONFIG) rather than in code, so the
orchestrator stays generic over the number of datasets.

File format:
    {
      "datasets": [
        {"id": 1, "resource_id": "...", "store": "pm_ajay_dataset_1",
         "api_key_env": "DATA_GOV_API_KEY", "id_fields": ["_id"]}
      ],
      "links": [
        {"left_store": "courses", "right_store": "colleges",
         "token_fields": ["courses"], "left_name_fields": ["course_name"]}
      ]
    }
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from core.config import settings
from core.exceptions import DatasetValidationError, RegistryError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "datasets.json"


class DatasetDescriptor(BaseModel):
    """Immutable description of one upstream resource and its target store"""
    id: int = Field(..., ge=1)
    resource_id: str = Field(..., min_length=1)
    store: str = Field(..., min_length=1, max_length=100)
    api_key: Optional[str] = Field(None, repr=False)
    title: Optional[str] = None

    # Payload fields tried, in order, for the record identity
    id_fields: List[str] = Field(default_factory=lambda: ["_id"])
    # "index" -> "{resource_id}-{index}", "hash" -> "{store_prefix}-{hash[:8]}"
    fallback_id: str = Field("index", pattern="^(index|hash)$")
    store_prefix: Optional[str] = None

    class Config:
        frozen = True

    def record_identity(self, record: Dict[str, Any], index: int, record_hash: str) -> str:
        for field_name in self.id_fields:
            value = record.get(field_name)
            if value not in (None, ""):
                return str(value)

        if self.fallback_id == "hash":
            return f"{self.store_prefix or self.store}-{record_hash[:8]}"
        return f"{self.resource_id}-{index}"


class LinkRule(BaseModel):
    """Best-effort association between two dataset stores"""
    left_store: str
    right_store: str
    token_fields: List[str] = Field(default_factory=lambda: ["courses", "offered_courses"])
    left_name_fields: List[str] = Field(default_factory=lambda: ["course_name"])

    class Config:
        frozen = True


class DatasetRegistry:
    """Ordered, id-addressable collection of dataset descriptors"""

    def __init__(self, descriptors: List[DatasetDescriptor], links: Optional[List[LinkRule]] = None):
        self._by_id: Dict[int, DatasetDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._by_id:
                raise RegistryError(
                    f"Duplicate dataset id {descriptor.id}",
                    context={"store": descriptor.store}
                )
            self._by_id[descriptor.id] = descriptor

        stores = [d.store for d in descriptors]
        if len(set(stores)) != len(stores):
            raise RegistryError("Dataset store names must be unique", context={"stores": stores})

        self.descriptors = list(descriptors)
        self.links = list(links or [])

    def __iter__(self) -> Iterator[DatasetDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def get(self, dataset_id: Any) -> DatasetDescriptor:
        """
        Resolve a dataset id.

        Raises:
            DatasetValidationError: id is not an integer or not registered
        """
        try:
            key = int(dataset_id)
        except (TypeError, ValueError):
            raise DatasetValidationError(
                f"Dataset id must be an integer, got {dataset_id!r}",
                context={"dataset": dataset_id}
            )

        descriptor = self._by_id.get(key)
        if descriptor is None:
            known = sorted(self._by_id)
            bounds = f"between {known[0]} and {known[-1]}" if known else "registered"
            raise DatasetValidationError(
                f"Unknown dataset {key}: dataset number must be {bounds}",
                context={"dataset": key, "known_ids": known}
            )
        return descriptor

    def by_store(self, store: str) -> Optional[DatasetDescriptor]:
        for descriptor in self.descriptors:
            if descriptor.store == store:
                return descriptor
        return None


def _resolve_api_key(entry: Dict[str, Any]) -> Optional[str]:
    if entry.get("api_key"):
        return entry["api_key"]
    env_name = entry.get("api_key_env", "DATA_GOV_API_KEY")
    return os.environ.get(env_name) or settings.DATA_GOV_API_KEY


def load_registry(path: Optional[str] = None) -> DatasetRegistry:
    """
    Load descriptors and link rules from JSON.

    Raises:
        RegistryError: File missing, not JSON, or entries fail validation
    """
    registry_path = Path(path or settings.DATASETS_CONFIG or DEFAULT_REGISTRY_PATH)

    try:
        raw = json.loads(registry_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RegistryError(
            "Failed to read dataset registry",
            context={"path": str(registry_path)},
            original_exception=e
        )

    try:
        descriptors = []
        for entry in raw.get("datasets", []):
            entry = dict(entry)
            entry["api_key"] = _resolve_api_key(entry)
            entry.pop("api_key_env", None)
            descriptors.append(DatasetDescriptor(**entry))

        links = [LinkRule(**entry) for entry in raw.get("links", [])]
    except (PydanticValidationError, AttributeError, TypeError) as e:
        raise RegistryError(
            "Invalid dataset registry entry",
            context={"path": str(registry_path)},
            original_exception=e
        )

    registry = DatasetRegistry(descriptors, links)
    logger.info(f"Loaded {len(registry)} dataset descriptors and {len(registry.links)} link rules from {registry_path}")

    if any(d.api_key is None for d in registry):
        logger.warning("No API key configured for some datasets; upstream calls will be rejected")

    return registry
