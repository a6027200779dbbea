"""Entity attribution."""

from .attributor import AttributionResult, EntityAttributor
from .label_store import EntityLabelStore

__all__ = ["AttributionResult", "EntityAttributor", "EntityLabelStore"]
