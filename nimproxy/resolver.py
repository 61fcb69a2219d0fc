"""
Model resolution: client-facing model name -> NIM model id.
Unknown names are never an error; they fall back to one configured id.
"""

from __future__ import annotations

import logging

from nimproxy.models import ModelMap

logger = logging.getLogger(__name__)


class ModelResolver:
    """Static lookup with a fixed fallback."""

    def __init__(self, model_map: ModelMap, fallback: str):
        self.model_map = model_map
        self.fallback = fallback

    def resolve(self, client_model: str) -> str:
        backend_model = self.model_map.get(client_model)
        if backend_model is None:
            logger.debug("Unknown model '%s', using fallback '%s'", client_model, self.fallback)
            return self.fallback
        return backend_model

    def client_models(self) -> list[str]:
        return list(self.model_map)
