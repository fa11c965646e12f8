"""
Process-wide client handles shared by concurrent report requests.

Each handle is built at most once, under a lock, on first use. Handles are
read-only after construction.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict

from google import generativeai as genai
from supabase import create_client

from ..layer1.config import Layer1Config
from ..layer1.data_source import AcademicDataSource, SupabaseDataSource
from ..layer3.config import Layer3Config
from ..layer3.model_client import GeminiModelClient, GenerativeModelClient
from ..layer4.config import Layer4Config
from ..layer4.email_sender import EmailTransport, build_transport

LOGGER = logging.getLogger(__name__)


class ClientRegistry:
    """Guarded lazy singletons for the data store, model and email clients."""

    def __init__(
        self,
        layer1_config: Layer1Config | None = None,
        layer3_config: Layer3Config | None = None,
        layer4_config: Layer4Config | None = None,
    ) -> None:
        self.layer1_config = layer1_config or Layer1Config()
        self.layer3_config = layer3_config or Layer3Config()
        self.layer4_config = layer4_config or Layer4Config()
        self._lock = threading.Lock()
        self._handles: Dict[str, Any] = {}

    def _get_or_create(self, name: str, factory: Callable[[], Any]) -> Any:
        handle = self._handles.get(name)
        if handle is not None:
            return handle
        with self._lock:
            handle = self._handles.get(name)
            if handle is None:
                handle = factory()
                self._handles[name] = handle
                LOGGER.info("Initialized %s client.", name)
        return handle

    def data_source(self) -> AcademicDataSource:
        return self._get_or_create("supabase", self._create_data_source)

    def model_client(self) -> GenerativeModelClient:
        return self._get_or_create("gemini", self._create_model_client)

    def email_transport(self) -> EmailTransport:
        return self._get_or_create("email", lambda: build_transport(self.layer4_config))

    def _create_data_source(self) -> AcademicDataSource:
        self.layer1_config.require_credentials()
        client = create_client(self.layer1_config.supabase_url, self.layer1_config.supabase_key)
        return SupabaseDataSource(client)

    def _create_model_client(self) -> GenerativeModelClient:
        if not self.layer3_config.api_key:
            raise RuntimeError("GEMINI_API_KEY is required for Layer 3.")
        genai.configure(api_key=self.layer3_config.api_key)
        return GeminiModelClient()
