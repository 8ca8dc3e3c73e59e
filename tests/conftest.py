"""Configuração do pytest para o engine de máquinas de estados."""

import sys
from pathlib import Path

import pytest

# Adiciona src/ ao PYTHONPATH para permitir imports absolutos
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from app.bootstrap.clients import create_async_redis_client  # noqa: E402
from config.settings import get_base_settings, get_state_machine_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_cached_settings():
    """Settings e clientes são cacheados; cada teste parte do ambiente atual."""
    get_base_settings.cache_clear()
    get_state_machine_settings.cache_clear()
    create_async_redis_client.cache_clear()
    yield
    get_base_settings.cache_clear()
    get_state_machine_settings.cache_clear()
    create_async_redis_client.cache_clear()
