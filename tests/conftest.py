import pytest

from instant_config._crypto import HybridKeyset
from instant_config._service import set_service


@pytest.fixture(scope="session")
def keyset() -> HybridKeyset:
    return HybridKeyset.generate(key_size=2048)


@pytest.fixture(scope="session")
def other_keyset() -> HybridKeyset:
    return HybridKeyset.generate(key_size=2048)


@pytest.fixture(autouse=True)
def _reset_module_service():
    """Reset the module-level service before and after each test."""
    set_service(None)
    yield
    set_service(None)
