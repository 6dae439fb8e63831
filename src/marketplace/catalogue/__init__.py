"""Catalogue lookup factory.

Provides get_catalogue() / set_catalogue() to swap implementations:
- FakeCatalogue for development and testing
- a catalogue-service client in deployments
"""

from marketplace.catalogue.fake_adapter import FakeCatalogue
from marketplace.catalogue.port import Catalogue

_current_catalogue: Catalogue | None = None


def get_catalogue() -> Catalogue:
    """Return the current catalogue. Defaults to FakeCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: Catalogue) -> None:
    """Override the active catalogue (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    """Reset to default catalogue."""
    global _current_catalogue
    _current_catalogue = None
