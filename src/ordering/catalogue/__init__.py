"""Product catalogue factory.

get_catalogue() returns the in-memory catalogue unless another
``ProductCatalogue`` has been installed with set_catalogue().
"""

from ordering.catalogue.fake_adapter import InMemoryCatalogue
from ordering.catalogue.port import ProductCatalogue

_current_catalogue: ProductCatalogue | None = None


def get_catalogue() -> ProductCatalogue:
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = InMemoryCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: ProductCatalogue) -> None:
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
