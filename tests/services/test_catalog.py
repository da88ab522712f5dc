from __future__ import annotations

import pytest

from progress_service.models.module import Module
from progress_service.services.catalog import DEFAULT_MODULES, Catalog
from progress_service.services.errors import CatalogError, NotFoundError


def _catalog() -> Catalog:
    # Deliberately out of order, with a gap in positions.
    return Catalog(
        [
            Module(id=3, sequence_position=7, title="C"),
            Module(id=1, sequence_position=1, title="A"),
            Module(id=2, sequence_position=4, title="B"),
        ]
    )


# ---- ordering ----


def test_list_orders_by_sequence_position() -> None:
    assert [m.id for m in _catalog().list()] == [1, 2, 3]


def test_default_catalog_has_five_contiguous_modules() -> None:
    catalog = Catalog(DEFAULT_MODULES)
    assert [m.sequence_position for m in catalog.list()] == [1, 2, 3, 4, 5]
    assert catalog.list()[0].title == "Welcome Journey"


def test_first_and_is_first() -> None:
    catalog = _catalog()
    first = catalog.first()
    assert first is not None and first.id == 1
    assert catalog.is_first(catalog.get(1)) is True
    assert catalog.is_first(catalog.get(2)) is False


def test_empty_catalog_has_no_first() -> None:
    assert Catalog([]).first() is None
    assert len(Catalog([])) == 0


# ---- neighbours ----


def test_predecessor() -> None:
    catalog = _catalog()
    assert catalog.predecessor(catalog.get(1)) is None
    assert catalog.predecessor(catalog.get(2)).id == 1  # type: ignore[union-attr]
    assert catalog.predecessor(catalog.get(3)).id == 2  # type: ignore[union-attr]


def test_successor() -> None:
    catalog = _catalog()
    assert catalog.successor(catalog.get(1)).id == 2  # type: ignore[union-attr]
    assert catalog.successor(catalog.get(2)).id == 3  # type: ignore[union-attr]
    assert catalog.successor(catalog.get(3)) is None


def test_neighbours_of_unknown_module_raise_not_found() -> None:
    catalog = _catalog()
    stranger = Module(id=99, sequence_position=2, title="?")
    with pytest.raises(NotFoundError):
        catalog.predecessor(stranger)
    with pytest.raises(NotFoundError):
        catalog.successor(stranger)


def test_get_unknown_module_raises_not_found() -> None:
    with pytest.raises(NotFoundError) as exc_info:
        _catalog().get(42)
    assert exc_info.value.module_id == 42


def test_contains() -> None:
    catalog = _catalog()
    assert 1 in catalog
    assert 42 not in catalog


# ---- invariants ----


def test_duplicate_sequence_position_rejected() -> None:
    with pytest.raises(CatalogError, match="sequence_position"):
        Catalog(
            [
                Module(id=1, sequence_position=1, title="A"),
                Module(id=2, sequence_position=1, title="B"),
            ]
        )


def test_duplicate_module_id_rejected() -> None:
    with pytest.raises(CatalogError, match="module id"):
        Catalog(
            [
                Module(id=1, sequence_position=1, title="A"),
                Module(id=1, sequence_position=2, title="B"),
            ]
        )


def test_catalog_error_is_a_value_error() -> None:
    assert issubclass(CatalogError, ValueError)
