import pytest

from aurum import BooleanField, Entity, IntegerField, ManyToOne, OneToMany, StringField
from aurum.persistence import (
    EntityHydrator,
    HydrationMode,
    LazyCollection,
    UnitOfWork,
    is_initialized,
    is_proxy,
)


class Artist(Entity):
    name = StringField()
    shapes = OneToMany("Shape", mapped_by="owner")


class Shape(Entity):
    class Meta:
        discriminator_column = "kind"

    name = StringField()
    visible = BooleanField()
    owner = ManyToOne(Artist)


class Circle(Shape):
    radius = IntegerField()


class Square(Shape):
    side = IntegerField()


@pytest.fixture
def unit_of_work(connection):
    return UnitOfWork(connection)


@pytest.fixture
def hydrator(unit_of_work):
    return unit_of_work.hydrator


def test_detached_rows_pick_the_concrete_class(hydrator, unit_of_work):
    row = {"id": 1, "name": "ring", "visible": 1, "kind": "circle", "radius": 3, "owner_id": None}

    shape = hydrator.hydrate(row, Shape, HydrationMode.DETACHED)

    assert type(shape) is Circle
    assert shape.radius == 3
    assert shape.visible is True
    assert not unit_of_work.contains(shape)


def test_unknown_discriminator_falls_back_to_requested_class(hydrator):
    shape = hydrator.hydrate({"id": 2, "kind": "triangle"}, Shape, HydrationMode.DETACHED)

    assert type(shape) is Shape


def test_values_pass_through_converters(hydrator):
    shape = hydrator.hydrate({"id": "7", "kind": "square", "side": "4"}, Square, HydrationMode.DETACHED)

    assert shape.id == 7
    assert shape.side == 4


def test_null_in_non_nullable_column_keeps_the_default(hydrator):
    shape = hydrator.hydrate({"id": 3, "kind": "square", "visible": None}, Shape, HydrationMode.DETACHED)

    assert shape.visible is False


def test_managed_rows_join_the_unit_of_work_once(hydrator, unit_of_work):
    row = {"id": 5, "name": "box", "kind": "square", "side": 2, "owner_id": None}

    first = hydrator.hydrate(row, Shape, HydrationMode.MANAGED, unit_of_work)
    second = hydrator.hydrate(dict(row, name="changed"), Shape, HydrationMode.MANAGED, unit_of_work)

    assert first is second
    assert first.name == "box"
    assert unit_of_work.contains(first)
    assert unit_of_work.snapshots.has(first)


def test_managed_rows_get_lazy_associations(hydrator, unit_of_work):
    shape = hydrator.hydrate(
        {"id": 6, "kind": "circle", "owner_id": 9}, Shape, HydrationMode.MANAGED, unit_of_work
    )
    artist = hydrator.hydrate({"id": 10, "name": "Hilma"}, Artist, HydrationMode.MANAGED, unit_of_work)

    owner = shape.owner
    assert is_proxy(owner)
    assert not is_initialized(owner)
    assert owner.id == 9
    assert unit_of_work.identity_map.get(Artist, 9) is owner

    assert isinstance(artist.shapes, LazyCollection)
    assert not artist.shapes.is_initialized()


def test_missing_foreign_key_wires_none(hydrator, unit_of_work):
    shape = hydrator.hydrate({"id": 8, "kind": "circle"}, Shape, HydrationMode.MANAGED, unit_of_work)

    assert shape.owner is None


def test_managed_row_fills_an_uninitialized_ghost(hydrator, unit_of_work):
    ghost = unit_of_work.get_reference(Circle, 11)

    hydrated = hydrator.hydrate(
        {"id": 11, "kind": "circle", "radius": 5}, Circle, HydrationMode.MANAGED, unit_of_work
    )

    assert hydrated is ghost
    assert is_initialized(ghost)
    assert ghost.radius == 5
    assert unit_of_work.connection.statements == []


def test_merge_copies_fields_and_assigned_associations(hydrator):
    artist = Artist(name="Hilma")
    source = Circle(name="new name", radius=4, owner=artist)
    source.id = 1
    target = Circle(name="old name", radius=1)
    target.id = 2

    hydrator.merge(source, target)

    assert target.id == 2
    assert target.name == "new name"
    assert target.radius == 4
    assert target.owner is artist


def test_extract_returns_field_values(hydrator):
    square = Square(name="box", side=2)

    assert hydrator.extract(square) == {
        "id": None,
        "name": "box",
        "visible": False,
        "owner_id": None,
        "side": 2,
    }


def test_hydrate_all_preserves_row_order(hydrator):
    rows = [{"id": 1, "kind": "square"}, {"id": 2, "kind": "circle"}]

    shapes = hydrator.hydrate_all(rows, Shape, HydrationMode.DETACHED)

    assert [type(shape) for shape in shapes] == [Square, Circle]


def test_standalone_hydrator_needs_no_unit_of_work():
    shape = EntityHydrator().hydrate({"id": 4, "kind": "square"}, Shape)

    assert type(shape) is Square
