import pytest

from aurum import (
    Entity,
    IntegerField,
    JoinTable,
    ManyToMany,
    ManyToOne,
    OneToMany,
    OneToOne,
    StringField,
    TextField,
    metadata_for,
)
from aurum.core.relations import MANY_TO_MANY, MANY_TO_ONE, ONE_TO_MANY, ONE_TO_ONE
from aurum.exceptions import EntityConfigurationError
from aurum.metadata import metadata_registry


class Publisher(Entity):
    name = StringField(nullable=False)
    books = OneToMany("Book", mapped_by="publisher")


class Book(Entity):
    class Meta:
        table = "books"

    title = StringField(nullable=False, column="book_title")
    publisher = ManyToOne(Publisher)
    genres = ManyToMany("Genre", join_table=JoinTable("book_genres", "book_id", "genre_id"))


class Genre(Entity):
    code = StringField(identifier=True, max_length=12)
    books = ManyToMany(Book, mapped_by="genres")


class Shelf(Entity):
    label = StringField()
    books = ManyToMany(Book)


class Passport(Entity):
    number = StringField()
    holder = OneToOne("Citizen", inversed_by="passport")


class Citizen(Entity):
    name = StringField()
    passport = OneToOne(Passport, mapped_by="holder")


class Vehicle(Entity):
    class Meta:
        discriminator_column = "kind"

    wheels = IntegerField(default=4)


class Car(Vehicle):
    seats = IntegerField(default=5)


class Bike(Vehicle):
    class Meta:
        discriminator_value = "bicycle"


class Timestamped(Entity):
    class Meta:
        abstract = True

    created = StringField(default="today")


class Note(Timestamped):
    body = TextField()


def test_identifier_is_added_and_ordered_first():
    meta = metadata_for(Book)
    assert list(meta.field_mappings) == ["id", "title", "publisher_id"]
    assert meta.identifier.name == "id"
    assert meta.identifier.strategy == "auto"
    assert meta.has_generated_identifier


def test_table_and_column_names():
    assert metadata_for(Publisher).table_name == "publisher"
    book_meta = metadata_for(Book)
    assert book_meta.table_name == "books"
    assert book_meta.get_field_mapping("title").column == "book_title"
    assert book_meta.field_for_column("book_title").name == "title"
    assert book_meta.columns() == ["id", "book_title", "publisher_id"]


def test_owning_to_one_gets_foreign_key_field():
    meta = metadata_for(Book)
    association = meta.get_association("publisher")
    assert association.kind == MANY_TO_ONE
    assert association.owning
    assert association.join_column == "publisher_id"
    assert association.foreign_key == "publisher_id"
    fk = meta.get_field_mapping("publisher_id")
    assert fk.association == "publisher"
    assert fk.converter.name == "integer"


def test_string_targets_resolve_lazily():
    association = metadata_for(Publisher).get_association("books")
    assert association.kind == ONE_TO_MANY
    assert not association.owning
    assert association.target_class is Book
    assert metadata_registry.resolve("Book", context=Publisher) is Book


def test_many_to_many_join_tables():
    owning = metadata_for(Book).get_association("genres")
    assert owning.kind == MANY_TO_MANY
    assert owning.is_owning_many_to_many
    assert owning.join_table.name == "book_genres"
    assert owning.join_table.join_column == "book_id"
    assert owning.join_table.inverse_join_column == "genre_id"

    inverse = metadata_for(Genre).get_association("books")
    assert not inverse.owning
    assert inverse.join_table is None

    default = metadata_for(Shelf).get_association("books").join_table
    assert default.name == "shelf_books"
    assert (default.join_column, default.inverse_join_column) == ("entity_id", "related_id")


def test_one_to_one_sides():
    holder = metadata_for(Passport).get_association("holder")
    assert holder.kind == ONE_TO_ONE
    assert holder.is_owning_to_one
    assert metadata_for(Passport).has_field("holder_id")

    passport = metadata_for(Citizen).get_association("passport")
    assert not passport.owning
    assert not metadata_for(Citizen).has_field("passport_id")


def test_application_assigned_identifier():
    meta = metadata_for(Genre)
    assert meta.identifier.name == "code"
    assert meta.identifier.strategy is None
    assert not meta.has_generated_identifier
    assert "id" not in meta.field_mappings


def test_accessor_table_reads_and_writes():
    meta = metadata_for(Book)
    publisher = Publisher(name="Orbit")
    meta.set_identifier(publisher, 7)
    book = Book(title="Dune")

    meta.set_value(book, "publisher", publisher)

    assert meta.get_value(book, "title") == "Dune"
    assert book.publisher is publisher
    assert book.publisher_id == 7
    assert meta.extract(book) == {"id": None, "title": "Dune", "publisher_id": 7}


def test_entity_init_applies_defaults_and_rejects_unknown_names():
    car = Car()
    assert car.wheels == 4
    assert car.seats == 5
    with pytest.raises(TypeError):
        Book(subtitle="nope")


def test_non_nullable_field_rejects_none():
    book = Book(title="Emma")
    with pytest.raises(ValueError):
        book.title = None


def test_single_table_inheritance_shares_table_and_mapping():
    vehicle_meta = metadata_for(Vehicle)
    car_meta = metadata_for(Car)
    assert car_meta.table_name == "vehicle"
    assert car_meta.inheritance is vehicle_meta.inheritance
    assert vehicle_meta.inheritance.discriminator_column == "kind"
    assert vehicle_meta.inheritance.discriminator_map == {
        "vehicle": Vehicle,
        "car": Car,
        "bicycle": Bike,
    }
    assert car_meta.discriminator_value == "car"
    assert list(car_meta.field_mappings) == ["id", "wheels", "seats"]
    assert "seats" not in vehicle_meta.field_mappings


def test_subclass_cannot_change_table():
    with pytest.raises(EntityConfigurationError):

        class Truck(Vehicle):
            class Meta:
                table = "trucks"


def test_abstract_base_contributes_fields():
    meta = metadata_for(Note)
    assert list(meta.field_mappings) == ["id", "created", "body"]
    assert Note(body="x").created == "today"
    with pytest.raises(EntityConfigurationError):
        metadata_for(Timestamped)
    with pytest.raises(EntityConfigurationError):
        Timestamped()


def test_two_identifiers_are_rejected():
    with pytest.raises(EntityConfigurationError):

        class Broken(Entity):
            first = IntegerField(identifier=True)
            second = IntegerField(identifier=True)


def test_plain_id_field_without_identifier_is_rejected():
    with pytest.raises(EntityConfigurationError):

        class Confusing(Entity):
            id = IntegerField()


def test_unmapped_class_is_rejected():
    with pytest.raises(EntityConfigurationError):
        metadata_for(object)
