import logging

from aurum import (
    Entity,
    JoinTable,
    ManyToMany,
    ManyToOne,
    OneToMany,
    OneToOne,
    StringField,
    metadata_for,
)
from aurum.persistence import JunctionChangeSet, UnitOfWork, sort_insertions


class Writer(Entity):
    name = StringField()
    articles = OneToMany("Article", mapped_by="writer")
    profile = OneToOne("Profile", mapped_by="writer")


class Profile(Entity):
    bio = StringField()
    writer = OneToOne(Writer, inversed_by="profile")


class Article(Entity):
    title = StringField()
    writer = ManyToOne(Writer)
    labels = ManyToMany("Label", join_table=JoinTable("article_labels", "article_id", "label_id"))


class Label(Entity):
    name = StringField()


class Remark(Entity):
    body = StringField()
    article = ManyToOne(Article)


class Node(Entity):
    name = StringField()
    parent = ManyToOne("Node")


def test_referenced_entities_come_first():
    writer = Writer(name="Ursula")
    article = Article(title="Earthsea", writer=writer)
    remark = Remark(body="classic", article=article)

    assert sort_insertions([remark, article, writer]) == [writer, article, remark]


def test_independent_entities_keep_encounter_order():
    first, second, third = Label(name="a"), Label(name="b"), Label(name="c")

    assert sort_insertions([second, third, first]) == [second, third, first]


def test_duplicates_are_emitted_once():
    writer = Writer(name="Ursula")

    assert sort_insertions([writer, writer]) == [writer]


def test_self_reference_is_not_a_dependency():
    node = Node(name="root")
    node.parent = node

    assert sort_insertions([node]) == [node]


def test_cycle_is_tolerated_with_a_warning(caplog):
    left, right = Node(name="left"), Node(name="right")
    left.parent = right
    right.parent = left

    with caplog.at_level(logging.WARNING, logger="aurum.persistence.ordering"):
        ordered = sort_insertions([left, right])

    assert len(ordered) == 2
    assert {id(node) for node in ordered} == {id(left), id(right)}
    assert "Insertion cycle" in caplog.text


def test_dependencies_outside_the_set_are_ignored():
    writer = Writer(name="Ursula")
    article = Article(title="Earthsea", writer=writer)

    assert sort_insertions([article]) == [article]


def test_persist_cascades_to_new_owning_reference(connection):
    unit_of_work = UnitOfWork(connection)
    writer = Writer(name="Ursula")
    article = Article(title="Earthsea", writer=writer)

    unit_of_work.persist(article)

    assert unit_of_work.is_scheduled_for_insert(writer)
    assert unit_of_work.is_scheduled_for_insert(article)


def test_persist_cascades_through_collections_and_sets_back_pointers(connection):
    unit_of_work = UnitOfWork(connection)
    first, second = Article(title="One"), Article(title="Two")
    writer = Writer(name="Ursula", articles=[first, second])

    unit_of_work.persist(writer)

    assert first.writer is writer
    assert second.writer is writer
    assert unit_of_work.is_scheduled_for_insert(first)
    assert unit_of_work.is_scheduled_for_insert(second)


def test_persist_cascades_through_inverse_one_to_one(connection):
    unit_of_work = UnitOfWork(connection)
    profile = Profile(bio="Writes fantasy")
    writer = Writer(name="Ursula", profile=profile)

    unit_of_work.persist(writer)

    assert profile.writer is writer
    assert unit_of_work.is_scheduled_for_insert(profile)
    assert sort_insertions(unit_of_work.insertions) == [writer, profile]


def test_persist_records_owning_many_to_many_changes(connection):
    unit_of_work = UnitOfWork(connection)
    label = Label(name="fantasy")
    article = Article(title="Earthsea", labels=[label])

    unit_of_work.persist(article)

    changes = list(unit_of_work.junctions)
    assert len(changes) == 1
    assert changes[0].owner is article
    assert changes[0].targets == [label]
    assert changes[0].table == "article_labels"
    assert unit_of_work.is_scheduled_for_insert(label)


def test_cascade_does_not_revisit_tracked_entities(connection):
    unit_of_work = UnitOfWork(connection)
    left, right = Node(name="left"), Node(name="right")
    left.parent = right
    right.parent = left

    unit_of_work.persist(left)

    assert len(unit_of_work.insertions) == 2


def test_junction_change_set_keeps_latest_contents_per_owner():
    association = metadata_for(Article).get_association("labels")
    article = Article(title="Earthsea")
    first, second = Label(name="a"), Label(name="b")
    changes = JunctionChangeSet()

    changes.record(article, association, [first])
    changes.record(article, association, [first, second])

    assert len(changes) == 1
    assert list(changes)[0].targets == [first, second]

    changes.discard_owner(article)
    assert len(changes) == 0
