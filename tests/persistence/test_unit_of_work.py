import uuid

import pytest

from aurum import (
    Entity,
    JoinTable,
    ManyToMany,
    ManyToOne,
    OneToMany,
    StringField,
    UUIDField,
)
from aurum.exceptions import (
    EntityNotFoundError,
    EntityNotManagedError,
    NoActiveTransactionError,
    WriteFailureError,
)
from aurum.persistence import LazyCollection, SavepointState, UnitOfWork


class Customer(Entity):
    name = StringField(nullable=False)
    orders = OneToMany("Order", mapped_by="customer")


class Order(Entity):
    class Meta:
        table = "orders"

    reference = StringField()
    customer = ManyToOne(Customer)
    products = ManyToMany("Product", join_table=JoinTable("order_products", "order_id", "product_id"))


class Product(Entity):
    sku = StringField(identifier=True, max_length=20)
    orders = ManyToMany(Order, mapped_by="products")


class Badge(Entity):
    code = StringField()


class Token(Entity):
    id = UUIDField(identifier=True, strategy="uuid")
    label = StringField()


DDL = (
    "CREATE TABLE customer (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY AUTOINCREMENT, reference TEXT, "
    "customer_id INTEGER REFERENCES customer(id))",
    "CREATE TABLE product (sku TEXT PRIMARY KEY)",
    "CREATE TABLE order_products (order_id INTEGER NOT NULL REFERENCES orders(id), "
    "product_id TEXT NOT NULL REFERENCES product(sku), PRIMARY KEY (order_id, product_id))",
    "CREATE TABLE token (id TEXT PRIMARY KEY, label TEXT)",
    "CREATE TABLE badge (id INTEGER PRIMARY KEY AUTOINCREMENT, code TEXT UNIQUE)",
)

CUSTOMER_INSERT = 'INSERT INTO "customer" ("name") VALUES (:name)'


@pytest.fixture
def unit_of_work(connection, schema):
    schema(*DDL)
    connection.begin_transaction()
    return UnitOfWork(connection, savepoint_name="uow_test")


def _seed(connection, *statements):
    for statement in statements:
        connection.execute(statement)
    connection.reset()


def _count(connection, table):
    return connection.fetch_one(f"SELECT COUNT(*) AS n FROM {table}")["n"]


def _junction_rows(connection):
    rows = connection.fetch_all("SELECT order_id, product_id FROM order_products ORDER BY product_id")
    return [(row["order_id"], row["product_id"]) for row in rows]


def test_flush_outside_transaction_is_rejected(connection):
    with pytest.raises(NoActiveTransactionError):
        UnitOfWork(connection).flush()


def test_persist_then_flush_inserts_and_assigns_identifier(unit_of_work, connection):
    customer = Customer(name="Ada")

    unit_of_work.persist(customer)
    assert unit_of_work.is_scheduled_for_insert(customer)
    unit_of_work.flush()

    assert customer.id == 1
    assert connection.statements[0][0] == 'SAVEPOINT "uow_test"'
    assert connection.writes() == [(CUSTOMER_INSERT, {"name": "Ada"})]
    assert not unit_of_work.is_scheduled_for_insert(customer)
    assert unit_of_work.contains(customer)
    assert unit_of_work.find(Customer, 1) is customer
    assert connection.sql("SELECT") == []


def test_referenced_rows_are_inserted_first(unit_of_work, connection):
    order = Order(reference="A-1", customer=Customer(name="Ada"))

    unit_of_work.persist(order)
    unit_of_work.flush()

    writes = connection.writes()
    assert writes[0] == (CUSTOMER_INSERT, {"name": "Ada"})
    assert writes[1] == (
        'INSERT INTO "orders" ("reference", "customer_id") VALUES (:reference, :customer_id)',
        {"reference": "A-1", "customer_id": order.customer.id},
    )
    assert order.customer_id == order.customer.id


def test_changed_entity_is_updated_exactly_once(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()
    connection.reset()

    customer.name = "Grace"
    unit_of_work.flush()

    assert connection.writes() == [
        ('UPDATE "customer" SET "name" = :v_name WHERE "id" = :k_id', {"v_name": "Grace", "k_id": 1})
    ]
    connection.reset()
    unit_of_work.flush()
    assert connection.writes() == []


def test_compute_change_sets_schedules_dirty_entities(unit_of_work):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()

    customer.name = "Grace"
    assert not unit_of_work.is_scheduled_for_update(customer)
    unit_of_work.compute_change_sets()

    assert unit_of_work.is_scheduled_for_update(customer)


def test_repointing_a_reference_updates_the_foreign_key(unit_of_work, connection):
    first, second = Customer(name="Ada"), Customer(name="Grace")
    order = Order(reference="A-1", customer=first)
    unit_of_work.persist(order)
    unit_of_work.persist(second)
    unit_of_work.flush()
    connection.reset()

    order.customer = second
    unit_of_work.flush()

    [(sql, params)] = connection.writes()
    assert sql.startswith('UPDATE "orders"')
    assert params["v_customer_id"] == second.id


def test_remove_deletes_the_row(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()
    connection.reset()

    unit_of_work.remove(customer)
    assert unit_of_work.is_scheduled_for_delete(customer)
    assert not unit_of_work.contains(customer)
    unit_of_work.flush()

    assert connection.writes() == [('DELETE FROM "customer" WHERE "id" = :id', {"id": 1})]
    assert unit_of_work.find(Customer, 1) is None


def test_removing_a_new_entity_cancels_the_insert(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)

    unit_of_work.remove(customer)
    unit_of_work.flush()

    assert connection.writes() == []
    assert not unit_of_work.contains(customer)


def test_persist_after_remove_cancels_the_delete(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()
    connection.reset()

    unit_of_work.remove(customer)
    unit_of_work.persist(customer)
    unit_of_work.flush()

    assert connection.writes() == []
    assert unit_of_work.contains(customer)


def test_removing_an_unmanaged_entity_raises_without_sql(unit_of_work, connection):
    with pytest.raises(EntityNotManagedError):
        unit_of_work.remove(Customer(name="stranger"))

    assert connection.statements == []


def test_find_queries_once_and_reuses_the_instance(unit_of_work, connection):
    _seed(connection, "INSERT INTO customer (id, name) VALUES (1, 'Ada')")

    first = unit_of_work.find(Customer, 1)
    second = unit_of_work.find(Customer, "1")

    assert first is second
    assert first.name == "Ada"
    assert connection.sql("SELECT") == ['SELECT * FROM "customer" WHERE "id" = :id']
    assert unit_of_work.find(Customer, 99) is None


def test_one_to_many_collection_loads_on_first_access(unit_of_work, connection):
    _seed(
        connection,
        "INSERT INTO customer (id, name) VALUES (1, 'Ada')",
        "INSERT INTO orders (id, reference, customer_id) VALUES (1, 'A-1', 1)",
        "INSERT INTO orders (id, reference, customer_id) VALUES (2, 'A-2', 1)",
    )
    customer = unit_of_work.find(Customer, 1)
    orders = customer.orders
    assert isinstance(orders, LazyCollection)
    assert not orders.is_initialized()

    assert sorted(order.reference for order in orders) == ["A-1", "A-2"]
    assert len(connection.sql("SELECT")) == 2
    assert all(order.customer is customer for order in orders)

    unit_of_work.flush()
    assert connection.writes() == []


def test_many_to_many_rows_follow_the_collection(unit_of_work, connection):
    first, second = Product(sku="p1"), Product(sku="p2")
    order = Order(reference="A-1", products=[first, second])
    unit_of_work.persist(order)
    unit_of_work.flush()
    assert _junction_rows(connection) == [(1, "p1"), (1, "p2")]

    order.products = [second, Product(sku="p3")]
    unit_of_work.flush()
    assert _junction_rows(connection) == [(1, "p2"), (1, "p3")]

    connection.reset()
    unit_of_work.flush()
    assert connection.writes() == []


def test_replacing_an_unloaded_collection_diffs_against_stored_rows(unit_of_work, connection):
    _seed(
        connection,
        "INSERT INTO orders (id, reference) VALUES (1, 'A-1')",
        "INSERT INTO product (sku) VALUES ('p1')",
        "INSERT INTO product (sku) VALUES ('p2')",
        "INSERT INTO order_products (order_id, product_id) VALUES (1, 'p1')",
        "INSERT INTO order_products (order_id, product_id) VALUES (1, 'p2')",
    )
    order = unit_of_work.find(Order, 1)

    order.products = [unit_of_work.get_reference(Product, "p2")]
    unit_of_work.flush()

    assert _junction_rows(connection) == [(1, "p2")]
    assert connection.sql("DELETE") == [
        'DELETE FROM "order_products" WHERE "order_id" = :owner AND "product_id" = :related'
    ]


def test_inverse_many_to_many_loads_through_the_join_table(unit_of_work, connection):
    _seed(
        connection,
        "INSERT INTO orders (id, reference) VALUES (1, 'A-1')",
        "INSERT INTO product (sku) VALUES ('p1')",
        "INSERT INTO order_products (order_id, product_id) VALUES (1, 'p1')",
    )

    product = unit_of_work.find(Product, "p1")

    assert [order.reference for order in product.orders] == ["A-1"]


def test_uuid_identifiers_are_assigned_on_persist(unit_of_work, connection):
    token = Token(label="api")

    unit_of_work.persist(token)
    assert isinstance(token.id, uuid.UUID)
    assert token.id.version == 7
    unit_of_work.flush()

    [(sql, params)] = connection.writes()
    assert sql == 'INSERT INTO "token" ("id", "label") VALUES (:id, :label)'
    assert params == {"id": str(token.id), "label": "api"}
    assert unit_of_work.find(Token, str(token.id)) is token


def test_refresh_discards_local_changes(unit_of_work, connection):
    _seed(connection, "INSERT INTO customer (id, name) VALUES (1, 'Ada')")
    customer = unit_of_work.find(Customer, 1)
    connection.execute("UPDATE customer SET name = 'Ada Lovelace' WHERE id = 1")
    customer.name = "local edit"

    unit_of_work.refresh(customer)
    connection.reset()
    unit_of_work.flush()

    assert customer.name == "Ada Lovelace"
    assert connection.writes() == []


def test_refresh_rejects_new_and_vanished_entities(unit_of_work, connection):
    pending = Customer(name="Ada")
    unit_of_work.persist(pending)
    with pytest.raises(EntityNotManagedError):
        unit_of_work.refresh(pending)

    _seed(connection, "INSERT INTO customer (id, name) VALUES (5, 'Grace')")
    customer = unit_of_work.find(Customer, 5)
    connection.execute("DELETE FROM customer WHERE id = 5")
    with pytest.raises(EntityNotFoundError):
        unit_of_work.refresh(customer)


def test_merge_copies_detached_state_onto_the_managed_instance(unit_of_work, connection):
    _seed(connection, "INSERT INTO customer (id, name) VALUES (1, 'Ada')")
    detached = Customer(name="Grace")
    detached.id = 1

    managed = unit_of_work.merge(detached)

    assert managed is not detached
    assert managed is unit_of_work.find(Customer, 1)
    assert managed.name == "Grace"
    assert not unit_of_work.contains(detached)
    unit_of_work.flush()
    assert len(connection.sql("UPDATE")) == 1


def test_merge_of_unknown_entity_schedules_a_copy(unit_of_work):
    detached = Customer(name="Grace")

    managed = unit_of_work.merge(detached)

    assert managed is not detached
    assert unit_of_work.is_scheduled_for_insert(managed)
    unit_of_work.flush()
    assert managed.id == 1
    assert detached.id is None


def test_detached_entity_is_ignored_by_flush(unit_of_work, connection):
    _seed(connection, "INSERT INTO customer (id, name) VALUES (1, 'Ada')")
    customer = unit_of_work.find(Customer, 1)

    unit_of_work.detach(customer)
    customer.name = "Grace"
    unit_of_work.flush()

    assert not unit_of_work.contains(customer)
    assert connection.writes() == []


def test_failed_flush_rolls_back_its_own_statements(unit_of_work, connection):
    _seed(connection, "INSERT INTO product (sku) VALUES ('dup')")
    duplicate = Product(sku="dup")
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.persist(duplicate)

    with pytest.raises(WriteFailureError) as excinfo:
        unit_of_work.flush()

    assert excinfo.value.entity is duplicate
    assert connection.sql("ROLLBACK TO") == ['ROLLBACK TO SAVEPOINT "uow_test_f1"']
    assert unit_of_work.savepoint.active
    assert connection.savepoints == ("uow_test",)
    assert connection.in_transaction
    assert _count(connection, "customer") == 0
    assert _count(connection, "product") == 1

    # The rolled back insert is scheduled again with its generated id cleared.
    assert unit_of_work.is_scheduled_for_insert(customer)
    assert customer.id is None
    assert unit_of_work.find(Customer, 1) is None


def test_flush_can_be_retried_after_a_failure(unit_of_work, connection):
    _seed(connection, "INSERT INTO product (sku) VALUES ('dup')")
    order = Order(reference="A-1", customer=Customer(name="Ada"))
    duplicate = Product(sku="dup")
    unit_of_work.persist(order)
    unit_of_work.persist(duplicate)
    with pytest.raises(WriteFailureError):
        unit_of_work.flush()

    unit_of_work.remove(duplicate)
    unit_of_work.flush()

    assert _count(connection, "customer") == 1
    assert _count(connection, "orders") == 1
    assert order.customer_id == order.customer.id == 1
    assert unit_of_work.find(Order, order.id) is order


def test_deletes_and_updates_of_a_failed_flush_are_rescheduled(unit_of_work, connection):
    first, second = Badge(code="a"), Badge(code="b")
    doomed = Customer(name="Ada")
    for entity in (first, second, doomed):
        unit_of_work.persist(entity)
    unit_of_work.flush()

    unit_of_work.remove(doomed)
    first.code = "x"
    second.code = "x"
    with pytest.raises(WriteFailureError) as excinfo:
        unit_of_work.flush()

    assert excinfo.value.entity is second
    assert unit_of_work.is_scheduled_for_delete(doomed)
    assert unit_of_work.snapshots.is_dirty(first)
    assert _count(connection, "customer") == 1

    second.code = "y"
    unit_of_work.flush()

    codes = connection.fetch_all("SELECT code FROM badge ORDER BY id")
    assert [row["code"] for row in codes] == ["x", "y"]
    assert _count(connection, "customer") == 0


def test_deleted_owner_leaves_no_junction_bookkeeping(unit_of_work):
    order = Order(reference="A-1")
    unit_of_work.persist(order)
    unit_of_work.flush()
    assert any(owner is order for owner, _ in unit_of_work._junction_state.values())

    unit_of_work.remove(order)
    unit_of_work.flush()

    assert not any(owner is order for owner, _ in unit_of_work._junction_state.values())


def test_clear_rolls_back_flushed_work_and_forgets_everything(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()

    unit_of_work.clear()

    assert _count(connection, "customer") == 0
    assert not unit_of_work.contains(customer)
    assert len(unit_of_work.identity_map) == 0
    assert unit_of_work.savepoint.state is SavepointState.NONE


def test_reset_keeps_the_database_untouched(unit_of_work, connection):
    customer = Customer(name="Ada")
    unit_of_work.persist(customer)
    unit_of_work.flush()

    unit_of_work.reset()

    assert _count(connection, "customer") == 1
    assert not unit_of_work.contains(customer)
