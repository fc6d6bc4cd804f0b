import importlib.util
import os
import uuid

import pytest

from aurum import Entity, EntityManager, IntegerField, StringField
from aurum.exceptions import ORMError

TABLE = f"aurum_it_{uuid.uuid4().hex[:8]}"


class Gadget(Entity):
    class Meta:
        table = TABLE

    name = StringField(nullable=False, max_length=100)
    stock = IntegerField()


@pytest.fixture
def mysql_manager():
    if importlib.util.find_spec("pymysql") is None and importlib.util.find_spec("MySQLdb") is None:
        pytest.skip("No MySQL driver installed")
    dsn = os.getenv("AURUM_MYSQL_DSN")
    if not dsn:
        pytest.skip("AURUM_MYSQL_DSN not set; skipping MySQL integration test")
    try:
        manager = EntityManager.from_dsn(dsn)
    except Exception as exc:  # pragma: no cover - environment dependent
        pytest.skip(f"Cannot connect to MySQL for integration test: {exc}")
    manager.connection.execute(
        f"CREATE TABLE IF NOT EXISTS `{TABLE}` "
        "(id INT AUTO_INCREMENT PRIMARY KEY, name VARCHAR(100) NOT NULL, stock INT)"
    )
    yield manager
    try:
        if manager.connection.in_transaction:
            manager.connection.rollback()
        manager.connection.execute(f"DROP TABLE IF EXISTS `{TABLE}`")
    except ORMError:
        pass
    manager.close()


def test_mysql_roundtrip(mysql_manager):
    with mysql_manager.transaction():
        mysql_manager.persist(Gadget(name="mysql-ok", stock=3))

    mysql_manager.clear()
    gadget = mysql_manager.get_repository(Gadget).find_one_by({"name": "mysql-ok"})
    assert gadget.stock == 3

    gadget.stock = 4
    mysql_manager.flush()
    mysql_manager.clear()
    assert mysql_manager.find(Gadget, gadget.id).stock == 4
