import uuid
from unittest.mock import MagicMock

import httpx
import pytest
import redis
from postgrest.exceptions import APIError

from storefront.core.errors import ConflictError, NotFoundError, StoreUnavailableError
from storefront.models.order import Order, OrderStatus
from storefront.stores.sequence import RedisOrderSequence
from storefront.stores.supabase_store import SupabaseOrderStore


class FakeSequence:
    def __init__(self, *values):
        self.values = iter(values)
        self.resynced = []

    def next_value(self, seed):
        return next(self.values)

    def resync(self, floor):
        self.resynced.append(floor)


def unique_violation(constraint, key):
    return APIError({
        "code": "23505",
        "message": f'duplicate key value violates unique constraint "{constraint}"',
        "details": f"Key ({key})=(x) already exists.",
    })


def stored(**overrides):
    doc = Order(owner_id="u1", id=str(uuid.uuid4()), order_number="Order No 1", version=1).to_document()
    doc.update(overrides)
    return doc


@pytest.fixture
def client():
    return MagicMock()


def test_create_retries_with_fresh_number_on_collision(client):
    inserted = []

    def insert(doc):
        inserted.append(doc)
        query = MagicMock()
        if len(inserted) == 1:
            query.execute.side_effect = unique_violation("orders_order_number_key", "order_number")
        else:
            query.execute.return_value = MagicMock(data=[doc])
        return query

    table = client.table.return_value
    table.insert.side_effect = insert
    table.select.return_value.order.return_value.limit.return_value.execute.return_value = \
        MagicMock(data=[{"order_seq": 4}])
    sequence = FakeSequence(4, 5)

    order = SupabaseOrderStore(client=client, sequence=sequence).create(Order(owner_id="u1"))

    assert [d["order_number"] for d in inserted] == ["Order No 4", "Order No 5"]
    assert [d["order_seq"] for d in inserted] == [4, 5]
    assert order.order_number == "Order No 5"
    assert order.version == 1
    assert sequence.resynced == [4]
    client.table.assert_called_with("orders")


class DictRedis:
    """Just enough of RedisClient for RedisOrderSequence"""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def exists(self, key):
        return key in self.values

    def setnx(self, key, value):
        if key in self.values:
            return False
        self.values[key] = value
        return True

    def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, expire=None):
        self.values[key] = value


def store_with_numbers_taken(client, taken, redis_values=None):
    """Rows numbered ``taken`` exist; earlier ones were deleted"""
    inserted = []

    def insert(doc):
        inserted.append(doc)
        query = MagicMock()
        if doc["order_seq"] in taken:
            query.execute.side_effect = unique_violation("orders_order_number_key", "order_number")
        else:
            query.execute.return_value = MagicMock(data=[doc])
        return query

    table = client.table.return_value
    table.insert.side_effect = insert
    table.select.return_value.order.return_value.limit.return_value.execute.return_value = \
        MagicMock(data=[{"order_seq": max(taken)}])
    table.select.return_value.limit.return_value.execute.return_value = MagicMock(count=len(taken))
    redis_fake = DictRedis(redis_values)
    store = SupabaseOrderStore(client=client, sequence=RedisOrderSequence(redis_fake))
    return store, inserted, redis_fake


def test_lost_counter_is_seeded_past_deleted_orders(client):
    store, inserted, redis_fake = store_with_numbers_taken(client, taken=set(range(6, 11)))

    order = store.create(Order(owner_id="u1"))

    assert order.order_number == "Order No 11"
    assert len(inserted) == 1
    assert redis_fake.values["orders:sequence"] == 11
    client.table.return_value.select.return_value.order.assert_called_with("order_seq", desc=True)


def test_stale_counter_resyncs_to_highest_number(client):
    store, inserted, _ = store_with_numbers_taken(client, taken=set(range(6, 11)),
                                                  redis_values={"orders:sequence": 5})

    order = store.create(Order(owner_id="u1"))

    assert [d["order_seq"] for d in inserted] == [6, 11]
    assert order.order_number == "Order No 11"


def test_create_gives_up_after_bounded_retries(client):
    client.table.return_value.insert.return_value.execute.side_effect = \
        unique_violation("orders_order_number_key", "order_number")
    client.table.return_value.select.return_value.order.return_value.limit.return_value.execute.return_value = \
        MagicMock(data=[{"order_seq": 1}])
    store = SupabaseOrderStore(client=client, sequence=FakeSequence(*range(1, 100)))

    with pytest.raises(ConflictError) as exc:
        store.create(Order(owner_id="u1"))

    assert exc.value.field == "order_number"


def test_duplicate_draft_maps_to_draft_conflict(client):
    client.table.return_value.insert.return_value.execute.side_effect = \
        unique_violation("orders_one_draft_per_owner", "owner_id")
    store = SupabaseOrderStore(client=client, sequence=FakeSequence(1))

    with pytest.raises(ConflictError) as exc:
        store.create(Order(owner_id="u1"))

    assert exc.value.field == "draft"


def test_save_with_stale_version_conflicts(client):
    table = client.table.return_value
    table.update.return_value.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=[])
    doc = stored(version=3)
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=[doc])
    store = SupabaseOrderStore(client=client, sequence=FakeSequence())

    with pytest.raises(ConflictError) as exc:
        store.save(Order.from_document(stored(id=doc["id"], version=2)))

    assert exc.value.field == "version"
    table.update.return_value.eq.return_value.eq.assert_called_with("version", 2)


def test_save_of_deleted_order_is_not_found(client):
    table = client.table.return_value
    table.update.return_value.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=[])
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=[])
    store = SupabaseOrderStore(client=client, sequence=FakeSequence())

    with pytest.raises(NotFoundError):
        store.save(Order.from_document(stored()))


def test_save_bumps_version(client):
    doc = stored(version=1)
    table = client.table.return_value
    table.update.return_value.eq.return_value.eq.return_value.execute.return_value = \
        MagicMock(data=[dict(doc, version=2)])

    saved = SupabaseOrderStore(client=client, sequence=FakeSequence()).save(Order.from_document(doc))

    sent = table.update.call_args[0][0]
    assert sent["version"] == 2
    assert "id" not in sent
    assert saved.version == 2


def test_find_by_id_ignores_malformed_ids(client):
    store = SupabaseOrderStore(client=client, sequence=FakeSequence())

    assert store.find_by_id("not-a-uuid") is None
    client.table.assert_not_called()


def test_find_all_filters_and_orders_newest_first(client):
    query = client.table.return_value.select.return_value
    query.eq.return_value.order.return_value.execute.return_value = MagicMock(data=[stored(status="Pending")])

    orders = SupabaseOrderStore(client=client, sequence=FakeSequence()).find_all(OrderStatus.PENDING)

    query.eq.assert_called_with("status", "Pending")
    query.eq.return_value.order.assert_called_with("created_at", desc=True)
    assert [o.status for o in orders] == [OrderStatus.PENDING]


def test_backend_failures_are_store_unavailable(client):
    query = client.table.return_value.select.return_value.eq.return_value.order.return_value
    store = SupabaseOrderStore(client=client, sequence=FakeSequence())

    query.execute.side_effect = APIError({"code": "57014", "message": "canceling statement due to statement timeout"})
    with pytest.raises(StoreUnavailableError):
        store.find_by_owner("u1")

    query.execute.side_effect = httpx.ConnectError("connection refused")
    with pytest.raises(StoreUnavailableError):
        store.find_by_owner("u1")


# Redis sequence

def test_sequence_is_seeded_from_count_once():
    redis_mock = MagicMock()
    redis_mock.exists.return_value = False
    redis_mock.setnx.return_value = True
    redis_mock.incr.return_value = 8

    value = RedisOrderSequence(redis_mock).next_value(lambda: 7)

    assert value == 8
    redis_mock.setnx.assert_called_once_with("orders:sequence", 7)


def test_sequence_skips_seed_when_key_exists():
    redis_mock = MagicMock()
    redis_mock.exists.return_value = True
    redis_mock.incr.return_value = 12
    seed = MagicMock()

    assert RedisOrderSequence(redis_mock).next_value(seed) == 12
    seed.assert_not_called()


def test_sequence_resync_only_moves_forward():
    redis_mock = MagicMock()
    sequence = RedisOrderSequence(redis_mock)

    redis_mock.get.return_value = 3
    sequence.resync(5)
    redis_mock.set.assert_called_once_with("orders:sequence", 5)

    redis_mock.reset_mock()
    redis_mock.get.return_value = 9
    sequence.resync(5)
    redis_mock.set.assert_not_called()


def test_sequence_redis_outage_is_store_unavailable():
    redis_mock = MagicMock()
    redis_mock.exists.side_effect = redis.ConnectionError("down")

    with pytest.raises(StoreUnavailableError):
        RedisOrderSequence(redis_mock).next_value(lambda: 0)
