from decimal import Decimal

import pytest

from order_api import models
from order_api.errors import InsufficientStockError, NotFoundError, ValidationFailure


@pytest.mark.asyncio
async def test_create_order_totals_and_pending_status(services, make_user, make_product, stock_of):
    user = await make_user()
    x = await make_product("Product X", price="10.00", stock=5)
    y = await make_product("Product Y", price="5.00", stock=5)

    order = await services.pricing.create_order({
        "customer_name": "Alice",
        "user_ids": [user.id],
        "items": [
            {"product_id": x.id, "quantity": 2},
            {"product_id": y.id, "quantity": 1},
        ],
    })

    assert order.total_amount == Decimal("25.00")
    assert order.status == models.OrderStatus.PENDING
    assert [(i.product_name, i.quantity, i.unit_price, i.total_price) for i in order.items] == [
        ("Product X", 2, Decimal("10.00"), Decimal("20.00")),
        ("Product Y", 1, Decimal("5.00"), Decimal("5.00")),
    ]
    # stock is only taken on payment
    assert await stock_of(x.id) == 5
    assert await stock_of(y.id) == 5


@pytest.mark.asyncio
async def test_total_is_sum_of_line_totals(services, make_user, make_product):
    user = await make_user()
    a = await make_product("A", price="19.99", stock=10)
    b = await make_product("B", price="0.35", stock=10)
    c = await make_product("C", price="7.10", stock=10)

    order = await services.pricing.create_order({
        "customer_name": "Bob",
        "user_ids": [user.id],
        "items": [
            {"product_id": a.id, "quantity": 3},
            {"product_id": b.id, "quantity": 7},
            {"product_id": c.id, "quantity": 1},
        ],
    })

    assert order.total_amount == sum(i.unit_price * i.quantity for i in order.items)
    assert order.total_amount == Decimal("69.52")

    stored = await services.queries.find_by_id(order.id)
    assert stored.total_amount == Decimal("69.52")
    assert sum(i.total_price for i in stored.items) == stored.total_amount


@pytest.mark.asyncio
async def test_primary_customer_and_participants(services, make_user, make_product):
    first = await make_user("Stored Name", "first@example.com")
    second = await make_user("Second", "second@example.com", role=models.UserRole.ADMIN)
    product = await make_product()

    order = await services.pricing.create_order({
        "customer_name": "Display Name",
        "user_ids": [first.id, second.id, first.id],
        "items": [{"product_id": product.id, "quantity": 1}],
    })

    assert [p.id for p in order.participants] == [first.id, second.id]
    assert order.participants[1].role == models.UserRole.ADMIN

    stored = await services.queries.find_by_id(order.id)
    # caller-supplied name wins, email belongs to the first participant
    assert stored.customer_name == "Display Name"
    assert stored.customer_email == "first@example.com"


@pytest.mark.asyncio
async def test_unknown_user_fails_and_creates_nothing(services, make_user, make_product, count_rows):
    user = await make_user()
    product = await make_product()

    with pytest.raises(NotFoundError) as exc:
        await services.pricing.create_order({
            "customer_name": "Alice",
            "user_ids": [user.id, "missing-user"],
            "items": [{"product_id": product.id, "quantity": 1}],
        })

    assert exc.value.status_code == 404
    assert exc.value.missing_ids == ["missing-user"]
    assert "missing-user" in exc.value.message
    assert await count_rows(models.Order) == 0


@pytest.mark.asyncio
async def test_insufficient_stock_fails_and_creates_nothing(services, make_user, make_product, count_rows):
    user = await make_user()
    product = await make_product("Scarce", stock=1)

    with pytest.raises(InsufficientStockError) as exc:
        await services.pricing.create_order({
            "customer_name": "Alice",
            "user_ids": [user.id],
            "items": [{"product_id": product.id, "quantity": 2}],
        })

    assert exc.value.message == "insufficient stock for product Scarce"
    assert exc.value.status_code == 400
    assert await count_rows(models.Order) == 0


@pytest.mark.asyncio
async def test_failure_on_later_item_persists_nothing(services, make_user, make_product, count_rows):
    user = await make_user()
    ok_1 = await make_product("One", stock=10)
    ok_2 = await make_product("Two", stock=10)

    with pytest.raises(NotFoundError) as exc:
        await services.pricing.create_order({
            "customer_name": "Alice",
            "user_ids": [user.id],
            "items": [
                {"product_id": ok_1.id, "quantity": 1},
                {"product_id": ok_2.id, "quantity": 1},
                {"product_id": "no-such-product", "quantity": 1},
            ],
        })

    assert "no-such-product" in exc.value.message
    assert await count_rows(models.Order) == 0
    assert await count_rows(models.OrderItem) == 0
    assert await count_rows(models.order_participants) == 0


@pytest.mark.asyncio
async def test_inactive_product_is_not_found(services, make_user, make_product):
    user = await make_user()
    product = await make_product("Retired", active=False)

    with pytest.raises(NotFoundError, match="not found or inactive"):
        await services.pricing.create_order({
            "customer_name": "Alice",
            "user_ids": [user.id],
            "items": [{"product_id": product.id, "quantity": 1}],
        })


@pytest.mark.asyncio
async def test_repeated_product_lines_are_checked_together(services, make_user, make_product):
    user = await make_user()
    product = await make_product("Limited", stock=3)

    with pytest.raises(InsufficientStockError):
        await services.pricing.create_order({
            "customer_name": "Alice",
            "user_ids": [user.id],
            "items": [
                {"product_id": product.id, "quantity": 2},
                {"product_id": product.id, "quantity": 2},
            ],
        })


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"customer_name": "Alice", "user_ids": ["u"], "items": []},
    {"customer_name": "Alice", "user_ids": [], "items": [{"product_id": "p", "quantity": 1}]},
    {"customer_name": "Alice", "user_ids": ["u"], "items": [{"product_id": "p", "quantity": 0}]},
    {"customer_name": "Alice", "user_ids": ["u"], "items": [{"product_id": "p", "quantity": -3}]},
    {"customer_name": "", "user_ids": ["u"], "items": [{"product_id": "p", "quantity": 1}]},
    {"customer_name": "<b></b>", "user_ids": ["u"], "items": [{"product_id": "p", "quantity": 1}]},
])
async def test_malformed_payload_is_rejected(services, payload, count_rows):
    with pytest.raises(ValidationFailure) as exc:
        await services.pricing.create_order(payload)
    assert exc.value.errors
    assert await count_rows(models.Order) == 0


@pytest.mark.asyncio
async def test_customer_name_and_notes_are_sanitized(services, make_user, make_product):
    user = await make_user()
    product = await make_product()

    order = await services.pricing.create_order({
        "customer_name": "<script>x</script>Carol",
        "user_ids": [user.id],
        "items": [{"product_id": product.id, "quantity": 1}],
        "notes": "  leave at   the door  ",
    })

    stored = await services.queries.find_by_id(order.id)
    assert "script" not in stored.customer_name
    assert stored.customer_name.endswith("Carol")
    assert stored.notes == "leave at the door"


@pytest.mark.asyncio
async def test_customer_name_and_notes_keep_punctuation(services, make_user, make_product):
    user = await make_user()
    product = await make_product()

    order = await services.pricing.create_order({
        "customer_name": "Tom & Jerry <3 Smith--Jones",
        "user_ids": [user.id],
        "items": [{"product_id": product.id, "quantity": 1}],
        "notes": "ring twice; a < b",
    })

    stored = await services.queries.find_by_id(order.id)
    assert stored.customer_name == "Tom & Jerry <3 Smith--Jones"
    assert stored.notes == "ring twice; a < b"


@pytest.mark.asyncio
async def test_customer_name_at_column_width_is_stored_unchanged(services, make_user, make_product):
    user = await make_user()
    product = await make_product()

    order = await services.pricing.create_order({
        "customer_name": "&" * 255,
        "user_ids": [user.id],
        "items": [{"product_id": product.id, "quantity": 1}],
    })

    stored = await services.queries.find_by_id(order.id)
    assert stored.customer_name == "&" * 255


@pytest.mark.asyncio
async def test_customer_name_over_column_width_is_rejected(services, make_user, make_product):
    user = await make_user()
    product = await make_product()

    with pytest.raises(ValidationFailure):
        await services.pricing.create_order({
            "customer_name": "x" * 256,
            "user_ids": [user.id],
            "items": [{"product_id": product.id, "quantity": 1}],
        })
