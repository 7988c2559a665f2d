#!/usr/bin/env python3
"""
Seed demo orders for the OrderWatch dashboard.

Populates the database with a realistic service: yesterday's orders for the
change percentages, today's orders across every status (including Spanish
labels and a few unrecognized ones), delayed and discounted orders for the
activity feed, and line items for popular items.

Usage:
    python scripts/seed_demo_orders.py
    python scripts/seed_demo_orders.py --orders 80 --seed 7
"""

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

sys.path.insert(0, str(Path(__file__).parent.parent))

from orderwatch.config import get_settings
from orderwatch.models.orders import OrderItemRecord, OrderRecord
from orderwatch.storage.duckdb_storage import DuckDBOrderRepository
from orderwatch.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

MENU = [
    ("m_tacos", "Tacos al pastor", Decimal("4.50")),
    ("m_torta", "Torta ahogada", Decimal("7.00")),
    ("m_pozole", "Pozole rojo", Decimal("9.50")),
    ("m_elote", "Elote", Decimal("3.00")),
    ("m_flan", "Flan", Decimal("3.50")),
    ("m_horchata", "Agua de horchata", Decimal("2.50")),
]

# Raw statuses as written by tills, kitchen screens and delivery apps
TODAY_STATUSES = [
    "pending",
    "Pendiente",
    "preparing",
    "Preparando",
    "priority-preparing",
    "ready",
    "Listo",
    "delivered",
    "pagado",
    "Cancelado",
    "en espera",
]

CUSTOMERS = ["Ana", "ANA", "Luis", "María", "Jorge", "Sofía", "Carlos", "Lucía", ""]


def make_order(rng: random.Random, created_at: datetime, raw_status: str) -> tuple[OrderRecord, list[OrderItemRecord], Decimal]:
    """Build an order with 1-4 lines and an occasional discount."""
    order_id = f"ord_{uuid4().hex[:10]}"
    lines = []
    gross = Decimal("0")
    for _ in range(rng.randint(1, 4)):
        menu_id, name, price = rng.choice(MENU)
        quantity = rng.randint(1, 3)
        gross += price * quantity
        lines.append(
            OrderItemRecord(
                id=f"itm_{uuid4().hex[:10]}",
                order_id=order_id,
                menu_item_id=menu_id,
                name=name,
                quantity=quantity,
                price=price,
            )
        )

    discount = Decimal("0")
    if rng.random() < 0.2:
        discount = (gross * Decimal(rng.choice([5, 10, 20, 30])) / 100).quantize(Decimal("0.01"))

    order = OrderRecord(
        id=order_id,
        total=gross - discount,
        raw_status=raw_status,
        created_at=created_at,
        updated_at=created_at,
        customer_name=rng.choice(CUSTOMERS),
        kitchen_id=rng.choice([None, "cocina_1", "cocina_2"]),
        table_number=rng.randint(1, 20),
        is_delivery=rng.random() < 0.25,
        items_count=sum(line.quantity for line in lines),
    )
    return order, lines, discount


def main():
    """Seed yesterday's and today's orders."""
    parser = argparse.ArgumentParser(description="Seed demo orders")
    parser.add_argument("--orders", type=int, default=40, help="Orders to create for today")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    configure_logging()
    settings = get_settings()
    repository = DuckDBOrderRepository(db_path=settings.db_path, threads=settings.db_threads)
    rng = random.Random(args.seed)
    now = datetime.now(timezone.utc)

    created = 0
    for i in range(args.orders):
        minutes_ago = rng.randint(0, 90) if i % 3 else rng.randint(0, 600)
        created_at = max(now - timedelta(minutes=minutes_ago), now.replace(hour=0, minute=0, second=0, microsecond=0))
        order, lines, discount = make_order(rng, created_at, rng.choice(TODAY_STATUSES))
        repository.insert_order(order, discount=discount or None)
        for line in lines:
            repository.insert_order_item(line)
        created += 1

    for _ in range(args.orders // 2):
        created_at = now - timedelta(days=1, minutes=rng.randint(0, 600))
        order, lines, discount = make_order(rng, created_at, rng.choice(["pagado", "delivered", "ready"]))
        repository.insert_order(order, discount=discount or None)
        for line in lines:
            repository.insert_order_item(line)
        created += 1

    logger.info("demo_orders_seeded", orders=created, db_path=settings.db_path)
    print(f"Seeded {created} orders into {settings.db_path}")


if __name__ == "__main__":
    main()
