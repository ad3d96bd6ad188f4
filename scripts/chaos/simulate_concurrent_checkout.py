#!/usr/bin/env python3
"""Chaos scenario: race concurrent checkouts against one scarce product.

Creates a scratch SQLite database, seeds a single product with a small stock
level, then fires many order placements at it concurrently, each in its own
unit of work. The report shows how many orders were accepted or rejected and
whether the final stock matches the accepted quantity. Running it with
``--begin-mode DEFERRED`` shows what happens without the write lock taken at
transaction start.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import tempfile
import time
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping

from services.common import create_engine, create_schema, dispose_engines, get_session_factory
from services.order_service.app.domain import OrderItemRequest
from services.order_service.app.errors import BusinessRuleError
from services.order_service.app.models import Base
from services.order_service.app.services import InventoryService, OrderService
from services.order_service.app.unit_of_work import SqlAlchemyUnitOfWork


class ChaosError(RuntimeError):
    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = dict(context or {})


@dataclass(slots=True)
class CheckoutOutcome:
    accepted: List[int] = field(default_factory=list)
    rejected: int = 0
    errors: List[str] = field(default_factory=list)


def _env_default(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Race concurrent orders against a single product")
    parser.add_argument(
        "--stock",
        type=int,
        default=int(_env_default("CHECKOUT_RACE_STOCK", "5")),
        help="Initial stock of the contested product (default: %(default)s or CHECKOUT_RACE_STOCK)",
    )
    parser.add_argument(
        "--orders",
        type=int,
        default=int(_env_default("CHECKOUT_RACE_ORDERS", "20")),
        help="Number of concurrent orders to place (default: %(default)s or CHECKOUT_RACE_ORDERS)",
    )
    parser.add_argument(
        "--quantity",
        type=int,
        default=1,
        help="Quantity requested by each order (default: %(default)s)",
    )
    parser.add_argument(
        "--begin-mode",
        choices=("DEFERRED", "IMMEDIATE", "EXCLUSIVE"),
        default=_env_default("CHECKOUT_RACE_BEGIN_MODE", "IMMEDIATE"),
        help="SQLite BEGIN mode used for every transaction (default: %(default)s)",
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLite file to use; a temporary file is created when omitted",
    )

    args = parser.parse_args()

    if args.stock < 0:
        parser.error("--stock must be non-negative")
    if args.orders <= 0:
        parser.error("--orders must be positive")
    if args.quantity <= 0:
        parser.error("--quantity must be positive")
    return args


async def _place(session_factory, product_id: int, quantity: int, outcome: CheckoutOutcome) -> None:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        try:
            order_id = await OrderService(uow).create_order(1, [OrderItemRequest(product_id, quantity)])
        except BusinessRuleError:
            outcome.rejected += 1
        except Exception as exc:  # noqa: BLE001
            outcome.errors.append(f"{type(exc).__name__}: {exc}")
        else:
            outcome.accepted.append(order_id)


async def race(args: argparse.Namespace, database_path: Path) -> Mapping[str, Any]:
    database_url = f"sqlite+aiosqlite:///{database_path}"
    engine = create_engine(database_url, sqlite_begin_mode=args.begin_mode)
    try:
        await create_schema(engine, Base.metadata)
        session_factory = get_session_factory(database_url, sqlite_begin_mode=args.begin_mode)

        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            product_id = await InventoryService(uow).create("Contested Product", args.stock, Decimal("1.00"))

        outcome = CheckoutOutcome()
        start = time.monotonic()
        await asyncio.gather(
            *(_place(session_factory, product_id, args.quantity, outcome) for _ in range(args.orders))
        )
        duration = time.monotonic() - start

        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            product = await uow.inventory.get_by_product_id(product_id)
        if product is None:
            raise ChaosError("contested product disappeared", context={"productId": product_id})
    finally:
        await dispose_engines()

    sold = len(outcome.accepted) * args.quantity
    expected_stock = args.stock - sold
    return {
        "status": "ok" if product.stock == expected_stock and expected_stock >= 0 else "oversold",
        "beginMode": args.begin_mode,
        "initialStock": args.stock,
        "finalStock": product.stock,
        "expectedStock": expected_stock,
        "accepted": len(outcome.accepted),
        "rejected": outcome.rejected,
        "errors": outcome.errors,
        "durationSeconds": round(duration, 3),
    }


def run(args: argparse.Namespace) -> Mapping[str, Any]:
    if args.database:
        return asyncio.run(race(args, Path(args.database)))
    with tempfile.TemporaryDirectory() as scratch:
        return asyncio.run(race(args, Path(scratch) / "checkout_race.db"))


def main() -> int:
    args = parse_args()
    try:
        result = run(args)
    except ChaosError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
            "context": exc.context,
        }
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 2

    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if result["status"] == "ok" else 1


if __name__ == "__main__":
    raise SystemExit(main())
