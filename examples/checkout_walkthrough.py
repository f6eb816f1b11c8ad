"""
Checkout walkthrough: quote, pay, 3-D Secure redirect, resume.

Runs against a throwaway SQLite file with the in-memory gateway and mail
channel:

    python examples/checkout_walkthrough.py
"""

import asyncio
import tempfile
from decimal import Decimal
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

from kungfu import Ok, Error

from checkout import logs, wiring
from checkout.config import Settings
from checkout.notify import MemoryEmailChannel
from checkout.payments import ConfirmBehaviour, InMemoryGateway
from checkout.pricing import CartLine

ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "10 Downing Street",
    "city": "London",
    "postcode": "sw1a2aa",
    "country": "GB",
    "phone": "07700 900123",
    "email": "ada@example.com",
}


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


async def main() -> None:
    logs.configure("WARNING", json_output=False)
    workdir = Path(tempfile.mkdtemp(prefix="checkout-"))
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{workdir / 'shop.db'}",
        continuation_dir=workdir / "continuations",
    )
    gateway = InMemoryGateway()
    mail = MemoryEmailChannel()
    wired = await wiring.build(settings, gateway=gateway, channel=mail)
    workflow = wired.workflow

    lamp = await wired.datastore.add_product("Desk Lamp", Decimal("25.00"), 10)
    await wired.datastore.add_coupon("SAVE10", "percent", Decimal("10"))
    lines = [CartLine(lamp, "Desk Lamp", Decimal("25.00"), 2, 10)]

    banner("Quote")
    quote = await workflow.quote(lines, "SAVE10")
    for label, value in quote.breakdown.to_dict().items():
        print(f"  {label:<12} £{value}")

    banner("Card with 3-D Secure")
    gateway.confirm_behaviour = ConfirmBehaviour.REDIRECT
    match await workflow.begin("sess-demo", lines, ADDRESS, "SAVE10"):
        case Ok(begun):
            print(f"  intent {begun.session.intent_id} for {begun.session.amount_minor}p")
        case Error(outcome):
            print(f"  ✗ {outcome.message}")
            return

    outcome = await workflow.submit("sess-demo", "pm_card_threeDSecure2Required")
    print(f"  → {outcome.kind.name}: {outcome.redirect_url}")

    # The shopper passes the challenge and the browser lands on the return URL.
    gateway.complete_redirect(begun.session.intent_id)
    query = {k: v[0] for k, v in parse_qs(urlsplit(outcome.redirect_url).query).items()}

    banner("Return page (loaded twice)")
    for _ in range(2):
        resumed = await workflow.resume("sess-demo", query)
        print(f"  ✓ {resumed.kind.name}: {resumed.message}")

    print(f"\n  orders for intent: {await wired.datastore.count_orders(begun.session.intent_id)}")
    print(f"  lamp stock:        {await wired.datastore.product_stock(lamp)}")
    print(f"  invoices sent:     {[m.filename for m in mail.sent]}")
    print(f"  confirm calls:     {gateway.confirm_calls}")

    await wired.engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
