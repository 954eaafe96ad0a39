import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import List, Optional

from tortoise import timezone

from app.core import config
from app.core.errors import ConcurrencyConflict, InvalidTransitionError
from app.models.order import ORDER_MODELS, OrderStatus
from app.services import order_service
from app.services.context import EngineContext

log = logging.getLogger("watchdog")

FINAL_WARNING = (
    "Final warning",
    "Your order #{code} has been waiting for {minutes} minutes. Please pick it up soon or it may be cancelled.",
    "warning",
)
URGENT_UNCOLLECTED = (
    "Order not collected",
    "Your order #{code} has been ready for {minutes} minutes. Please collect it immediately.",
    "error",
)
AUTO_CANCELLED = (
    "Order cancelled",
    "Your order #{code} was cancelled because it was not picked up in time.",
    "error",
)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=dt_timezone.utc)


@dataclass
class SweepResult:
    warned: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)


class StaleOrderWatchdog:
    """
    Periodic re-query of ``ready`` orders. Sends one final warning after
    ``warning_minutes`` and, after ``expiry_minutes``, either cancels the order
    (``auto_cancel``) or sends one urgent alert.

    The "sent" markers are claimed with conditional updates, and cancellation
    goes through the state machine's conditional update, so repeated sweeps
    and a concurrent pickup cannot double-fire or clobber each other.
    """

    def __init__(
        self,
        ctx: EngineContext,
        interval: Optional[int] = None,
        warning_minutes: Optional[int] = None,
        expiry_minutes: Optional[int] = None,
        auto_cancel: Optional[bool] = None,
    ):
        self.ctx = ctx
        self.interval = interval if interval is not None else config.WATCHDOG_INTERVAL
        self.warning_after = timedelta(minutes=warning_minutes if warning_minutes is not None else config.READY_WARNING_MINUTES)
        self.expire_after = timedelta(minutes=expiry_minutes if expiry_minutes is not None else config.READY_EXPIRY_MINUTES)
        self.auto_cancel = config.WATCHDOG_AUTO_CANCEL if auto_cancel is None else auto_cancel
        self._wake = asyncio.Event()
        self._stopped = False
        self._unsubscribe = []

    def attach(self, feed) -> None:
        """Wake the sweep early whenever an order table changes."""
        for model in ORDER_MODELS:
            self._unsubscribe.append(feed.subscribe(model._meta.db_table, self._on_change))

    async def _on_change(self, table: str, record_id: str) -> None:
        self._wake.set()

    async def _claim(self, order, marker: str, now: datetime) -> bool:
        """Sets ``marker`` only if still unset and the order is still ready; True if we won."""
        model = type(order)
        updated = await model.filter(
            id=order.id, status=OrderStatus.READY, **{f"{marker}__isnull": True}
        ).update(**{marker: now})
        return bool(updated)

    def _alert(self, order, template, elapsed: timedelta):
        title, message, severity = template
        minutes = int(elapsed.total_seconds() // 60)
        self.ctx.notifications.notify(
            order.customer_id, title, message.format(code=order.pickup_code, minutes=minutes), severity,
            order_id=order.id,
        )

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = _aware(now or timezone.now())
        result = SweepResult()

        for model in ORDER_MODELS:
            ready_orders = await model.filter(status=OrderStatus.READY, ready_at__isnull=False)
            for order in ready_orders:
                elapsed = now - _aware(order.ready_at)

                if elapsed >= self.expire_after:
                    if self.auto_cancel:
                        try:
                            await order_service.cancel_order(self.ctx, order.id, actor=None, notification=AUTO_CANCELLED)
                        except (ConcurrencyConflict, InvalidTransitionError):
                            # Picked up (or otherwise handled) while we were looking
                            log.info(f"Order {order.id} changed before auto-cancel; skipping.")
                            continue
                        log.warning(f"Order {order.id} auto-cancelled after {elapsed} in ready.")
                        result.cancelled.append(str(order.id))
                    elif order.expiry_sent_at is None and await self._claim(order, "expiry_sent_at", now):
                        self._alert(order, URGENT_UNCOLLECTED, elapsed)
                        log.warning(f"Order {order.id} uncollected for {elapsed}.")
                        result.expired.append(str(order.id))

                elif elapsed >= self.warning_after:
                    if order.warning_sent_at is None and await self._claim(order, "warning_sent_at", now):
                        self._alert(order, FINAL_WARNING, elapsed)
                        log.info(f"Final warning sent for order {order.id}.")
                        result.warned.append(str(order.id))

        return result

    async def run(self):
        """Main loop: sweep, then sleep until the next tick or a change-feed wake-up."""
        log.info("--- Stale-Order Watchdog Started ---")
        while not self._stopped:
            self._wake.clear()
            try:
                await self.sweep()
            except Exception as e:
                log.error(f"Watchdog encountered an error during sweep: {e}")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        log.info("Watchdog stopped.")

    def stop(self):
        self._stopped = True
        self._wake.set()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []


async def start_watchdog():
    """Runs the watchdog as a standalone worker process."""
    from app.core.db import init_db, close_db
    from app.core.logging_config import setup_logging

    setup_logging()
    await init_db()
    watchdog = StaleOrderWatchdog(EngineContext())
    try:
        await watchdog.run()
    finally:
        await close_db()


if __name__ == "__main__":
    try:
        asyncio.run(start_watchdog())
    except KeyboardInterrupt:
        print("Watchdog service stopped.")
