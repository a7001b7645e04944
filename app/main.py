"""
Headless Runner for Finance Tracker

Starts the ledger, the aggregation engine and the budget-check scheduler,
then logs every Aggregate as it is published until interrupted.

Front ends (mobile, web, desktop) run their own process and talk to the
same components; this runner is what keeps the scheduled budget check
alive without any UI.

Usage:
    python -m app.main
"""

import asyncio

import structlog

from finance_tracker.audit import configure_logging
from finance_tracker.config import get_settings, validate_all_settings
from finance_tracker.orchestrator import create_app_components
from finance_tracker.scheduling import create_scheduler, stop_scheduler


logger = structlog.get_logger("app.main")


async def run() -> None:
    """Run until cancelled."""
    settings = get_settings()
    configure_logging(settings.app.log_level)

    checks = validate_all_settings()
    failed = [name for name, ok in checks.items() if ok is False]
    if failed:
        for name in failed:
            logger.error("settings_invalid", section=name, error=checks.get(f"{name}_error"))
        raise SystemExit(1)

    components = create_app_components(settings=settings)
    async with components:
        scheduler = create_scheduler(
            components.monitor,
            settings.budget.check_interval_minutes,
            run_immediately=settings.app.debug_mode,
        )
        scheduler.start()
        try:
            async with components.engine.subscribe() as updates:
                async for aggregate in updates:
                    logger.info(
                        "aggregate_updated",
                        revision=aggregate.revision,
                        balance=round(aggregate.balance, 2),
                        transaction_count=aggregate.transaction_count,
                        category_spend=aggregate.category_spend,
                    )
        finally:
            stop_scheduler(scheduler)


def main() -> None:
    """Main application entry point."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("shutdown_requested")


if __name__ == "__main__":
    main()
