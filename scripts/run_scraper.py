"""Manual runner for the price tracking pipeline.

Scrape a single page, start tracking a product, run one update pass
or print analytics and the scraping health report.

Usage:
    python scripts/run_scraper.py scrape https://www.venex.com.ar/producto/123
    python scripts/run_scraper.py track https://compragamer.com/producto/456
    python scripts/run_scraper.py update --batch-size 20
    python scripts/run_scraper.py report --days 7
    python scripts/run_scraper.py predict <product-id>
"""

import argparse
import asyncio
import os
import sys
from uuid import UUID

# Add backend to path so the package imports without installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from pricetracker.core.exceptions import InsufficientDataError, PriceTrackerException
from pricetracker.main import build_application, configure_logging, shutdown_application
from pricetracker.config import settings


async def cmd_scrape(app, args) -> int:
    result = await app.scraper.scrape_product_info(args.url)
    if result is None:
        print(f"\n⚠️  Nothing extracted from {args.url} (blocked or selectors missed)\n")
        return 1

    print(f"\n{'='*70}")
    print(f"  {result.name}")
    print(f"{'='*70}")
    print(f"    💰 Price: {result.price:,.2f}")
    if result.image_url:
        print(f"    🖼️  Image: {result.image_url[:80]}")
    for field, selector in result.selectors_used.items():
        print(f"    🔎 {field}: {selector[:60]}")
    print()
    return 0


async def cmd_track(app, args) -> int:
    product = await app.tracking.track_product(args.url)
    print(f"\n✅ Tracking {product.name}")
    print(f"   id:    {product.id}")
    print(f"   price: {product.current_price:,.2f}\n")
    return 0


async def cmd_update(app, args) -> int:
    app.pool.start()
    result = await app.scheduler.schedule_product_updates(args.batch_size)
    print(f"\n📋 Scheduled {result['scheduled']} update jobs, waiting for workers...")
    await app.pool.join()

    stats = app.worker.stats
    print(f"\n{'='*70}")
    print(f"  Update pass finished")
    print(f"{'='*70}")
    for key in ("processed", "updated", "unchanged", "failed"):
        print(f"  {key.capitalize():<10} {stats[key]}")
    print()
    return 0


async def cmd_report(app, args) -> int:
    report = await app.monitor.generate_performance_report(days=args.days, threshold=args.threshold)
    overall = report.overall_stats

    print(f"\n{'='*70}")
    print(f"  Scraping performance, last {report.window_days} days")
    print(f"{'='*70}")
    print(f"  Attempts: {overall.total_attempts}  Success rate: {overall.overall_success_rate}%\n")
    for stats in report.domain_stats:
        flag = "❌" if stats in report.problematic_domains else "✅"
        print(f"  {flag} {stats.domain:<40} {stats.success:>5}/{stats.total:<5} {stats.success_rate:>6}%")
    print()
    return 0


async def cmd_predict(app, args) -> int:
    try:
        prediction = await app.analytics.predict_price(str(UUID(args.product_id)))
    except InsufficientDataError as e:
        print(f"\n⚠️  {e.message}\n")
        return 1

    print(f"\n📈 Trend: {prediction.trend} (confidence {prediction.confidence})")
    print(f"   Current:   {prediction.current_price:,.2f}")
    print(f"   In 30 days: {prediction.predicted_price:,.2f}")
    print(f"   Best time to buy: {prediction.best_time_to_buy:%Y-%m-%d}\n")
    return 0


COMMANDS = {
    "scrape": cmd_scrape,
    "track": cmd_track,
    "update": cmd_update,
    "report": cmd_report,
    "predict": cmd_predict,
}


async def run(args) -> int:
    app = await build_application(check_proxies=not args.skip_proxy_check)
    try:
        return await COMMANDS[args.command](app, args)
    except PriceTrackerException as e:
        print(f"\n❌ {type(e).__name__}: {e.message}\n")
        return 1
    finally:
        await shutdown_application(app)


def main():
    """Parse arguments and run the selected command."""
    parser = argparse.ArgumentParser(
        description="Run parts of the price tracking pipeline by hand",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--skip-proxy-check",
        action="store_true",
        help="Use PROXY_LIST as-is without the startup liveness check",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Scrape one product page and print the result")
    scrape.add_argument("url")

    track = subparsers.add_parser("track", help="Start tracking a product URL")
    track.add_argument("url")

    update = subparsers.add_parser("update", help="Run one update pass over all products")
    update.add_argument("--batch-size", type=int, default=settings.UPDATE_BATCH_SIZE)

    report = subparsers.add_parser("report", help="Print the scraping performance report")
    report.add_argument("--days", type=int, default=7)
    report.add_argument("--threshold", type=float, default=50.0, help="Success rate %% below which a domain is flagged")

    predict = subparsers.add_parser("predict", help="Print the 30-day price prediction for a product")
    predict.add_argument("product_id")

    args = parser.parse_args()
    configure_logging(settings.DEBUG)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
