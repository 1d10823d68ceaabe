"""
main.py — Single entry point.

Builds the long-lived collaborators once (Vision client, OpenAI clients,
the eBay token cache) and serves the JSON API until SIGINT/SIGTERM.

Architecture:
  asyncio event loop
    └── aiohttp web server
          ├── /api/vision  → vision.fusion.SignalFusionEngine
          ├── /api/intent  → intent.IntentClassifier
          └── /api/search  → marketplace_search.MarketplaceAggregator
"""
import asyncio
import logging
import signal
import sys

import config

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run() -> None:
    from intent import IntentClassifier
    from marketplace_search import build_aggregator
    from vision.fusion import SignalFusionEngine
    from vision.google_vision import GoogleVisionAnnotator
    from vision.openai_opinion import OpenAISecondOpinion
    from web_server import build_web_app, start_server

    try:
        annotator = GoogleVisionAnnotator()
    except Exception as exc:
        logger.critical("FATAL: could not create Vision client: %s", exc, exc_info=True)
        raise

    app = build_web_app(
        engine=SignalFusionEngine(annotator, OpenAISecondOpinion()),
        aggregator=build_aggregator(),
        classifier=IntentClassifier(),
    )
    runner = await start_server(app)

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ Scanner is running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down…")
        await runner.cleanup()

    logger.info("Goodbye.")


def main() -> None:
    if not config.OPENAI_API_KEY:
        logger.critical("OPENAI_API_KEY is missing.")
        sys.exit(1)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
