"""
acars-processor command line entry point.
"""
import asyncio
import logging
import signal
import sys
from typing import Optional

import click
import httpx
from rich.console import Console

from acars_processor import __version__
from acars_processor.core.config import Config, get_settings, load_config
from acars_processor.core.database import close_db, create_engine, create_session_factory, database_url, init_db
from acars_processor.core.exceptions import ConfigError, StoreError
from acars_processor.core.utils import configure_logging
from acars_processor.schema import EXAMPLE_FILE, SCHEMA_FILE, generate
from acars_processor.schemas import MessageKind
from acars_processor.services.filters.dictionary import load_dictionary
from acars_processor.services.ingest import StdinIngestor, TCPIngestor
from acars_processor.services.processor import Processor
from acars_processor.services.steps import build_steps, needs_dictionary
from acars_processor.services.store import MessageStore

logger = logging.getLogger(__name__)
console = Console(stderr=True)

SCHEMA_CHANGED_EXIT_CODE = 100


async def run(config: Config):
    """Run ingestors and workers until a shutdown signal or end of input."""
    settings = config.acars_processor_settings
    hub = settings.acarshub
    if not (hub.acars.enabled or hub.vdlm2.enabled or settings.stdin):
        raise ConfigError("No ACARS or VDLM2 feed configured and stdin is disabled")

    engine = create_engine(database_url(settings.database))
    try:
        await init_db(engine)
        store = MessageStore(create_session_factory(engine))

        async with httpx.AsyncClient() as client:
            dictionary: Optional[frozenset[str]] = None
            if needs_dictionary(config):
                dictionary = await load_dictionary(settings.dictionary, client)

            steps = build_steps(config, store, dictionary, client)
            if not steps:
                logger.warning("No steps configured, messages will be stored and marked processed")

            processor = Processor(store, steps, hub.max_concurrent_requests, hub.queue_capacity, settings.links)
            await processor.start()

            loop = asyncio.get_running_loop()
            stop_event = asyncio.Event()

            def signal_handler():
                logger.info("Received shutdown signal")
                stop_event.set()

            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, signal_handler)
                except NotImplementedError:
                    # Windows doesn't support add_signal_handler
                    pass

            tasks: list[asyncio.Task] = []
            for kind, upstream in ((MessageKind.ACARS, hub.acars), (MessageKind.VDLM2, hub.vdlm2)):
                if upstream.enabled:
                    ingestor = TCPIngestor(kind, upstream.host, upstream.port, store, processor,
                                           recover_pending=settings.database.enabled)
                    tasks.append(asyncio.create_task(ingestor.run(), name=f"ingest-{kind.value}"))
                    logger.info(f"{kind.value} ingestor reading {upstream.host}:{upstream.port}")

            if settings.stdin:
                stdin = StdinIngestor(store, processor, sys.stdin)

                async def read_stdin():
                    await stdin.run()
                    await processor.join()
                    stop_event.set()

                tasks.append(asyncio.create_task(read_stdin(), name="ingest-stdin"))

            await stop_event.wait()

            for task in tasks:
                task.cancel()
            for task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            await processor.stop()
    finally:
        await close_db(engine)


@click.command()
@click.option("-c", "--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Configuration file (default: $ACARS_PROCESSOR_CONFIG_FILE or config.yaml)")
@click.option("-s", "--schema", is_flag=True,
              help=f"Write {SCHEMA_FILE} and {EXAMPLE_FILE}, exit 100 if either changed")
@click.version_option(__version__, prog_name="acars-processor")
def main(config_path, schema):
    """
    ACARS Processor - filter, annotate and forward ACARS and VDLM2 messages

    Reads messages from ACARSHub, runs them through the configured steps and
    sends the survivors to webhooks, Discord, New Relic or Mastodon.

    Examples:
      acars-processor -c config.yaml
      acars-processor -s
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.color_output)

    if schema:
        changed = generate(".")
        sys.exit(SCHEMA_CHANGED_EXIT_CODE if changed else 0)

    try:
        config = load_config(config_path or settings.config_file)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        sys.exit(1)

    processor_settings = config.acars_processor_settings
    if processor_settings.log_level is not None or processor_settings.color_output is not None:
        configure_logging(
            processor_settings.log_level or settings.log_level,
            settings.color_output if processor_settings.color_output is None else processor_settings.color_output,
        )

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    except (ConfigError, StoreError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
