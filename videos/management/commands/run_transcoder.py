import logging
import signal
import threading

from django.core.management.base import BaseCommand

from videos import factories

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Consume transcode jobs from the queue, one at a time, until SIGINT/SIGTERM."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Process at most one message, then exit.")

    def handle(self, *args, **options):
        stop = threading.Event()

        def _handler(signum, frame):
            logger.info("received signal %s, finishing the in-flight job", signum)
            stop.set()

        previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}

        factories.build_source_store().ensure_bucket()
        consumer = factories.build_consumer()
        try:
            handled = consumer.run(stop, max_jobs=1 if options["once"] else None)
        finally:
            consumer.queue.close()
            for sig, old in previous.items():
                signal.signal(sig, old)
        self.stdout.write(f"transcoder stopped after {handled} message(s)")
