import logging
from rq import Worker
from tinyquiz.core.config import settings
from tinyquiz.core.logging import configure_logging
from tinyquiz.jobs.cleanup import schedule_cleanup
from tinyquiz.jobs.queue import queue, redis

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    configure_logging(settings)
    schedule_cleanup(queue, delay_seconds=0)
    logger.info("Cleanup sweep seeded, every %ss on queue %r", settings.CLEANUP_INTERVAL_SECONDS, settings.RQ_QUEUE)
    w = Worker([settings.RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
