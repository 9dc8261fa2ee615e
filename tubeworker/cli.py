"""`tubeworker JOBS_FILE [JOB,NAMES]`: load a jobs file and work its jobs forever."""

import argparse
import runpy
import sys

from tubeworker.broker.beanstalk import BeanstalkBroker
from tubeworker.config import beanstalk_url
from tubeworker.registry import JobRegistry
from tubeworker.utils.logging_config import configure_logging, get_logger
from tubeworker.worker import Worker

log = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tubeworker", description="Work jobs from a beanstalkd queue.")
    parser.add_argument("jobs_file", help="Python file defining a module-level `registry` (a JobRegistry)")
    parser.add_argument("jobs", nargs="?", help="Comma-separated job names to work; defaults to all registered jobs")
    parser.add_argument("--url", help="beanstalk:// URL; defaults to $BEANSTALK_URL, then beanstalk://localhost/")
    parser.add_argument("--plain", action="store_true", help="Plain log lines even on a terminal")
    return parser.parse_args(argv)


def load_registry(jobs_file: str) -> JobRegistry:
    namespace = runpy.run_path(jobs_file)
    registry = namespace.get("registry")

    if not isinstance(registry, JobRegistry):
        raise SystemExit(f"{jobs_file} must define `registry = JobRegistry()` at module level")
    return registry


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(rich_output=not args.plain and sys.stderr.isatty())

    registry = load_registry(args.jobs_file)
    job_names = [name for name in args.jobs.split(",") if name] if args.jobs else None

    url = beanstalk_url(args.url)
    broker = BeanstalkBroker.from_url(url)
    worker = Worker(registry, broker, url=url)
    log.debug("Starting worker %s against %s", worker.worker_id, url)

    try:
        worker.run_forever(job_names)
    except KeyboardInterrupt:
        log.info("Worker %s stopped", worker.worker_id)
    finally:
        broker.close()


if __name__ == "__main__":
    main()
