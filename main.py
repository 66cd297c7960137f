"""
Billing cron - process entry point.

Commands:
    serve               Run the HTTP API (scheduler starts with it when enabled)
    worker              Run the scheduler in the foreground, without the API
    run <job_type>      Run one job now and print its JobRun
    status              Print the per-job status view
"""

import argparse
import json
import signal
import sys
import threading

from billing_cron.container import CronService
from billing_cron.infra.config import load_settings
from billing_cron.infra.logging_config import setup_logging
from billing_cron.scheduler.entities import JobRunStatus, JobType
from billing_cron.scheduler.errors import BillingCronError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recurring maintenance jobs for the billing platform",
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("worker", help="Run the scheduler in the foreground")

    run = sub.add_parser("run", help="Run one job now")
    run.add_argument("job_type", choices=[t.value for t in JobType])

    sub.add_parser("status", help="Print job status")

    return parser.parse_args(argv)


def run_worker(service: CronService, logger) -> None:
    """Tick loop in the foreground until SIGINT / SIGTERM."""
    stop_requested = threading.Event()

    def signal_handler(signum, frame):
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"{signal_name} received - stopping after in-flight runs")
        stop_requested.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service.start()
    try:
        while not stop_requested.wait(1.0):
            pass
    finally:
        service.stop()


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except BillingCronError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logger = setup_logging(settings.log_level, settings.log_dir)

    if args.command == "serve":
        import uvicorn
        from billing_cron.api.main import create_app

        app = create_app(CronService.create(settings))
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    service = CronService.create(settings)

    if args.command == "worker":
        run_worker(service, logger)
        return 0

    if args.command == "run":
        try:
            run = service.orchestrator.run(args.job_type)
        except BillingCronError as e:
            logger.error(str(e))
            return 1
        print(json.dumps(run.to_dict(), indent=2, ensure_ascii=False))
        return 0 if run.status == JobRunStatus.SUCCESS else 1

    if args.command == "status":
        print(json.dumps(service.orchestrator.status(), indent=2, ensure_ascii=False))
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
