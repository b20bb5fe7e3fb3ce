"""
Periodic maintenance: auto-submit timed-out attempts and purge expired sessions.

    smartedu-sweep --once
"""
import argparse
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from smartedu.container import ServiceContainer, build_container
from smartedu.core.config import get_settings
from smartedu.core.database import build_session_factory, create_engine_from_settings, init_db
from smartedu.core.exceptions import InternalError
from smartedu.core.logging import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    auto_submitted: int
    sessions_purged: int


def run_sweep(container: ServiceContainer) -> SweepReport:
    auto_submitted = container.attempts.auto_submit_expired()
    try:
        with container.session_factory() as db:
            purged = container.sessions.purge_expired(db)
            db.commit()
    except SQLAlchemyError as e:
        logger.exception("Session purge failed")
        raise InternalError("Session purge failed") from e
    report = SweepReport(auto_submitted=auto_submitted, sessions_purged=purged)
    logger.info(f"Sweep finished: {report.auto_submitted} auto-submitted, {report.sessions_purged} sessions purged")
    return report


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Auto-submit expired attempts and purge expired sessions")
    ap.add_argument("--once", action="store_true", help="run a single sweep and exit")
    ap.add_argument("--interval", type=int, default=None, help="seconds between sweeps (default SWEEP_INTERVAL_SECONDS)")
    args = ap.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    engine = create_engine_from_settings(settings)
    init_db(engine)
    container = build_container(settings, build_session_factory(engine))

    if args.once:
        run_sweep(container)
        return 0

    interval = args.interval or settings.SWEEP_INTERVAL_SECONDS
    logger.info(f"Sweep loop started, every {interval}s")
    while True:
        try:
            run_sweep(container)
        except InternalError as e:
            logger.error(f"Sweep failed, retrying next interval: {e.message}")
        time.sleep(interval)


if __name__ == "__main__":
    raise SystemExit(main())
