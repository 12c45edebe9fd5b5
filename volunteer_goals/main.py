import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import uvicorn
from dotenv import find_dotenv, load_dotenv
from loguru import logger

from volunteer_goals.logging_setup import setup_logging


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        candidate = Path(__file__).resolve().parents[1] / ".env"
        if candidate.exists():
            env_path = str(candidate)
    if env_path:
        logger.info("Loaded .env from {}", env_path)
        load_dotenv(env_path, override=True)
    else:
        logger.warning("No .env found")


def _ensure_data_dir() -> None:
    from volunteer_goals.config import settings

    db_dir = Path(settings.sqlite_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)


def _run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    config_path = Path(__file__).resolve().parents[1] / "alembic.ini"
    alembic_cfg = Config(str(config_path))
    alembic_cfg.set_main_option("script_location", str(Path(__file__).resolve().parent / "db" / "migrations"))
    command.upgrade(alembic_cfg, "head")


def _parse_as_of(value: str | None) -> datetime | None:
    if not value:
        return None
    from volunteer_goals.config import settings

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(settings.timezone))
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="volunteer-goals")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=("serve", "weekly", "overdue", "migrate"),
        help="serve the API (default), run one batch job, or only apply migrations",
    )
    parser.add_argument("--as-of", dest="as_of", default=None, help="ISO timestamp to process as")
    return parser


def _run_once(command: str, as_of: datetime | None) -> int:
    from volunteer_goals.core.errors import JobAlreadyRunningError
    from volunteer_goals.jobs.runner import run_overdue_job, run_weekly_job

    runner = run_weekly_job if command == "weekly" else run_overdue_job
    try:
        result = runner(as_of)
    except JobAlreadyRunningError as exc:
        logger.error("{} (owner={})", exc, exc.owner)
        return 2
    print(json.dumps(asdict(result), default=str, indent=2))
    return 1 if result.failed_goal_ids else 0


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    _load_env()
    setup_logging()

    from volunteer_goals.config import settings

    _ensure_data_dir()
    _run_migrations()
    if args.command == "migrate":
        return
    if args.command in {"weekly", "overdue"}:
        sys.exit(_run_once(args.command, _parse_as_of(args.as_of)))

    uvicorn.run("volunteer_goals.api.app:app", host=settings.api_host, port=int(settings.api_port), reload=False)


if __name__ == "__main__":
    main()
