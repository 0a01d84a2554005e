import sys
import time
import signal
import logging
import argparse
from typing import Any, Dict, List, Optional

from .bridge import BridgeSession, run_batch
from .config import describe_config, load_config, sftp_configured, sheets_configured, validate_config
from .errors import SourceError
from .listener import CallListener
from .log_setup import setup_logging
from .resgrid_client import ResgridClient
from .sftp_delivery import Deliverer, FingerprintCache, SftpStore
from .sheets_writer import CALLS_HEADERS, TABLE_ERRORS, GoogleSheetTable

logger = logging.getLogger("resgrid_eso.cli")

STOP = False


def _signal_handler(sig, frame):
    global STOP
    logger.info("Shutdown requested.")
    STOP = True


# ----------------------------
# Session wiring
# ----------------------------
def build_session(cfg: Dict[str, Any], deliver: bool = True, work_dir: Optional[str] = None) -> BridgeSession:
    client = ResgridClient(cfg["resgrid"])

    deliverer = None
    if deliver and sftp_configured(cfg):
        deliverer = Deliverer.from_config(SftpStore.from_config(cfg["sftp"]), FingerprintCache(), cfg["delivery"])
    elif deliver:
        logger.warning("SFTP credentials not set, XML files will be written locally")

    table = None
    if deliver and sheets_configured(cfg):
        try:
            table = GoogleSheetTable.from_config(cfg["sheets"])
            table.ensure_headers(CALLS_HEADERS)
        except (ValueError, *TABLE_ERRORS) as e:
            logger.error(f"Google Sheets disabled: {e}")
            table = None

    return BridgeSession(
        client,
        deliverer=deliverer,
        table=table,
        mapping=cfg["mapping"],
        remote_dir=cfg["sftp"]["remote_dir"],
        file_naming=cfg["delivery"]["file_naming"],
        work_dir=work_dir or cfg["app"]["work_dir"],
    )


# ----------------------------
# Commands
# ----------------------------
def cmd_poll(cfg: Dict[str, Any], args) -> int:
    session = build_session(cfg)
    days = args.days if args.days is not None else int(cfg["app"]["days_back"])
    interval = int(cfg["app"]["poll_interval"])

    summary = run_batch(session, days)
    if not args.watch:
        return 0 if summary.failed == 0 else 1

    logger.info(f"Polling every {interval}s for new calls")
    while not STOP:
        time.sleep(interval)
        if STOP:
            break
        run_batch(session, days)
    logger.info("Polling stopped gracefully.")
    return 0


def cmd_listen(cfg: Dict[str, Any], args) -> int:
    session = build_session(cfg)
    listener = CallListener(
        cfg["resgrid"]["events_url"],
        session.handle_call_added,
        token_factory=session.source.tokens.get_token,
    )
    listener.start()
    try:
        while not STOP:
            time.sleep(1)
    finally:
        listener.stop()
    return 0


def cmd_export(cfg: Dict[str, Any], args) -> int:
    session = build_session(cfg, deliver=False, work_dir=args.out)
    try:
        incident = session.source.fetch_call(args.call_id)
    except SourceError as e:
        logger.error(f"Failed to fetch call {args.call_id}: {e}")
        return 1
    outcome = session.process_incident(incident)
    if not outcome.success:
        logger.error(f"Export of call {args.call_id} failed: {outcome.error}")
        return 1
    print("Wrote:", outcome.local_path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="resgrid-eso", description="Resgrid to ESO incident bridge")
    parser.add_argument("--config", dest="config", default=None, help="JSON config file")
    sub = parser.add_subparsers(dest="command", required=True)

    poll = sub.add_parser("poll", help="process recent calls")
    poll.add_argument("--days", dest="days", type=int, default=None)
    poll.add_argument("--watch", dest="watch", action="store_true")

    sub.add_parser("listen", help="process calls as CallAdded events arrive")

    export = sub.add_parser("export", help="render one call's XML locally")
    export.add_argument("--call-id", dest="call_id", required=True)
    export.add_argument("--out", dest="out", default="out")
    return parser


COMMANDS = {"poll": cmd_poll, "listen": cmd_listen, "export": cmd_export}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg["app"]["log_dir"], cfg["app"]["debug"])
    describe_config(cfg)

    missing = validate_config(cfg)
    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        return 2

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    return COMMANDS[args.command](cfg, args)


if __name__ == "__main__":
    sys.exit(main())
