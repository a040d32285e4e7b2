"""
AlterBot launcher: start the bot session and the control server.

    alterbot                      # bot + dashboard on $PORT (default 10000)
    alterbot --no-web             # bot only
    alterbot --config other.json --debug --json-logs
"""
import argparse
import logging
import signal
import sys
import threading

from src.session import (
    ControlFacade,
    LifecycleController,
    RuntimeConfigStore,
    SessionFactory,
    load_settings,
)
from src.utils.log import install_crash_handler, setup_logging
from src.utils.threads import get_thread_manager, shutdown_all_threads
from version import get_version

log = logging.getLogger("launcher")


def build(settings, backend=None, threads=None):
    """Wire store → factory → controller → facade from BotSettings."""
    store = RuntimeConfigStore(settings.client)
    controller = LifecycleController(
        SessionFactory(backend),
        store,
        policy=settings.reconnect_policy(),
        action=settings.action,
        threads=threads or get_thread_manager(),
    )
    return controller, ControlFacade(controller, store)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="alterbot", description="Keep a Minecraft bot connected.")
    parser.add_argument("--config", default=None, help="Path to config.json")
    parser.add_argument("--no-web", action="store_true", help="Do not start the control server")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Structured JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    return parser.parse_args(argv)


def _raise_interrupt(signum, _frame):
    raise KeyboardInterrupt(f"signal {signum}")


def main(argv=None):
    args = parse_args(argv)
    settings = load_settings(config_path=args.config)
    setup_logging(level="DEBUG" if args.debug else settings.log_level,
                  log_file=settings.log_file, structured=args.json_logs)
    install_crash_handler()
    signal.signal(signal.SIGTERM, _raise_interrupt)

    log.info("AlterBot %s starting (target %s:%s as %s)", get_version(),
             settings.client.host, settings.client.port, settings.client.username)
    controller, facade = build(settings)
    controller.start()

    try:
        if args.no_web:
            threading.Event().wait()
        else:
            from src.web import create_app, run_server
            app = create_app(facade, api_key=settings.dashboard.api_key)
            run_server(app, host=settings.dashboard.host, port=settings.dashboard.port)
    except KeyboardInterrupt:
        log.info("Shutting down...")
    finally:
        controller.shutdown()
        shutdown_all_threads(timeout=5)
    return 0


if __name__ == "__main__":
    sys.exit(main())
