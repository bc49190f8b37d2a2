"""
Command line entry point
"""

import argparse
import logging
import signal
import sys
from typing import Callable, Optional, Sequence

from . import __version__
from .config import AppSettings, ConfigLoader, ReportFormat
from .console import Console
from .controller import ScanController
from .errors import ConfigurationError, SystemicProbeFailure
from .models import ScanState
from .probe import check_ping_available
from .reporter import ReportGenerator, ResultWriter
from .utils import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Command line parser"""
    parser = argparse.ArgumentParser(
        prog="ping-sweep",
        description="Check reachability of every host in a /24 network with parallel pings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ping-sweep 192.168.1 30 2 1    # 192.168.1.x, 30 threads, 2 packets, 1s timeout
  ping-sweep -s                  # defaults, sorted result files
  ping-sweep -q 10.0.0           # quiet mode
        """
    )

    parser.add_argument('prefix', nargs='?', help='Network prefix, e.g. 192.168.1 (default: 156.238.236)')
    parser.add_argument('threads', nargs='?', type=int, help='Parallel probes, 1-200 (default: 50)')
    parser.add_argument('count', nargs='?', type=int, help='Packets per host, 1-20 (default: 3)')
    parser.add_argument('timeout', nargs='?', type=float, help='Seconds per packet, up to 10 (default: 2)')

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-q', '--quiet', action='store_true', default=None,
                        help='Only print the final summary')
    parser.add_argument('-s', '--sort', dest='sort_results', action='store_true', default=None,
                        help='Sort the result files numerically')
    parser.add_argument('-c', '--config', help='Settings file (YAML or JSON)')
    parser.add_argument('--ok-file', help='Reachable hosts file (default: ./ping_ok.txt)')
    parser.add_argument('--false-file', help='Unreachable hosts file (default: ./ping_false.txt)')
    parser.add_argument('--report', dest='report_file', help='Write a summary report to this file')
    parser.add_argument('--report-format', choices=[f.value for f in ReportFormat],
                        help='Summary report format (default: text)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (default: WARNING)')
    parser.add_argument('--log-file', help='Also write log records to this file')

    return parser


def build_settings(args: argparse.Namespace) -> AppSettings:
    """Settings file values overridden by command line arguments"""
    settings = ConfigLoader.load(args.config)

    overrides = {
        'prefix': args.prefix,
        'concurrency_limit': args.threads,
        'probe_count': args.count,
        'probe_timeout': args.timeout,
        'quiet': args.quiet,
        'sort_results': args.sort_results,
        'ok_file': args.ok_file,
        'false_file': args.false_file,
        'report_file': args.report_file,
        'log_level': args.log_level,
        'log_file': args.log_file,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)

    if args.report_format:
        settings.report_format = ReportFormat(args.report_format)

    settings.validate()
    return settings


def install_signal_handlers(controller: ScanController, console: Console) -> Callable[[], None]:
    """
    Route SIGINT/SIGTERM to controller.cancel()

    A second signal while cancelling raises KeyboardInterrupt.

    Returns:
        Function restoring the previous handlers
    """
    def handler(signum, frame):
        session = controller.session
        if session is not None and session.is_cancelled:
            raise KeyboardInterrupt
        console.interrupted()
        controller.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)

    def restore():
        for signum, old in previous.items():
            signal.signal(signum, old)

    return restore


def run(settings: AppSettings, controller: Optional[ScanController] = None,
        console: Optional[Console] = None) -> int:
    """
    Run a scan and persist its results

    Returns:
        Exit status
    """
    config = settings.scan_config()
    console = console or Console(quiet=settings.quiet)
    controller = controller or ScanController()
    controller.on_outcome = console.outcome

    writer = ResultWriter.from_settings(settings)
    writer.reset()

    console.scan_started(config, settings.ok_file, settings.false_file)

    status = EXIT_OK
    restore = install_signal_handlers(controller, console)
    try:
        controller.start(config)
    except SystemicProbeFailure as e:
        console.error(str(e))
        status = EXIT_FAILURE
    except KeyboardInterrupt:
        status = EXIT_FAILURE
    finally:
        restore()

    session = controller.session
    summary = session.summary()
    if session.state is not ScanState.COMPLETED:
        status = EXIT_FAILURE

    ok_path, false_path = writer.write(session.sink.snapshot(), sort=settings.sort_results)

    if settings.report_file:
        reporter = ReportGenerator(settings.report_format)
        reporter.save_report(reporter.generate(summary, session.sink.snapshot()), settings.report_file)

    console.summary(summary, ok_path, false_path)
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level, settings.log_file)

    if not check_ping_available():
        print("error: the ping command is not available", file=sys.stderr)
        return EXIT_FAILURE

    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
