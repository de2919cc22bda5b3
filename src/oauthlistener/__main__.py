"""
=============================================================================
OAUTHLISTENER CLI ENTRY POINT
=============================================================================

Runs one redirect listener from the command line. Handy for scripting an
OAuth login and for trying a provider's redirect by hand.

=============================================================================
USAGE
=============================================================================

    # Listen on an OS-assigned port, print the captured URL
    python -m oauthlistener

    # Only accept the pre-registered redirect ports
    python -m oauthlistener --port 8765 --port 8766

    # Give up after two minutes
    python -m oauthlistener --timeout 120

    # Show a custom page in the browser
    python -m oauthlistener --response done.html

    # Stop a listener that is still waiting
    python -m oauthlistener --cancel 53682

The redirect URI is printed to stderr as soon as the port is bound; the
captured URL is the only thing written to stdout.

=============================================================================
"""

import argparse
import sys
import threading

from . import __version__
from .config import ListenerConfig
from .log import setup_logging
from .server import cancel, start_listener


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="oauth-listener",
        description="Capture an OAuth redirect on a loopback port",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m oauthlistener                      # OS-assigned port
  python -m oauthlistener --port 8765          # Fixed port
  python -m oauthlistener --timeout 120        # Give up after 2 minutes
  python -m oauthlistener --cancel 53682       # Stop a waiting listener
        """
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        action="append",
        dest="ports",
        help="Preferred port, may be repeated (default: OS-assigned)"
    )

    parser.add_argument(
        "--response", "-r",
        type=argparse.FileType("r", encoding="utf-8"),
        help="HTML file shown in the browser after the redirect"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Seconds to wait for the redirect before cancelling"
    )

    parser.add_argument(
        "--cancel",
        type=int,
        metavar="PORT",
        help="Cancel the listener on PORT and exit"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Connection log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def _stop(listener):
    """Cancel a listener that may have finished in the meantime."""
    try:
        listener.cancel()
    except OSError:
        pass  # Already gone
    listener.join(5.0)


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 when a URL was captured (or a cancel was sent), 1 otherwise.
    """
    args = build_parser().parse_args(argv)

    # Environment first, command line on top
    config = ListenerConfig.from_env()
    if args.ports:
        config.ports = args.ports
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    setup_logging(config.log_level)

    if args.cancel is not None:
        try:
            cancel(args.cancel, host=config.host)
        except OSError as e:
            print(f"Error: could not reach listener on port {args.cancel}: {e}", file=sys.stderr)
            return 1
        return 0

    response = None
    if args.response:
        with args.response:
            response = args.response.read()

    captured = []
    done = threading.Event()

    def on_redirect(url: str):
        captured.append(url)
        done.set()

    try:
        listener = start_listener(response, on_redirect, config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Waiting for redirect on {listener.redirect_uri}", file=sys.stderr)

    try:
        # The thread ends on cancellation too, so wait on it, not on `done`.
        if not listener.join(args.timeout):
            print("Timed out waiting for the redirect", file=sys.stderr)
            _stop(listener)
    except KeyboardInterrupt:
        _stop(listener)

    if not done.is_set():
        return 1

    print(captured[0])
    return 0


if __name__ == "__main__":
    sys.exit(main())
