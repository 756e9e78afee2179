#!/usr/bin/env python3
"""
GoXLR Fader Tester - Command Line Interface

Entry point for the goxlr-fadertest package. With no arguments it runs
the whole bench test: pre-flight -> discovery -> first Full device ->
calibration -> three fader groups.
"""

import argparse
import logging
import sys

from .__version__ import __version__

# Exit codes, one per failure class
EXIT_OK = 0
EXIT_CHECKS_FAILED = 1
EXIT_CONFLICT = 2
EXIT_NO_DEVICES = 3
EXIT_UNSUPPORTED_DEVICE = 4
EXIT_TRANSPORT_ERROR = 5
EXIT_INTERRUPTED = 130


def _setup_logging(verbose: int) -> None:
    """Configure logging from the -v count (filter out noisy pyusb)."""
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
        logging.getLogger('usb').setLevel(logging.WARNING)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='[%(levelname)s] %(message)s')


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="goxlr-fadertest",
        description="Bench test for GoXLR motorised faders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    goxlr-fadertest           Run the full fader test on the first Full device
    goxlr-fadertest --list    List detected devices and exit
    goxlr-fadertest -vv       Run with USB debug logging

Exit codes:
    0 all checks passed        1 checks failed
    2 conflicting software     3 no devices detected
    4 no Full-class device     5 transport/session error
        """
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )
    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="List detected devices and exit"
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return run(list_only=args.list)
    except KeyboardInterrupt:
        print("\nTest interrupted.")
        return EXIT_INTERRUPTED


def run(list_only=False, reporter=None, registry=None):
    """Pre-flight, discovery, device selection and the fader plan.

    Returns the process exit code.
    """
    from . import preflight
    from .core.models import DeviceType
    from .errors import ConflictError, SessionNotFoundError, TransportError
    from .fader_test import FaderTester, apply_calibration
    from .reporter import ConsoleReporter
    from .session_registry import SessionRegistry

    reporter = reporter or ConsoleReporter()
    reporter.info(f"GoXLR Fader Tester {__version__}")

    try:
        preflight.check()
    except ConflictError as e:
        reporter.error(str(e))
        return EXIT_CONFLICT

    reporter.info("Locating GoXLR Devices..")
    registry = registry or SessionRegistry()
    try:
        devices = registry.discover()
    except (ImportError, TransportError) as e:
        reporter.error(str(e))
        return EXIT_TRANSPORT_ERROR

    if not devices:
        reporter.error("No GoXLR Devices Detected")
        return EXIT_NO_DEVICES

    reporter.info("Found Devices:")
    for i, dev in enumerate(devices, 1):
        reporter.device(i, dev)

    if list_only:
        return EXIT_OK

    full = [d for d in devices if d.device_type is DeviceType.FULL]
    if not full:
        reporter.error("This tool only works on Full GoXLR Devices")
        return EXIT_UNSUPPORTED_DEVICE
    if len(full) > 1:
        reporter.warn("More than one Full Device found, using the first")
    for skipped in devices:
        if skipped.device_type is not DeviceType.FULL:
            reporter.info(f"Skipping {skipped.device_type} device {skipped.serial}")

    device = full[0]
    reporter.info(f"Testing {device.device_type} device {device.serial} (firmware {device.firmware})")

    try:
        apply_calibration(registry, device)
        report = FaderTester(registry, device, reporter).run()
    except (TransportError, SessionNotFoundError) as e:
        reporter.error(f"Run aborted: {e}")
        return EXIT_TRANSPORT_ERROR

    reporter.summary()
    return EXIT_OK if report.passed else EXIT_CHECKS_FAILED


if __name__ == "__main__":
    sys.exit(main())
