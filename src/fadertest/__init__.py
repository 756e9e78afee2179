"""
GoXLR Fader Tester

Bench tool for firmware/hardware builds of the GoXLR mixer family:
finds attached mixers over USB, puts channels on the four motorised
faders, drives their volumes and checks the reported fader positions
track the commanded values.

Usage:
    # Command line
    goxlr-fadertest           # Run the full fader test
    goxlr-fadertest --list    # List detected devices

    # As a library
    from fadertest import ConsoleReporter, FaderTester, SessionRegistry, apply_calibration
    registry = SessionRegistry()
    device = registry.discover()[0]
    apply_calibration(registry, device)
    FaderTester(registry, device, ConsoleReporter()).run()
"""

from fadertest.__version__ import __version__
from fadertest.core.models import DeviceRecord, DeviceType, FirmwareVersion, PhysicalDeviceId
from fadertest.fader_test import FaderTester, apply_calibration, compare_volume
from fadertest.reporter import ConsoleReporter
from fadertest.session_registry import SessionRegistry

__all__ = [
    # Version
    "__version__",
    # Models
    "DeviceRecord",
    "DeviceType",
    "FirmwareVersion",
    "PhysicalDeviceId",
    # Core
    "SessionRegistry",
    "FaderTester",
    "apply_calibration",
    "compare_volume",
    "ConsoleReporter",
]
