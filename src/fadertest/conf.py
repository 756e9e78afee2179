"""Static test configuration for the fader tester.

The calibration table and test groups are fixed; the only runtime knob
is the settle duration, which slow rigs can stretch through the
environment.

Usage:
    from fadertest.conf import CALIBRATION_VOLUMES, TEST_GROUPS, get_settle_seconds

    CALIBRATION_VOLUMES[ChannelName.MIC]   # 10
    TEST_GROUPS[0]                         # (Mic, LineIn, Console, System)
    get_settle_seconds()                   # 0.3 unless FADERTEST_SETTLE_MS is set
"""
from __future__ import annotations

import logging
import os

from .core.models import ChannelName

log = logging.getLogger(__name__)

# =========================================================================
# Volume scale and tolerances (raw 0-255 fader scale)
# =========================================================================

VOLUME_MIN = 0
VOLUME_MAX = 255

TARGET_TOLERANCE = 5    # ~2% of full travel
EXACT_TOLERANCE = 0

# =========================================================================
# Calibration table
# =========================================================================
# 0 and 255 are never used here so the explicit top/bottom checks stay
# distinguishable from the resting targets.

CALIBRATION_VOLUMES: dict[ChannelName, int] = {
    ChannelName.MIC: 10,
    ChannelName.LINE_IN: 30,
    ChannelName.CONSOLE: 50,
    ChannelName.SYSTEM: 70,
    ChannelName.GAME: 90,
    ChannelName.CHAT: 110,
    ChannelName.SAMPLE: 130,
    ChannelName.MUSIC: 150,
    ChannelName.HEADPHONES: 170,
    ChannelName.MIC_MONITOR: 190,
    ChannelName.LINE_OUT: 210,
}

# =========================================================================
# Test groups: channels assigned to faders A, B, C, D for one pass
# =========================================================================

TEST_GROUPS: tuple[tuple[ChannelName, ChannelName, ChannelName, ChannelName], ...] = (
    (ChannelName.MIC, ChannelName.LINE_IN, ChannelName.CONSOLE, ChannelName.SYSTEM),
    (ChannelName.GAME, ChannelName.CHAT, ChannelName.SAMPLE, ChannelName.MUSIC),
    (ChannelName.HEADPHONES, ChannelName.MIC_MONITOR, ChannelName.LINE_OUT, ChannelName.MIC),
)

# =========================================================================
# Settle duration
# =========================================================================

SETTLE_MS = 300
SETTLE_ENV = 'FADERTEST_SETTLE_MS'


def get_settle_seconds() -> float:
    """Settle wait in seconds, honouring FADERTEST_SETTLE_MS when valid."""
    raw = os.environ.get(SETTLE_ENV)
    if raw is None or raw == '':
        return SETTLE_MS / 1000
    try:
        value = int(raw)
    except ValueError:
        log.warning("Ignoring %s=%r: not an integer", SETTLE_ENV, raw)
        return SETTLE_MS / 1000
    if value < 0:
        log.warning("Ignoring %s=%r: must not be negative", SETTLE_ENV, raw)
        return SETTLE_MS / 1000
    return value / 1000
