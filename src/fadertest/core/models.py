"""
Fader tester models - pure data classes with no USB dependencies.

These are shared by the transport, the session registry and the fader
test orchestrator.
"""

from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Optional, Tuple

# =============================================================================
# Mixer enums (wire ids match the device's command encoding)
# =============================================================================


class ChannelName(Enum):
    """Logical audio channel that can sit on a fader."""
    MIC = 0
    LINE_IN = 1
    CONSOLE = 2
    SYSTEM = 3
    GAME = 4
    CHAT = 5
    SAMPLE = 6
    MUSIC = 7
    HEADPHONES = 8
    MIC_MONITOR = 9
    LINE_OUT = 10

    @property
    def id(self) -> int:
        return self.value

    def __str__(self) -> str:
        return _CHANNEL_LABELS[self]


_CHANNEL_LABELS = {
    ChannelName.MIC: "Mic",
    ChannelName.LINE_IN: "LineIn",
    ChannelName.CONSOLE: "Console",
    ChannelName.SYSTEM: "System",
    ChannelName.GAME: "Game",
    ChannelName.CHAT: "Chat",
    ChannelName.SAMPLE: "Sample",
    ChannelName.MUSIC: "Music",
    ChannelName.HEADPHONES: "Headphones",
    ChannelName.MIC_MONITOR: "MicMonitor",
    ChannelName.LINE_OUT: "LineOut",
}


class FaderName(Enum):
    """Physical fader slot, left to right."""
    A = 0
    B = 1
    C = 2
    D = 3

    @property
    def id(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.name


class ChannelState(Enum):
    """Mute state of a channel."""
    UNMUTED = 0
    MUTED = 1

    @property
    def id(self) -> int:
        return self.value


class DeviceType(Enum):
    """Hardware class, resolved from the USB product id."""
    FULL = "Full"
    MINI = "Mini"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Device identity and metadata
# =============================================================================


@dataclass(frozen=True)
class PhysicalDeviceId:
    """Where a device sits on the bus.

    Two enumerations of the same physical slot compare (and hash) equal,
    which is what lets the session registry reuse an open handle.
    """
    bus_number: int
    address: int
    identifier: Optional[str] = None

    def __str__(self) -> str:
        base = f"{self.bus_number:03d}:{self.address:03d}"
        return f"{base} ({self.identifier})" if self.identifier else base


@total_ordering
@dataclass(frozen=True)
class FirmwareVersion:
    """Firmware version: major.minor[.patch[.build]]."""
    major: int
    minor: int
    patch: Optional[int] = None
    build: Optional[int] = None

    def _key(self) -> Tuple[int, int, int, int]:
        # Missing trailing parts sort before any present value
        return (
            self.major,
            self.minor,
            -1 if self.patch is None else self.patch,
            -1 if self.build is None else self.build,
        )

    def __lt__(self, other: "FirmwareVersion") -> bool:
        if not isinstance(other, FirmwareVersion):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        if self.patch is not None:
            if self.build is not None:
                return f"{self.major}.{self.minor}.{self.patch}.{self.build}"
            return f"{self.major}.{self.minor}.{self.patch}"
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class DeviceDescriptor:
    """The subset of the USB device descriptor the tester needs."""
    vendor_id: int
    product_id: int


@dataclass(frozen=True)
class ButtonStates:
    """Snapshot of the device's control surface.

    ``volumes`` holds the four fader positions (A..D) on the raw 0-255
    scale; ``pressed`` is the button bitmask.
    """
    pressed: int
    volumes: Tuple[int, int, int, int]
    encoders: Tuple[int, int, int, int] = (0, 0, 0, 0)


@dataclass(frozen=True)
class DeviceRecord:
    """A device that answered descriptor, serial and firmware queries.

    Points at its session through ``device_id``; it does not own it.
    """
    device_type: DeviceType
    serial: str
    firmware: FirmwareVersion
    device_id: PhysicalDeviceId

    def __post_init__(self):
        if not self.serial:
            raise ValueError("DeviceRecord requires a non-empty serial")
