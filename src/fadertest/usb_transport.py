#!/usr/bin/env python3
"""
USB command layer for GoXLR mixers (Full and Mini).

The mixer speaks a vendor control-transfer protocol on interface 0:

  • A request is a 16-byte header + body written with vendor OUT request 2.
    Header: u32 LE command id, u16 LE body length, u16 LE command index,
    8 reserved zero bytes.
  • The response is read back with vendor IN request 3 (up to 1040 bytes)
    and carries the same header layout; the command index must echo the
    request's.
  • Device-initiated events (button presses, fader moves) arrive on the
    interrupt endpoint and are only consumed by the optional poll thread.

The ``DeviceHandle`` ABC abstracts the command set so that:
  • Tests can inject a fake handle (no real hardware needed).
  • ``PyUsbDeviceHandle`` provides real USB via pyusb (libusb backend).

Linux dependencies:
  • pyusb: ``pip install pyusb`` (needs libusb1 — ``apt install libusb-1.0-0``)
"""

import errno
import logging
import struct
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .core.models import (
    ButtonStates,
    ChannelName,
    ChannelState,
    DeviceDescriptor,
    FaderName,
    FirmwareVersion,
    PhysicalDeviceId,
)
from .errors import TransportError

# Optional USB backend: graceful import
try:
    import usb.core
    import usb.util
    PYUSB_AVAILABLE = True
except ImportError:
    PYUSB_AVAILABLE = False

log = logging.getLogger(__name__)


# =========================================================================
# Constants
# =========================================================================

VID_GOXLR = 0x1220
PID_GOXLR_FULL = 0x8FE0
PID_GOXLR_MINI = 0x8FE4

# bmRequestType: vendor request addressed to the interface
REQUEST_TYPE_VENDOR_OUT = 0x41
REQUEST_TYPE_VENDOR_IN = 0xC1

REQUEST_WRITE_COMMAND = 2
REQUEST_READ_RESPONSE = 3

HEADER_SIZE = 16
RESPONSE_BUFFER_SIZE = 1040
INTERRUPT_ENDPOINT = 0x81
INTERRUPT_PACKET_SIZE = 6

USB_CONFIGURATION = 1
USB_INTERFACE = 0

DEFAULT_TIMEOUT_MS = 1000
POLL_TIMEOUT_MS = 100

# Delays
DELAY_RESPONSE_S = 0.003      # device needs a moment before the response is ready
RESPONSE_READY_ATTEMPTS = 20
STARTUP_PAUSE_S = 1.5         # power-on fader animation

COMMAND_INDEX_WRAP = 0xFFFF


# =========================================================================
# Command ids
# =========================================================================

class Command:
    """Command id encoding: category << 12 | sub id."""
    RESET_COMMAND_INDEX = 0
    SYSTEM_INFO = 1 << 12
    SET_CHANNEL_STATE = 2 << 12
    SET_CHANNEL_VOLUME = 3 << 12
    SET_FADER = 6 << 12
    GET_BUTTON_STATES = 0x800 << 12
    GET_HARDWARE_INFO = 0x804 << 12

    # Sub ids
    SYSINFO_FIRMWARE_VERSION = 2
    HWINFO_SERIAL_NUMBER = 3

    @classmethod
    def firmware_version(cls) -> int:
        return cls.SYSTEM_INFO | cls.SYSINFO_FIRMWARE_VERSION

    @classmethod
    def serial_number(cls) -> int:
        return cls.GET_HARDWARE_INFO | cls.HWINFO_SERIAL_NUMBER

    @classmethod
    def channel_state(cls, channel: ChannelName) -> int:
        return cls.SET_CHANNEL_STATE | channel.id

    @classmethod
    def channel_volume(cls, channel: ChannelName) -> int:
        return cls.SET_CHANNEL_VOLUME | channel.id

    @classmethod
    def fader(cls, fader: FaderName) -> int:
        return cls.SET_FADER | fader.id


# =========================================================================
# Packet helpers
# =========================================================================

def build_request(command_id: int, body: bytes, command_index: int) -> bytes:
    """Build a command packet: 16-byte header followed by the body."""
    header = struct.pack('<IHH', command_id, len(body), command_index)
    return header + b'\x00' * (HEADER_SIZE - len(header)) + bytes(body)


def parse_response(raw: bytes, expected_index: int) -> bytes:
    """Validate a response header and return its payload.

    Raises:
        TransportError: On a short packet, truncated payload, or a command
            index that does not echo the request.
    """
    if len(raw) < HEADER_SIZE:
        raise TransportError(f"Response too short ({len(raw)} bytes)")
    _, length, index = struct.unpack_from('<IHH', raw)
    if index != expected_index:
        raise TransportError(
            f"Response index mismatch (sent {expected_index}, got {index})"
        )
    payload = raw[HEADER_SIZE:HEADER_SIZE + length]
    if len(payload) < length:
        raise TransportError(
            f"Response truncated (expected {length} bytes, got {len(payload)})"
        )
    return bytes(payload)


def _nul_terminated(data: bytes) -> str:
    return data.split(b'\x00', 1)[0].decode('ascii', errors='replace').strip()


def parse_serial(payload: bytes) -> Tuple[str, str]:
    """Split the hardware-info payload into (serial, manufactured_date).

    The serial is NUL-terminated ASCII in the first 24 bytes; the
    manufacture date follows, also NUL-terminated.
    """
    if len(payload) < 24:
        raise TransportError(f"Serial payload too short ({len(payload)} bytes)")
    return _nul_terminated(payload[:24]), _nul_terminated(payload[24:])


def parse_firmware(payload: bytes) -> FirmwareVersion:
    """Decode the packed firmware word and build number.

    Layout::

        [4:8]  u32 packed: major = v >> 12, minor = (v >> 8) & 0xF, patch = v & 0xFF
        [8:12] u32 build
    """
    if len(payload) < 12:
        raise TransportError(f"Firmware payload too short ({len(payload)} bytes)")
    packed, build = struct.unpack_from('<II', payload, 4)
    return FirmwareVersion(packed >> 12, (packed >> 8) & 0xF, packed & 0xFF, build)


def parse_button_states(payload: bytes) -> ButtonStates:
    """Decode pressed bitmask [0:4], fader volumes [4:8] and encoders [8:12]."""
    if len(payload) < 12:
        raise TransportError(f"Button state payload too short ({len(payload)} bytes)")
    pressed = struct.unpack_from('<I', payload)[0]
    return ButtonStates(
        pressed=pressed,
        volumes=tuple(payload[4:8]),
        encoders=tuple(payload[8:12]),
    )


# =========================================================================
# Device enumeration entry
# =========================================================================

@dataclass
class UsbDeviceRef:
    """One connected device as seen by the USB enumeration."""
    bus_number: int
    address: int
    vendor_id: int
    product_id: int
    identifier: Optional[str] = None
    device: Any = None  # usb.core.Device for the pyusb backend

    @property
    def device_id(self) -> PhysicalDeviceId:
        return PhysicalDeviceId(self.bus_number, self.address, self.identifier)


# =========================================================================
# Abstract device handle
# =========================================================================

class DeviceHandle(ABC):
    """Command channel to one mixer — mockable for testing."""

    @abstractmethod
    def stop_polling(self) -> None:
        """Stop the background event poll; all reads become explicit."""

    @abstractmethod
    def get_descriptor(self) -> DeviceDescriptor:
        """USB vendor/product ids."""

    @abstractmethod
    def get_serial_number(self) -> Tuple[str, str]:
        """(serial, manufactured_date)."""

    @abstractmethod
    def get_firmware_version(self) -> FirmwareVersion:
        """Running firmware version."""

    @abstractmethod
    def get_button_states(self) -> ButtonStates:
        """Buttons, fader volumes and encoders."""

    @abstractmethod
    def set_volume(self, channel: ChannelName, volume: int) -> None:
        """Set a channel's volume (0-255); moves its fader if assigned."""

    @abstractmethod
    def set_fader(self, fader: FaderName, channel: ChannelName) -> None:
        """Assign a channel to a fader."""

    @abstractmethod
    def set_channel_state(self, channel: ChannelName, state: ChannelState) -> None:
        """Mute or unmute a channel."""

    @abstractmethod
    def close(self) -> None:
        """Release the device."""


# =========================================================================
# Real handle: PyUSB (libusb backend)
# =========================================================================

class PyUsbDeviceHandle(DeviceHandle):
    """Real mixer handle using pyusb control transfers.

    Open sequence:
    1. Detach kernel driver from interface 0 (Linux)
    2. SetConfiguration(1), ClaimInterface(0)
    3. ResetCommandIndex
    4. Optional pause for the power-on fader animation

    Not thread-safe on its own; callers serialise access (the session
    registry holds a lock per handle).

    Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
    """

    def __init__(
        self,
        ref: UsbDeviceRef,
        on_disconnect: Optional[Callable[[PhysicalDeviceId], None]] = None,
        on_event: Optional[Callable[[PhysicalDeviceId], None]] = None,
    ):
        if not PYUSB_AVAILABLE:
            raise ImportError(
                "pyusb is not installed. Install with: pip install pyusb\n"
                "Also need libusb: apt install libusb-1.0-0 (Debian/Ubuntu) "
                "or dnf install libusb1 (Fedora)"
            )
        self._ref = ref
        self._device = ref.device
        self._on_disconnect = on_disconnect
        self._on_event = on_event
        self._command_index = 0
        self._is_open = False
        self._poll_thread: Optional[threading.Thread] = None
        self._poll_stop = threading.Event()

    @property
    def device_id(self) -> PhysicalDeviceId:
        return self._ref.device_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    # -- Lifecycle -------------------------------------------------------

    def open(self, skip_pause: bool = False) -> None:
        """Claim the interface and reset the command counter."""
        if self._device is None:
            raise TransportError(f"No USB device for {self.device_id}")
        try:
            try:
                if self._device.is_kernel_driver_active(USB_INTERFACE):
                    self._device.detach_kernel_driver(USB_INTERFACE)
            except NotImplementedError:
                pass  # not supported on this platform's backend
            self._device.set_configuration(USB_CONFIGURATION)
            usb.util.claim_interface(self._device, USB_INTERFACE)
        except usb.core.USBError as e:
            raise TransportError(f"Unable to open {self.device_id}: {e}") from e
        self._is_open = True

        try:
            self._request(Command.RESET_COMMAND_INDEX)
        except TransportError:
            self.close()
            raise
        if not skip_pause:
            time.sleep(STARTUP_PAUSE_S)

    def close(self) -> None:
        self.stop_polling()
        if self._device is not None:
            try:
                usb.util.release_interface(self._device, USB_INTERFACE)
            except usb.core.USBError:
                pass
            usb.util.dispose_resources(self._device)
        self._is_open = False

    # -- Event polling ---------------------------------------------------

    def start_polling(self) -> None:
        """Read the interrupt endpoint on a daemon thread."""
        if self._poll_thread is not None:
            return
        self._poll_stop.clear()
        self._poll_thread = threading.Thread(
            target=self._poll_loop,
            name=f"goxlr-poll-{self._ref.bus_number}-{self._ref.address}",
            daemon=True,
        )
        self._poll_thread.start()

    def stop_polling(self) -> None:
        thread = self._poll_thread
        if thread is None:
            return
        self._poll_stop.set()
        thread.join(timeout=POLL_TIMEOUT_MS * 3 / 1000)
        self._poll_thread = None

    def _poll_loop(self) -> None:
        while not self._poll_stop.is_set():
            try:
                data = self._device.read(
                    INTERRUPT_ENDPOINT, INTERRUPT_PACKET_SIZE, timeout=POLL_TIMEOUT_MS
                )
            except usb.core.USBTimeoutError:
                continue
            except usb.core.USBError as e:
                if e.errno == errno.ENODEV:
                    log.info("Device %s disconnected", self.device_id)
                    if self._on_disconnect:
                        self._on_disconnect(self.device_id)
                    return
                log.debug("Interrupt read failed on %s: %s", self.device_id, e)
                self._poll_stop.wait(POLL_TIMEOUT_MS / 1000)
                continue
            if data and self._on_event:
                self._on_event(self.device_id)

    # -- Command transport -------------------------------------------------

    def _next_index(self, command_id: int) -> int:
        if command_id == Command.RESET_COMMAND_INDEX:
            self._command_index = 0
        index = self._command_index
        self._command_index = (self._command_index + 1) % (COMMAND_INDEX_WRAP + 1)
        return index

    def _request(self, command_id: int, body: bytes = b'') -> bytes:
        """Write one command and read its response payload.

        Raises:
            TransportError: If the transfer fails or the response is malformed.
        """
        if not self._is_open:
            raise TransportError(f"Handle for {self.device_id} is not open")

        index = self._next_index(command_id)
        packet = build_request(command_id, body, index)
        log.debug("%s -> cmd=0x%08x idx=%d body=%s",
                  self.device_id, command_id, index, bytes(body).hex())
        try:
            self._device.ctrl_transfer(
                REQUEST_TYPE_VENDOR_OUT, REQUEST_WRITE_COMMAND, 0, 0,
                packet, timeout=DEFAULT_TIMEOUT_MS,
            )
            raw = b''
            for _ in range(RESPONSE_READY_ATTEMPTS):
                time.sleep(DELAY_RESPONSE_S)
                raw = bytes(self._device.ctrl_transfer(
                    REQUEST_TYPE_VENDOR_IN, REQUEST_READ_RESPONSE, 0, 0,
                    RESPONSE_BUFFER_SIZE, timeout=DEFAULT_TIMEOUT_MS,
                ))
                if len(raw) >= HEADER_SIZE:
                    break
        except usb.core.USBError as e:
            raise TransportError(
                f"USB transfer failed on {self.device_id} (cmd=0x{command_id:08x}): {e}"
            ) from e

        payload = parse_response(raw, index)
        log.debug("%s <- idx=%d payload=%s", self.device_id, index, payload.hex())
        return payload

    # -- Queries -----------------------------------------------------------

    def get_descriptor(self) -> DeviceDescriptor:
        try:
            return DeviceDescriptor(self._device.idVendor, self._device.idProduct)
        except usb.core.USBError as e:
            raise TransportError(f"Descriptor read failed on {self.device_id}: {e}") from e

    def get_serial_number(self) -> Tuple[str, str]:
        return parse_serial(self._request(Command.serial_number()))

    def get_firmware_version(self) -> FirmwareVersion:
        return parse_firmware(self._request(Command.firmware_version()))

    def get_button_states(self) -> ButtonStates:
        return parse_button_states(self._request(Command.GET_BUTTON_STATES))

    # -- Commands ----------------------------------------------------------

    def set_volume(self, channel: ChannelName, volume: int) -> None:
        if not 0 <= volume <= 255:
            raise ValueError(f"Volume out of range: {volume}")
        self._request(Command.channel_volume(channel), bytes([volume]))

    def set_fader(self, fader: FaderName, channel: ChannelName) -> None:
        self._request(Command.fader(fader), bytes([channel.id, 0, 0, 0]))

    def set_channel_state(self, channel: ChannelName, state: ChannelState) -> None:
        self._request(Command.channel_state(channel), bytes([state.id]))

    def __repr__(self) -> str:
        return (
            f"PyUsbDeviceHandle(bus={self._ref.bus_number}, "
            f"address={self._ref.address}, pid=0x{self._ref.product_id:04x})"
        )


# =========================================================================
# Backend: enumeration + open
# =========================================================================

def _port_path(device) -> Optional[str]:
    """'bus-port.port' path, or None when the backend can't report it."""
    try:
        ports = device.port_numbers
    except (NotImplementedError, usb.core.USBError):
        return None
    if not ports:
        return None
    return f"{device.bus}-{'.'.join(str(p) for p in ports)}"


class UsbBackend:
    """Lists connected mixers and opens handles for them."""

    def find_devices(self) -> List[UsbDeviceRef]:
        """Scan the bus for devices carrying the mixer's vendor id.

        Raises:
            ImportError: If pyusb is not installed.
            TransportError: If libusb is missing or the bus scan fails.
        """
        if not PYUSB_AVAILABLE:
            raise ImportError(
                "No USB backend available. Install pyusb:\n"
                "  pip install pyusb   (+ apt install libusb-1.0-0)"
            )
        refs = []
        try:
            # find() is lazy; backend errors surface while iterating
            for dev in usb.core.find(find_all=True, idVendor=VID_GOXLR):
                refs.append(UsbDeviceRef(
                    bus_number=dev.bus,
                    address=dev.address,
                    vendor_id=dev.idVendor,
                    product_id=dev.idProduct,
                    identifier=_port_path(dev),
                    device=dev,
                ))
        except usb.core.NoBackendError as e:
            raise TransportError(
                f"No libusb backend: {e}. "
                "Install libusb: apt install libusb-1.0-0 (Debian/Ubuntu) "
                "or dnf install libusb1 (Fedora)"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"USB scan failed: {e}") from e
        log.debug("USB scan found %d device(s) with VID %04X", len(refs), VID_GOXLR)
        return refs

    def open_device(
        self,
        ref: UsbDeviceRef,
        on_disconnect: Optional[Callable[[PhysicalDeviceId], None]] = None,
        on_event: Optional[Callable[[PhysicalDeviceId], None]] = None,
        skip_pause: bool = False,
    ) -> DeviceHandle:
        """Open a handle and start its event poll.

        Raises:
            TransportError: If the device can't be claimed or won't answer.
        """
        handle = PyUsbDeviceHandle(ref, on_disconnect=on_disconnect, on_event=on_event)
        handle.open(skip_pause=skip_pause)
        handle.start_polling()
        return handle
