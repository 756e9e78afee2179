"""
Session registry — one open USB handle per physical mixer.

Handles are cached by PhysicalDeviceId (bus, address, port path) so that
repeated discovery calls reuse the same handle instead of claiming the
device twice. Each handle is guarded by its own lock; ``session()`` is the
only way to reach a handle and releases the lock on every exit path.

Usage::

    registry = SessionRegistry()
    devices = registry.discover()

    with registry.session(devices[0].device_id) as handle:
        handle.get_button_states()

    registry.set_volume(devices[0], ChannelName.MIC, 10)

Handles stay open for the life of the process.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .conf import VOLUME_MAX, VOLUME_MIN
from .core.models import (
    ChannelName,
    ChannelState,
    DeviceRecord,
    FaderName,
    PhysicalDeviceId,
)
from .device_catalog import collect_records
from .errors import SessionNotFoundError, TransportError
from .usb_transport import DeviceHandle, UsbBackend, UsbDeviceRef

log = logging.getLogger(__name__)


class Session:
    """Exclusive owner of one device handle."""

    def __init__(self, device_id: PhysicalDeviceId, handle: DeviceHandle):
        self.device_id = device_id
        self.handle = handle
        self.lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Session({self.device_id}, {self.handle!r})"


class SessionRegistry:
    """Process-wide map of PhysicalDeviceId -> Session."""

    def __init__(self, backend: Optional[UsbBackend] = None):
        self._backend = backend if backend is not None else UsbBackend()
        self._sessions: Dict[PhysicalDeviceId, Session] = {}
        self._map_lock = threading.Lock()

    # ── Discovery ────────────────────────────────────────────────────

    def discover(self) -> List[DeviceRecord]:
        """Scan for mixers and return a record for each one that answers.

        New devices get a handle (event polling off); known devices reuse
        theirs. Devices that fail to open or to answer are logged and left
        out; one bad device never aborts the scan.
        """
        log.debug("SessionRegistry: scanning for devices...")
        device_ids = []
        for ref in self._backend.find_devices():
            device_id = ref.device_id
            with self._map_lock:
                known = device_id in self._sessions
            if known:
                log.debug("Reusing session for %s", device_id)
            elif not self._open_session(ref):
                continue
            device_ids.append(device_id)

        records = collect_records(self._locked_handles(device_ids))
        log.info("SessionRegistry: found %d device(s)", len(records))
        return records

    def _open_session(self, ref: UsbDeviceRef) -> bool:
        """Open a handle for *ref* and register it; False if it won't open.

        The open does USB I/O, so it runs without the map lock; commands
        on other devices keep flowing meanwhile.
        """
        device_id = ref.device_id
        try:
            # Device events are not consumed here
            handle = self._backend.open_device(
                ref, on_disconnect=None, on_event=None, skip_pause=True,
            )
            handle.stop_polling()
        except TransportError as e:
            log.error("Unable to open device %s: %s", device_id, e)
            return False

        with self._map_lock:
            existing = self._sessions.get(device_id)
            if existing is None:
                self._sessions[device_id] = Session(device_id, handle)
        if existing is not None:
            # A concurrent scan registered this slot first
            log.debug("Session for %s already registered, closing duplicate", device_id)
            handle.close()
        else:
            log.debug("Opened session for %s", device_id)
        return True

    def _locked_handles(
        self, device_ids: List[PhysicalDeviceId],
    ) -> Iterator[Tuple[PhysicalDeviceId, DeviceHandle]]:
        for device_id in device_ids:
            with self.session(device_id) as handle:
                yield device_id, handle

    # ── Session access ───────────────────────────────────────────────

    def get_session(self, device_id: PhysicalDeviceId) -> Session:
        """Look up a session without locking its handle.

        Raises:
            SessionNotFoundError: If nothing is registered for the id.
        """
        with self._map_lock:
            session = self._sessions.get(device_id)
        if session is None:
            raise SessionNotFoundError(f"No session for device {device_id}")
        return session

    @contextmanager
    def session(self, device_id: PhysicalDeviceId) -> Iterator[DeviceHandle]:
        """Exclusive, blocking access to a device handle for one command."""
        session = self.get_session(device_id)
        with session.lock:
            yield session.handle

    @property
    def session_count(self) -> int:
        with self._map_lock:
            return len(self._sessions)

    # ── Commands ─────────────────────────────────────────────────────

    def set_volume(self, device: DeviceRecord, channel: ChannelName, volume: int) -> None:
        if not VOLUME_MIN <= volume <= VOLUME_MAX:
            raise ValueError(f"Volume {volume} outside {VOLUME_MIN}-{VOLUME_MAX}")
        with self.session(device.device_id) as handle:
            handle.set_volume(channel, volume)

    def assign_channel(self, device: DeviceRecord, fader: FaderName, channel: ChannelName) -> None:
        with self.session(device.device_id) as handle:
            handle.set_fader(fader, channel)

    def get_volumes(self, device: DeviceRecord) -> Tuple[int, int, int, int]:
        with self.session(device.device_id) as handle:
            return handle.get_button_states().volumes

    def set_mute_state(self, device: DeviceRecord, channel: ChannelName, muted: bool) -> None:
        state = ChannelState.MUTED if muted else ChannelState.UNMUTED
        with self.session(device.device_id) as handle:
            handle.set_channel_state(channel, state)
