"""Hardware stand-ins shared by the test modules.

FakeHandle simulates a mixer with four motorised faders: faders follow the
volume of whichever channel is assigned to them, and read-backs can be
skewed per fader to simulate a sticky or miscalibrated motor.
"""

import struct
from array import array

from fadertest.core.models import (
    ButtonStates,
    ChannelName,
    ChannelState,
    DeviceDescriptor,
    FaderName,
    FirmwareVersion,
)
from fadertest.usb_transport import (
    PID_GOXLR_FULL,
    PID_GOXLR_MINI,
    REQUEST_TYPE_VENDOR_OUT,
    VID_GOXLR,
    DeviceHandle,
    UsbDeviceRef,
)


def _clamp(value):
    return max(0, min(255, value))


class FakeHandle(DeviceHandle):
    """Scripted DeviceHandle for four-fader mixers."""

    def __init__(self, serial="S210100001", product_id=PID_GOXLR_FULL,
                 firmware=FirmwareVersion(1, 4, 2, 107), vendor_id=VID_GOXLR):
        self.serial = serial
        self.product_id = product_id
        self.vendor_id = vendor_id
        self.firmware = firmware
        self.volumes = {ch: 0 for ch in ChannelName}
        self.faders = {
            FaderName.A: ChannelName.MIC,
            FaderName.B: ChannelName.CHAT,
            FaderName.C: ChannelName.MUSIC,
            FaderName.D: ChannelName.SYSTEM,
        }
        self.muted = set()
        self.calls = []
        self.fail_on = {}        # method name -> exception to raise
        self.offsets = {}        # fader -> read-back skew
        self.mute_offsets = {}   # fader -> extra skew while its channel is muted
        self.polling = True
        self.closed = False

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail_on:
            raise self.fail_on[name]

    def stop_polling(self):
        self._call('stop_polling')
        self.polling = False

    def get_descriptor(self):
        self._call('get_descriptor')
        return DeviceDescriptor(self.vendor_id, self.product_id)

    def get_serial_number(self):
        self._call('get_serial_number')
        return self.serial, "20210101"

    def get_firmware_version(self):
        self._call('get_firmware_version')
        return self.firmware

    def get_button_states(self):
        self._call('get_button_states')
        volumes = []
        for fader in FaderName:
            channel = self.faders[fader]
            value = self.volumes[channel] + self.offsets.get(fader, 0)
            if channel in self.muted:
                value += self.mute_offsets.get(fader, 0)
            volumes.append(_clamp(value))
        return ButtonStates(pressed=0, volumes=tuple(volumes))

    def set_volume(self, channel, volume):
        self._call('set_volume', channel, volume)
        self.volumes[channel] = volume

    def set_fader(self, fader, channel):
        self._call('set_fader', fader, channel)
        self.faders[fader] = channel

    def set_channel_state(self, channel, state):
        self._call('set_channel_state', channel, state)
        if state is ChannelState.MUTED:
            self.muted.add(channel)
        else:
            self.muted.discard(channel)

    def close(self):
        self.closed = True

    def commands(self, name):
        return [c[1:] for c in self.calls if c[0] == name]


def mini_handle(**kw):
    return FakeHandle(product_id=PID_GOXLR_MINI, **kw)


class FakeBackend:
    """UsbBackend stand-in: a fixed device list and scripted open results."""

    def __init__(self):
        self.refs = []
        self.targets = {}
        self.open_calls = []

    def add(self, target, bus=1, address=5, identifier=None, product_id=PID_GOXLR_FULL):
        """Attach a device; *target* is a handle or an exception raised on open."""
        ref = UsbDeviceRef(
            bus_number=bus, address=address,
            vendor_id=VID_GOXLR, product_id=product_id, identifier=identifier,
        )
        self.refs.append(ref)
        self.targets[ref.device_id] = target
        return ref

    def remove(self, ref):
        self.refs.remove(ref)

    def find_devices(self):
        return list(self.refs)

    def open_device(self, ref, on_disconnect=None, on_event=None, skip_pause=False):
        self.open_calls.append({
            'ref': ref, 'on_disconnect': on_disconnect,
            'on_event': on_event, 'skip_pause': skip_pause,
        })
        target = self.targets[ref.device_id]
        if isinstance(target, Exception):
            raise target
        return target


class ScriptedUsbDevice:
    """Stands in for usb.core.Device: answers control transfers with canned
    payloads and echoes the request's command index."""

    def __init__(self, payloads=None, product_id=PID_GOXLR_FULL):
        self.idVendor = VID_GOXLR
        self.idProduct = product_id
        self.bus = 1
        self.address = 7
        self.port_numbers = (2, 3)
        self.payloads = dict(payloads or {})
        self.sent = []
        self.bad_index = False
        self.kernel_driver_active = False
        self.detached = []
        self.configuration = None
        self.read_error = None
        self._pending = (0, 0)

    def is_kernel_driver_active(self, interface):
        return self.kernel_driver_active

    def detach_kernel_driver(self, interface):
        self.detached.append(interface)

    def set_configuration(self, configuration):
        self.configuration = configuration

    def ctrl_transfer(self, bmRequestType, bRequest, wValue=0, wIndex=0,
                      data_or_wLength=None, timeout=None):
        if bmRequestType == REQUEST_TYPE_VENDOR_OUT:
            packet = bytes(data_or_wLength)
            self.sent.append(packet)
            command_id, _, index = struct.unpack_from('<IHH', packet)
            self._pending = (command_id, index)
            return len(packet)
        command_id, index = self._pending
        if self.bad_index:
            index += 1
        payload = self.payloads.get(command_id, b'')
        header = struct.pack('<IHH', command_id, len(payload), index) + b'\x00' * 8
        return array('B', header + payload)

    def read(self, endpoint, size, timeout=None):
        import time

        import usb.core
        time.sleep(0.005)
        if self.read_error is not None:
            raise self.read_error
        raise usb.core.USBTimeoutError('Operation timed out')
