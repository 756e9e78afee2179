"""
Fader tester core - data models shared by transport, registry and tests.
"""

from .models import (
    ButtonStates,
    ChannelName,
    ChannelState,
    DeviceDescriptor,
    DeviceRecord,
    DeviceType,
    FaderName,
    FirmwareVersion,
    PhysicalDeviceId,
)

__all__ = [
    'ButtonStates',
    'ChannelName',
    'ChannelState',
    'DeviceDescriptor',
    'DeviceRecord',
    'DeviceType',
    'FaderName',
    'FirmwareVersion',
    'PhysicalDeviceId',
]
