"""
Mixer device catalog.

Turns open handles into validated DeviceRecords:

    descriptor -> device class (from product id) -> serial -> firmware

A device that can't complete the chain is left out of the scan result.
There are no retries; a device that failed once may show up on the next
discovery if the failure was transient.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from .core.models import DeviceRecord, DeviceType, PhysicalDeviceId
from .errors import EnumerationError, TransportError
from .usb_transport import PID_GOXLR_FULL, PID_GOXLR_MINI, VID_GOXLR, DeviceHandle

log = logging.getLogger(__name__)


# Known mixers by USB product id
KNOWN_PRODUCTS: Dict[int, DeviceType] = {
    PID_GOXLR_FULL: DeviceType.FULL,
    PID_GOXLR_MINI: DeviceType.MINI,
}


def device_type_for_product(product_id: int) -> DeviceType:
    """Map a USB product id to the mixer class.

    Raises:
        EnumerationError: For product ids that aren't a known mixer.
    """
    try:
        return KNOWN_PRODUCTS[product_id]
    except KeyError:
        raise EnumerationError(f"Unknown product id 0x{product_id:04x}") from None


def read_device_record(device_id: PhysicalDeviceId, handle: DeviceHandle) -> DeviceRecord:
    """Query one device and build its record.

    Raises:
        EnumerationError: If any step fails or the serial is empty.
    """
    try:
        descriptor = handle.get_descriptor()
        if descriptor.vendor_id != VID_GOXLR:
            raise EnumerationError(f"Unexpected vendor id 0x{descriptor.vendor_id:04x}")
        device_type = device_type_for_product(descriptor.product_id)

        serial, _ = handle.get_serial_number()
        if not serial:
            raise EnumerationError("Device reported an empty serial")

        firmware = handle.get_firmware_version()
    except TransportError as e:
        raise EnumerationError(str(e)) from e

    return DeviceRecord(
        device_type=device_type,
        serial=serial,
        firmware=firmware,
        device_id=device_id,
    )


def collect_records(
    entries: Iterable[Tuple[PhysicalDeviceId, DeviceHandle]],
) -> List[DeviceRecord]:
    """Build records for every entry that answers; skip the rest."""
    records = []
    for device_id, handle in entries:
        try:
            records.append(read_device_record(device_id, handle))
        except EnumerationError as e:
            log.warning("Skipping device %s: %s", device_id, e)
    return records
