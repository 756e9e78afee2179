"""
Tests for device_catalog - product id mapping and record validation.
"""

import unittest

from fakes import FakeHandle, mini_handle

from fadertest.core.models import DeviceType, FirmwareVersion, PhysicalDeviceId
from fadertest.device_catalog import (
    KNOWN_PRODUCTS,
    collect_records,
    device_type_for_product,
    read_device_record,
)
from fadertest.errors import EnumerationError, TransportError
from fadertest.usb_transport import PID_GOXLR_FULL, PID_GOXLR_MINI

DEVICE_ID = PhysicalDeviceId(1, 5)


class TestDeviceTypeForProduct(unittest.TestCase):

    def test_full(self):
        self.assertIs(device_type_for_product(PID_GOXLR_FULL), DeviceType.FULL)

    def test_mini(self):
        self.assertIs(device_type_for_product(PID_GOXLR_MINI), DeviceType.MINI)

    def test_unknown(self):
        with self.assertRaises(EnumerationError):
            device_type_for_product(0x1234)

    def test_only_two_known_products(self):
        self.assertEqual(set(KNOWN_PRODUCTS.values()), {DeviceType.FULL, DeviceType.MINI})


class TestReadDeviceRecord(unittest.TestCase):

    def test_full_chain(self):
        rec = read_device_record(DEVICE_ID, FakeHandle(serial="S1"))
        self.assertIs(rec.device_type, DeviceType.FULL)
        self.assertEqual(rec.serial, "S1")
        self.assertEqual(rec.firmware, FirmwareVersion(1, 4, 2, 107))
        self.assertEqual(rec.device_id, DEVICE_ID)

    def test_mini(self):
        rec = read_device_record(DEVICE_ID, mini_handle())
        self.assertIs(rec.device_type, DeviceType.MINI)

    def test_query_order(self):
        handle = FakeHandle()
        read_device_record(DEVICE_ID, handle)
        self.assertEqual(
            [c[0] for c in handle.calls],
            ['get_descriptor', 'get_serial_number', 'get_firmware_version'],
        )

    def test_unknown_product_stops_before_serial(self):
        handle = FakeHandle(product_id=0x1234)
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, handle)
        self.assertEqual(handle.commands('get_serial_number'), [])

    def test_wrong_vendor(self):
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, FakeHandle(vendor_id=0x046D))

    def test_empty_serial(self):
        handle = FakeHandle(serial="")
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, handle)
        self.assertEqual(handle.commands('get_firmware_version'), [])

    def test_descriptor_failure(self):
        handle = FakeHandle()
        handle.fail_on['get_descriptor'] = TransportError("stall")
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, handle)

    def test_serial_failure(self):
        handle = FakeHandle()
        handle.fail_on['get_serial_number'] = TransportError("timeout")
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, handle)

    def test_firmware_failure(self):
        handle = FakeHandle()
        handle.fail_on['get_firmware_version'] = TransportError("timeout")
        with self.assertRaises(EnumerationError):
            read_device_record(DEVICE_ID, handle)


class TestCollectRecords(unittest.TestCase):

    def test_skips_failures_keeps_order(self):
        bad = FakeHandle(serial="BAD")
        bad.fail_on['get_firmware_version'] = TransportError("gone")
        entries = [
            (PhysicalDeviceId(1, 1), FakeHandle(serial="A")),
            (PhysicalDeviceId(1, 2), bad),
            (PhysicalDeviceId(1, 3), FakeHandle(serial="")),
            (PhysicalDeviceId(1, 4), mini_handle(serial="B")),
        ]
        records = collect_records(entries)
        self.assertEqual([r.serial for r in records], ["A", "B"])
        for rec in records:
            self.assertTrue(rec.serial)
            self.assertIn(rec.device_type, (DeviceType.FULL, DeviceType.MINI))

    def test_empty(self):
        self.assertEqual(collect_records([]), [])

    def test_failure_is_logged(self):
        handle = FakeHandle()
        handle.fail_on['get_serial_number'] = TransportError("timeout")
        with self.assertLogs('fadertest.device_catalog', level='WARNING') as logs:
            collect_records([(DEVICE_ID, handle)])
        self.assertIn("Skipping device 001:005", logs.output[0])


if __name__ == '__main__':
    unittest.main()
