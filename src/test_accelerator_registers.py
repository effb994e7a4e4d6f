import unittest

from accelerator_registers import (CONTROL_OFFSET, CONTROL_START, MODULUS_OFFSET, NPRIME_OFFSET,
                                   OPERAND_A_OFFSET, OPERAND_B_OFFSET, RESULT_OFFSET, STATUS_DONE,
                                   STATUS_OFFSET, AcceleratorDevice)
from montgomery_backends import montgomery_product
from montgomery_engine import EngineMode, engine_latency


def load_operands(device: AcceleratorDevice, a: int, b: int, n: int) -> None:
    for i in range(device.n_words):
        device.write32(OPERAND_A_OFFSET + 4 * i, (a >> (32 * i)) & 0xFFFFFFFF)
        device.write32(OPERAND_B_OFFSET + 4 * i, (b >> (32 * i)) & 0xFFFFFFFF)
        device.write32(MODULUS_OFFSET + 4 * i, (n >> (32 * i)) & 0xFFFFFFFF)


class TestRegisterFile(unittest.TestCase):

    def setUp(self):
        # Manual clock: nothing moves unless the test ticks it
        self.device = AcceleratorDevice(64, ticks_per_access=0)

    def test_partial_write_only_touches_enabled_lanes(self):
        for lane in range(4):
            with self.subTest(lane=lane):
                self.device.write32(OPERAND_A_OFFSET, 0x11223344)
                self.device.write32(OPERAND_A_OFFSET, 0xAABBCCDD, byte_enable=1 << lane)
                expected = bytearray((0x11223344).to_bytes(4, "little"))
                expected[lane] = (0xAABBCCDD >> (8 * lane)) & 0xFF
                self.assertEqual(self.device.read32(OPERAND_A_OFFSET), int.from_bytes(expected, "little"))

    def test_two_lane_write(self):
        self.device.write32(MODULUS_OFFSET + 4, 0x11223344)
        self.device.write32(MODULUS_OFFSET + 4, 0xAABBCCDD, byte_enable=0b1010)
        self.assertEqual(self.device.read32(MODULUS_OFFSET + 4), 0xAA22CC44)

    def test_result_region_is_read_only(self):
        self.device.write32(RESULT_OFFSET, 0xDEADBEEF)
        self.assertEqual(self.device.read32(RESULT_OFFSET), 0)

    def test_control_reads_zero_and_status_ignores_writes(self):
        self.device.write32(CONTROL_OFFSET, CONTROL_START)
        self.assertEqual(self.device.read32(CONTROL_OFFSET), 0)
        self.device.write32(STATUS_OFFSET, STATUS_DONE)
        self.assertEqual(self.device.read32(STATUS_OFFSET), 0)

    def test_nprime_is_stored_but_inert(self):
        self.device.write32(NPRIME_OFFSET, 0x12345678)
        self.assertEqual(self.device.read32(NPRIME_OFFSET), 0x12345678)
        self.assertEqual(self.device.nprime, 0x12345678)

        load_operands(self.device, 42, 1234, 3233)
        self.device.write32(CONTROL_OFFSET, CONTROL_START)
        self.device.tick(engine_latency(64))
        first = self.device.result_value()

        self.device.write32(NPRIME_OFFSET, 0)
        self.device.tick()
        self.device.write32(CONTROL_OFFSET, CONTROL_START)
        self.device.tick(engine_latency(64))
        self.assertEqual(self.device.result_value(), first)

    def test_bad_offsets_are_rejected(self):
        for offset in (0x002, OPERAND_A_OFFSET + 4 * 2, 0x1FC, 0x80C, 0x1000):
            with self.subTest(offset=hex(offset)):
                with self.assertRaises(ValueError):
                    self.device.read32(offset)

    def test_reset_clears_registers(self):
        self.device.write32(OPERAND_B_OFFSET, 7)
        self.device.write32(NPRIME_OFFSET, 9)
        self.device.reset()
        self.assertEqual(self.device.read32(OPERAND_B_OFFSET), 0)
        self.assertEqual(self.device.read32(NPRIME_OFFSET), 0)
        self.assertEqual(self.device.read32(STATUS_OFFSET), 0)


class TestDeviceOperation(unittest.TestCase):

    def test_done_is_sticky_until_next_start(self):
        device = AcceleratorDevice(64, ticks_per_access=0)
        load_operands(device, 42, 1234, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        device.tick(engine_latency(64))
        for _ in range(5):
            self.assertEqual(device.read32(STATUS_OFFSET) & STATUS_DONE, STATUS_DONE)
            device.tick(3)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        self.assertEqual(device.read32(STATUS_OFFSET) & STATUS_DONE, 0)

    def test_done_appears_after_exactly_the_engine_latency(self):
        device = AcceleratorDevice(64, ticks_per_access=0)
        load_operands(device, 5, 6, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        device.tick(engine_latency(64) - 1)
        self.assertEqual(device.read32(STATUS_OFFSET), 0)
        device.tick()
        self.assertEqual(device.read32(STATUS_OFFSET), STATUS_DONE)
        self.assertEqual(device.result_value(), montgomery_product(5, 6, 3233, 64))

    def test_collapsed_mode_completes_on_second_tick(self):
        device = AcceleratorDevice(1024, mode=EngineMode.COLLAPSED, ticks_per_access=0)
        load_operands(device, 42, 1234, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        device.tick(2)
        self.assertEqual(device.read32(STATUS_OFFSET), STATUS_DONE)
        self.assertEqual(device.result_value(), montgomery_product(42, 1234, 3233, 1024))
        self.assertEqual(device.engine.cycles, engine_latency(1024))

    def test_second_start_while_busy_does_not_corrupt_result(self):
        device = AcceleratorDevice(64, ticks_per_access=0)
        load_operands(device, 11, 22, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        device.tick(10)

        # Protocol violation: new operands and a new start before done was consumed
        load_operands(device, 33, 44, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        for _ in range(engine_latency(64)):
            device.tick()
            if device.read32(STATUS_OFFSET) & STATUS_DONE:
                break
            # Result words still hold the previous (empty) completion while busy
            self.assertEqual(device.result_value(), 0)

        self.assertEqual(device.read32(STATUS_OFFSET), STATUS_DONE)
        self.assertEqual(device.result_value(), montgomery_product(11, 22, 3233, 64))

    def test_stopped_clock_never_completes(self):
        device = AcceleratorDevice(64)
        device.clock_running = False
        load_operands(device, 1, 2, 3233)
        device.write32(CONTROL_OFFSET, CONTROL_START)
        for _ in range(1000):
            self.assertEqual(device.read32(STATUS_OFFSET), 0)

    def test_instances_of_different_width_are_independent(self):
        small = AcceleratorDevice(1024, mode=EngineMode.COLLAPSED)
        large = AcceleratorDevice(2048, mode=EngineMode.COLLAPSED)
        for device in (small, large):
            load_operands(device, 42, 1234, 3233)
            device.write32(CONTROL_OFFSET, CONTROL_START)
            device.tick(2)
        self.assertEqual(small.result_value(), montgomery_product(42, 1234, 3233, 1024))
        self.assertEqual(large.result_value(), montgomery_product(42, 1234, 3233, 2048))
        self.assertNotEqual(small.result_value(), large.result_value())
        with self.assertRaises(ValueError):
            small.read32(OPERAND_A_OFFSET + 4 * 32)
        self.assertEqual(large.read32(OPERAND_A_OFFSET + 4 * 32), 0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
