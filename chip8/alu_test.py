import unittest

from chip8 import alu


class TestLogic(unittest.TestCase):
    def test_load(self):
        self.assertEqual(alu.load(0x12, 0x34), (0x34, None))

    def test_bitwise_ops_leave_flag_alone(self):
        self.assertEqual(alu.bit_or(0b1100, 0b1010), (0b1110, None))
        self.assertEqual(alu.bit_and(0b1100, 0b1010), (0b1000, None))
        self.assertEqual(alu.bit_xor(0b1100, 0b1010), (0b0110, None))


class TestArithmetic(unittest.TestCase):
    def test_add_carry(self):
        for vx in range(0, 256, 15):
            for vy in range(0, 256, 17):
                total = vx + vy
                self.assertEqual(alu.add(vx, vy), (total & 0xFF, 1 if total > 255 else 0))

    def test_add_edges(self):
        self.assertEqual(alu.add(0xFF, 0x00), (0xFF, 0))
        self.assertEqual(alu.add(0xFF, 0x01), (0x00, 1))
        self.assertEqual(alu.add(0x80, 0x80), (0x00, 1))

    def test_sub_borrow(self):
        for vx in range(0, 256, 15):
            for vy in range(0, 256, 17):
                self.assertEqual(alu.sub(vx, vy), ((vx - vy) % 256, 0 if vy > vx else 1))

    def test_sub_equal_operands_has_no_borrow(self):
        self.assertEqual(alu.sub(0x42, 0x42), (0x00, 1))

    def test_subn_borrow(self):
        self.assertEqual(alu.subn(0x05, 0x03), (0xFE, 0))
        self.assertEqual(alu.subn(0x03, 0x05), (0x02, 1))
        self.assertEqual(alu.subn(0x07, 0x07), (0x00, 1))


class TestShifts(unittest.TestCase):
    def test_shr_shifts_vy_but_flags_vx(self):
        # flag comes from Vx, result from Vy
        self.assertEqual(alu.shr(0x03, 0x10), (0x08, 1))
        self.assertEqual(alu.shr(0x02, 0x11), (0x08, 0))

    def test_shl_msb(self):
        self.assertEqual(alu.shl(0x81, 0x00), (0x02, 1))
        self.assertEqual(alu.shl(0x41, 0xFF), (0x82, 0))


if __name__ == "__main__":
    unittest.main()
