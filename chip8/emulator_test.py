import os
import tempfile
import unittest

from chip8.cpu import NUM_KEYS, Chip8
from chip8.emulator import CYCLES_PER_FRAME, FRAME_DELAY_MS, get_args, load_rom, main, run


NO_KEYS = [False] * NUM_KEYS

def assemble(*opcodes):
    return b"".join(op.to_bytes(2, "big") for op in opcodes)


class FakeKeypad:
    def __init__(self, frames):
        self.snapshots = [NO_KEYS] * frames

    def poll(self):
        if not self.snapshots:
            return None
        return self.snapshots.pop(0)

class FakeScreen:
    def __init__(self):
        self.frames = []

    def draw(self, gfx):
        self.frames.append([row[:] for row in gfx])

class FakeBuzzer:
    def __init__(self):
        self.calls = []

    def play(self):
        self.calls.append("play")

    def stop(self):
        self.calls.append("stop")

class CountingChip8(Chip8):
    def __init__(self):
        super().__init__()
        self.steps = 0

    def step(self, keys):
        self.steps += 1
        super().step(keys)


class TestRun(unittest.TestCase):
    def setUp(self):
        self.screen = FakeScreen()
        self.buzzer = FakeBuzzer()
        self.waits = []

    def drive(self, chip, frames, **kwargs):
        return run(chip, FakeKeypad(frames), self.screen, self.buzzer, wait=self.waits.append, **kwargs)

    def test_steps_and_waits_per_frame(self):
        chip = CountingChip8()
        chip.initialize(assemble(0x1200))
        self.assertEqual(self.drive(chip, 3), 3)
        self.assertEqual(chip.steps, 3 * CYCLES_PER_FRAME)
        self.assertEqual(self.waits, [FRAME_DELAY_MS] * 3)

    def test_custom_cadence(self):
        chip = CountingChip8()
        chip.initialize(assemble(0x1200))
        self.drive(chip, 2, cycles=4, delay=5)
        self.assertEqual(chip.steps, 8)
        self.assertEqual(self.waits, [5, 5])

    def test_redraw_once_and_clear_flag(self):
        chip = Chip8()
        chip.initialize(assemble(0x00E0, 0x1202))
        self.drive(chip, 5)
        self.assertEqual(len(self.screen.frames), 1)
        self.assertFalse(chip.draw)

    def test_buzzer_follows_sound_timer(self):
        chip = Chip8()
        chip.initialize(assemble(0x6303, 0xF318, 0x1204))
        self.drive(chip, 5)
        self.assertEqual(self.buzzer.calls, ["play", "play", "play", "stop", "stop"])
        self.assertEqual(chip.st, 0)

    def test_timers_tick_once_per_frame(self):
        chip = Chip8()
        chip.initialize(assemble(0x6314, 0xF315, 0x1204))
        self.drive(chip, 4)
        self.assertEqual(chip.dt, 0x14 - 4)

    def test_stops_immediately_without_snapshot(self):
        chip = CountingChip8()
        chip.initialize(assemble(0x1200))
        self.assertEqual(self.drive(chip, 0), 0)
        self.assertEqual(chip.steps, 0)
        self.assertEqual(self.buzzer.calls, [])


class TestLoader(unittest.TestCase):
    def test_load_rom(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "test.ch8")
            with open(path, "wb") as f:
                f.write(assemble(0x00E0, 0x1202))
            self.assertEqual(load_rom(path), b"\x00\xE0\x12\x02")

    def test_missing_rom(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(OSError):
                load_rom(os.path.join(tmp, "missing.ch8"))

    def test_main_exits_on_missing_rom(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(SystemExit) as ctx:
                main(["-f", os.path.join(tmp, "missing.ch8")])
        self.assertIn("Unable to load the ROM", str(ctx.exception.code))


class TestArgs(unittest.TestCase):
    def test_defaults(self):
        args = get_args(["-f", "pong.ch8"])
        self.assertEqual(args.file, "pong.ch8")
        self.assertEqual(args.scale, 20)
        self.assertEqual(args.cycles, CYCLES_PER_FRAME)
        self.assertEqual(args.delay, FRAME_DELAY_MS)

    def test_overrides(self):
        args = get_args(["--file", "pong.ch8", "-s", "10", "-c", "12", "-d", "8"])
        self.assertEqual((args.scale, args.cycles, args.delay), (10, 12, 8))

    def test_file_is_required(self):
        with self.assertRaises(SystemExit):
            get_args([])


class TestCrash(unittest.TestCase):
    def setUp(self):
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        os.environ["SDL_AUDIODRIVER"] = "dummy"

    def test_main_reports_state_on_unknown_opcode(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bad.ch8")
            with open(path, "wb") as f:
                f.write(assemble(0x6A02, 0xFFFF))
            with self.assertRaises(SystemExit) as ctx:
                main(["-f", path])
        message = str(ctx.exception.code)
        self.assertIn("Unknown opcode 0xffff at address 0x0202", message)
        self.assertIn("PC_REGISTER:0x0202", message)


if __name__ == "__main__":
    unittest.main()
