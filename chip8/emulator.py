import argparse
import sys

import pygame

from chip8.cpu import DEBUG, Chip8, Chip8Error
from chip8.devices import SCALE, Buzzer, Keypad, Screen


CYCLES_PER_FRAME = 9    # 9 instructions every ~16ms is roughly 540Hz
FRAME_DELAY_MS = 16     # timers are decremented once per frame, roughly 60Hz


# ******************** UTILITIES SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("-s", "--scale", type=int, default=SCALE, help="size in pixels of a single CHIP-8 pixel")
    parser.add_argument("-c", "--cycles", type=int, default=CYCLES_PER_FRAME, help="instructions executed every frame")
    parser.add_argument("-d", "--delay", type=int, default=FRAME_DELAY_MS, help="milliseconds to wait every frame")
    return parser.parse_args(argv)

def load_rom(path):
    """read the whole ROM file, OSError is raised if it can't be read"""
    with open(path, mode='rb') as f:
        rom = f.read()
    if DEBUG: print(f"The ROM at path {path} has been loaded successfully ({len(rom)} bytes)")
    return rom


# ******************** DRIVER SECTION
def run(chip, keypad, screen, buzzer, cycles=CYCLES_PER_FRAME, delay=FRAME_DELAY_MS, wait=pygame.time.wait):
    """
    drive the CPU until the keypad source stops producing snapshots, every frame:
    step x cycles -> wait -> redraw if needed -> toggle the tone -> decrement the timers
    return the number of frames emulated
    """
    frames = 0
    while True:
        keys = keypad.poll()
        if keys is None:
            return frames
        for _ in range(cycles):
            chip.step(keys)
        wait(delay)
        if chip.draw:
            screen.draw(chip.gfx)
            chip.draw = False
        if chip.sound_on:
            buzzer.play()
        else:
            buzzer.stop()
        chip.decrement_timers()
        frames += 1


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    try:
        rom = load_rom(args.file)
    except OSError as e:
        sys.exit(f"Unable to load the ROM at path {args.file}: {e}")
    # pygame initialization
    pygame.mixer.pre_init(44100, -16, 1, 512)
    pygame.init()
    pygame.display.set_caption(args.file.replace('\\', '/').split('/')[-1])
    # IO
    s = Screen(s=args.scale)
    k = Keypad()
    b = Buzzer()
    # CPU
    chip = Chip8()
    chip.initialize(rom)
    try:
        run(chip, k, s, b, cycles=args.cycles, delay=args.delay)
    except Chip8Error as e:
        sys.exit(f"********** THE EMULATOR CRASHED: {e}\n{chip}")
    finally:
        b.stop()
        pygame.quit()


if __name__ == "__main__":
    main()
