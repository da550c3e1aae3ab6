import os
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "no welcome message")   # this env var disable pygame's welcome message when imported
from array import array

import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
    K_ESCAPE, KEYDOWN, QUIT,
)

from chip8.cpu import NUM_KEYS, SCREEN_HEIGHT, SCREEN_WIDTH


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0,
    K_1: 0x1,
    K_2: 0x2,
    K_3: 0x3,
    K_4: 0x4,
    K_5: 0x5,
    K_6: 0x6,
    K_7: 0x7,
    K_8: 0x8,
    K_9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

SCALE = 20
BLACK = pygame.Color(0, 0, 0, 255)
WHITE = pygame.Color(255, 255, 255, 255)
TONE_HZ = 440
VOLUME = 0.25


# ******************** I/O SECTION
class Screen:
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLACK, fg_color=WHITE):
        self.w, self.h, self.scale = w, h, s
        self.background = bg_color
        self.foreground = fg_color
        self.surface = pygame.display.set_mode(
            (w * self.scale, h * self.scale),
        )
        self.surface.fill(self.background)
        pygame.display.flip()

    def read_pixel(self, x, y):
        """return 1 if pixel is ON, return 0 if pixel is OFF"""
        p = self.surface.get_at((x * self.scale, y * self.scale))
        return 0 if p == self.background else 1

    def draw(self, gfx):
        """paint the whole 64x32 framebuffer, every cell becomes a scale x scale square"""
        for y, row in enumerate(gfx):
            for x, pixel in enumerate(row):
                pygame.draw.rect(
                    self.surface,
                    self.foreground if pixel else self.background,
                    (x * self.scale, y * self.scale, self.scale, self.scale)
                )
        pygame.display.flip()

class Keypad:
    """keypad source: a snapshot of the 16 CHIP-8 keys per frame, None once the user asked to quit"""
    def __init__(self, mappings=KEY_MAPPINGS):
        self.mappings = mappings

    def poll(self):
        for event in pygame.event.get():
            if event.type == QUIT:
                return None
            if event.type == KEYDOWN and event.key == K_ESCAPE:
                return None
        return self.snapshot(pygame.key.get_pressed())

    def snapshot(self, pressed):
        """map a pygame key state sequence onto the hexadecimal keypad"""
        keys = [False] * NUM_KEYS
        for key, index in self.mappings.items():
            if pressed[key]:
                keys[index] = True
        return keys

def build_square_wave(sample_rate, size, channels=1, tone_hz=TONE_HZ):
    """
    one period of a square wave as signed 16 bit samples, looping it gives a continuous tone
    with more than one channel every sample is repeated once per channel (interleaved frames)
    """
    # modified from: https://gist.github.com/ohsqueezy/6540433
    period = int(round(sample_rate / tone_hz))
    amplitude = 2 ** (min(abs(size), 16) - 1) - 1
    samples = array("h")
    for t in range(period):
        samples.extend([amplitude if t < period / 2 else -amplitude] * channels)
    return samples

class Buzzer:
    """audio sink: a 440Hz tone played while the sound timer is active"""
    def __init__(self, volume=VOLUME):
        self.playing = False
        self.sound = None
        mixer = pygame.mixer.get_init()
        if mixer is None:
            return      # no audio device, stay silent
        sample_rate, size, channels = mixer
        self.sound = pygame.mixer.Sound(buffer=build_square_wave(sample_rate, size, channels))
        self.sound.set_volume(volume)

    def play(self):
        if self.playing:
            return
        self.playing = True
        if self.sound:
            self.sound.play(loops=-1)

    def stop(self):
        if not self.playing:
            return
        self.playing = False
        if self.sound:
            self.sound.stop()
