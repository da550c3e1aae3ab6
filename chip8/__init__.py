"""CHIP-8 virtual machine: the CPU engine plus pygame display, keypad and buzzer"""
