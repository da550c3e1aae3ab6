# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
# https://chip-8.github.io/links/
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908


import os
import random
from collections import namedtuple
from functools import wraps

from chip8 import alu


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
            0x20, 0x60, 0x20, 0x20, 0x70,  # 1
            0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
            0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
            0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
            0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
            0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
            0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
            0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
            0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
            0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
            0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
            0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
            0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
            0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

FONT_BYTES_PER_CHAR = 5
MEMORY_SIZE = 4096
ROM_START_ADDRESS = 0x200
STACK_DEPTH = 16
NUM_REGISTERS = 16
NUM_KEYS = 16
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False


# ******************** ERRORS SECTION
class Chip8Error(Exception):
    """base class for every fault raised while emulating a program"""

class UnknownOpcodeError(Chip8Error):
    def __init__(self, opcode, address):
        super().__init__(f"Unknown opcode 0x{opcode:04x} at address 0x{address:04x}")
        self.opcode = opcode
        self.address = address

class MemoryAccessError(Chip8Error):
    def __init__(self, address):
        super().__init__(f"Memory access out of range at address 0x{address:04x}")
        self.address = address

class StackOverflowError(Chip8Error):
    pass

class StackUnderflowError(Chip8Error):
    pass


# ******************** UTILITIES SECTION
def asm(msg):
    """decorator to print out the ASM of the instruction being called"""
    def decorator(fn):
        @wraps(fn)
        def wrapper_fn(*args, **kwargs):
            mem_addr = args[0].pc       # args[0] equals self of the decorated method
            vals = fn(*args, **kwargs)  # use the locals() values of each decorated function in the print
            vals['mem_addr'] = mem_addr
            if DEBUG: print(msg.format(**vals))
        return wrapper_fn
    return decorator


# ******************** MEMORY SECTION
# ********** WRAPS A LIST TO REPRESENT A STACK WITH A LIMITED SIZE OF 16 ADDRESSES
class Stack:
    def __init__(self):
        self.addr_list = [0] * STACK_DEPTH
        self.size = 0

    def __len__(self):
        return self.size

    def __str__(self):
        return str([f"0x{addr:04x}" for addr in self.addr_list[:self.size]])

    def append(self, address):
        if self.size >= STACK_DEPTH:
            raise StackOverflowError(f"The CHIP-8 stack can contain at most {STACK_DEPTH} addresses. Limit exceeded")
        self.addr_list[self.size] = address & 0xFFFF
        self.size += 1

    def pop(self):
        if self.size == 0:
            raise StackUnderflowError("Return from subroutine with an empty stack")
        self.size -= 1
        return self.addr_list[self.size]

# ********** WRAPS A BYTEARRAY TO REPRESENT THE MAIN MEMORY WITH A LIMITED SIZE OF 4KB
# any access outside of 0x000-0xFFF raises MemoryAccessError
class Memory:
    def __init__(self):
        self.inner = bytearray(MEMORY_SIZE)
        self.inner[0x00:0x00+len(C8_FONTS)] = bytes(C8_FONTS)

    def _check(self, address, length=1):
        if address < 0 or address >= MEMORY_SIZE:
            raise MemoryAccessError(address)
        if address + length > MEMORY_SIZE:
            raise MemoryAccessError(MEMORY_SIZE)

    def __setitem__(self, address, value):
        self._check(address)
        self.inner[address] = value

    def __getitem__(self, address):
        self._check(address)
        return self.inner[address]

    def read(self, address, length):
        """return `length` consecutive bytes starting at `address` as a list of ints"""
        self._check(address, length)
        return list(self.inner[address:address+length])

    def write(self, address, values):
        self._check(address, len(values))
        self.inner[address:address+len(values)] = bytes(values)

    def load_rom(self, rom):
        """copy the program bytes at ROM_START_ADDRESS, whatever doesn't fit in memory is dropped"""
        rom = bytes(rom[:MEMORY_SIZE - ROM_START_ADDRESS])
        self.inner[ROM_START_ADDRESS:ROM_START_ADDRESS+len(rom)] = rom
        return len(rom)


# ******************** CPU SECTION
# an opcode family whose handler is selected by a second lookup on (opcode & mask)
# default is the handler used when the second lookup misses, None means unknown opcode
OpcodeFamily = namedtuple("OpcodeFamily", ["mask", "table", "default"])

class Chip8:
    def __init__(self, rng=random):
        self.rng = rng              # anything exposing randint(a, b), the random module by default
        self.sys_instructions = {
            0x0E0: self._clear_screen,
            0x0EE: self._return,
        }
        self.alu_instructions = {
            0x0: self._set_vx_to_vy,
            0x1: self._set_vx_or_vy,
            0x2: self._set_vx_and_vy,
            0x3: self._set_vx_xor_vy,
            0x4: self._add_vx_vy,
            0x5: self._sub_vx_vy,
            0x6: self._shr,
            0x7: self._subn_vx_vy,
            0xE: self._shl,
        }
        self.key_instructions = {
            0x9E: self._skip_if_pressed,
            0xA1: self._skip_if_not_pressed,
        }
        self.misc_instructions = {
            0x07: self._set_vx_dt,
            0x0A: self._wait_keypress,
            0x15: self._set_dt_vx,
            0x18: self._set_st,
            0x1E: self._add_to_idx,
            0x29: self._select_char,
            0x33: self._bcd_repr,
            0x55: self._store_vregs,
            0x65: self._load_vregs,
        }
        # first level: high nibble of the opcode
        self.instructions = {
            0x0: OpcodeFamily(0x0FFF, self.sys_instructions, self._sys_call),
            0x1: self._jump,
            0x2: self._call_addr,
            0x3: self._skip_if_eq,
            0x4: self._skip_if_not_eq,
            0x5: self._skip_if_eq_regs,
            0x6: self._set_vk,
            0x7: self._add_to_vk,
            0x8: OpcodeFamily(0x000F, self.alu_instructions, None),
            0x9: self._skip_if_not_eq_regs,
            0xA: self._set_idx,
            0xB: self._jump_plus,
            0xC: self._random_byte_and,
            0xD: self._to_screen,
            0xE: OpcodeFamily(0x00FF, self.key_instructions, None),
            0xF: OpcodeFamily(0x00FF, self.misc_instructions, None),
        }
        self.initialize(b"")

    def __str__(self):
        registers = (f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | "
                     f"OPCODE:0x{self.opcode:04x} | VARIABLE_REGISTERS:{self.v_regs}")
        stack = f"STACK:{self.stack} | SP:{self.stack.size}"
        timers = f"DELAY_TIMER:{self.dt} | SOUND_TIMER:{self.st}"
        flags = f"DRAW:{self.draw} | KEY_WAIT:{self.key_wait} (V{self.key_wait_reg:X})"
        return f"{registers}\n{stack}\n{timers}\n{flags}"

    def initialize(self, program):
        """reset the whole machine state and load the program bytes at ROM_START_ADDRESS"""
        self.mem = Memory()
        self.mem.load_rom(program)
        self.stack = Stack()
        self.v_regs = [0] * NUM_REGISTERS
        self.pc = ROM_START_ADDRESS
        self.idx = 0    # specify where the sprites reside in memory
        self.opcode = 0
        self.dt = 0     # delay timer, active when non-zero
        self.st = 0     # sound timer, active when non-zero
        self.keys = [False] * NUM_KEYS
        self.key_wait = False
        self.key_wait_reg = 0
        self.gfx = [[0] * SCREEN_WIDTH for _ in range(SCREEN_HEIGHT)]
        self.draw = False

    @property
    def sound_on(self):
        return self.st > 0

    def decrement_timers(self):
        if self.dt > 0:
            self.dt -= 1
        if self.st > 0:
            self.st -= 1

    # ********** FLOW CONTROL
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SYS 0x{address:04x}")
    def _sys_call(self, opcode):
        """jump to a machine code routine, ignored"""
        address = opcode & 0x0FFF
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RET")
    def _return(self, opcode):
        """return from a subroutine"""
        self.pc = self.stack.pop()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP 0x{address:04x}")
    def _jump(self, opcode):
        address = opcode & 0x0FFF
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CALL 0x{address:04x}")
    def _call_addr(self, opcode):
        address = opcode & 0x0FFF
        self.stack.append(self.pc + 0x2)
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP V0, 0x{address:04x}")
    def _jump_plus(self, opcode):
        address = opcode & 0x0FFF
        v0 = self.v_regs[0x0]
        self.pc = address + v0
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x}, {comparison_value}")
    def _skip_if_eq(self, opcode):
        x = (opcode & 0x0F00) >> 8
        comparison_value = opcode & 0x00FF
        self._skip_next_instruction_if(self.v_regs[x] == comparison_value)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x}, {comparison_value}")
    def _skip_if_not_eq(self, opcode):
        x = (opcode & 0x0F00) >> 8
        comparison_value = opcode & 0x00FF
        self._skip_next_instruction_if(self.v_regs[x] != comparison_value)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x}, V{y}")
    def _skip_if_eq_regs(self, opcode):
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        self._skip_next_instruction_if(self.v_regs[x] == self.v_regs[y])
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x}, V{y}")
    def _skip_if_not_eq_regs(self, opcode):
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        self._skip_next_instruction_if(self.v_regs[x] != self.v_regs[y])
        return locals()

    # ********** REGISTERS
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, {value}")
    def _set_vk(self, opcode):
        """set the value of one of the 16 variable registers, Vx"""
        x, value = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        self.v_regs[x] = value
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x}, {value}")
    def _add_to_vk(self, opcode):
        """add to the value already present in one of the variable registers, VF is not affected"""
        x, value = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        self.v_regs[x] = (self.v_regs[x] + value) & 0xFF    # keep only the lowest 8 bits from the result
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, V{y}")
    def _set_vx_to_vy(self, opcode):
        x, y = self._alu(opcode, alu.load)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: OR V{x}, V{y}")
    def _set_vx_or_vy(self, opcode):
        x, y = self._alu(opcode, alu.bit_or)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: AND V{x}, V{y}")
    def _set_vx_and_vy(self, opcode):
        x, y = self._alu(opcode, alu.bit_and)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: XOR V{x}, V{y}")
    def _set_vx_xor_vy(self, opcode):
        x, y = self._alu(opcode, alu.bit_xor)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x}, V{y}")
    def _add_vx_vy(self, opcode):
        x, y = self._alu(opcode, alu.add)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUB V{x}, V{y}")
    def _sub_vx_vy(self, opcode):
        x, y = self._alu(opcode, alu.sub)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHR V{x}, V{y}")
    def _shr(self, opcode):
        x, y = self._alu(opcode, alu.shr)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUBN V{x}, V{y}")
    def _subn_vx_vy(self, opcode):
        x, y = self._alu(opcode, alu.subn)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHL V{x}")
    def _shl(self, opcode):
        x, y = self._alu(opcode, alu.shl)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RND V{x}, 0x{kk:02x}")
    def _random_byte_and(self, opcode):
        x, kk = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        rnd = self.rng.randint(0, 255)
        self.v_regs[x] = rnd & kk
        self._goto_next_instruction()
        return locals()

    # ********** INDEX REGISTER AND MEMORY
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD I, 0x{value:04x}")
    def _set_idx(self, opcode):
        """set the value of the I register"""
        value = opcode & 0x0FFF
        self.idx = value
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD I, V{register}")
    def _add_to_idx(self, opcode):
        """set I = I + Vx, I is not bound to the memory size here"""
        register = (opcode & 0x0F00) >> 8
        self.idx = (self.idx + self.v_regs[register]) & 0xFFFF
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD F, V{register}")
    def _select_char(self, opcode):
        """set I to location of sprite for digit Vx"""
        register = (opcode & 0x0F00) >> 8
        self.idx = self.v_regs[register] * FONT_BYTES_PER_CHAR
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD B, V{x}")
    def _bcd_repr(self, opcode):
        """store the hundreds digit of Vx in memory at I, the tens digit at I+1, the ones digit at I+2"""
        x = (opcode & 0x0F00) >> 8
        value = self.v_regs[x]
        hundreds, tens, ones = value // 100, (value // 10) % 10, value % 10
        self.mem.write(self.idx, [hundreds, tens, ones])
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD [I], V{x}")
    def _store_vregs(self, opcode):
        """store registers V0 through Vx (included) in memory starting at location I, I is unchanged"""
        x = (opcode & 0x0F00) >> 8
        self.mem.write(self.idx, self.v_regs[:x+1])
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, [I]")
    def _load_vregs(self, opcode):
        """read registers V0 through Vx (included) from memory starting at location I, I is unchanged"""
        x = (opcode & 0x0F00) >> 8
        self.v_regs[:x+1] = self.mem.read(self.idx, x + 1)
        self._goto_next_instruction()
        return locals()

    # ********** TIMERS
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, DT")
    def _set_vx_dt(self, opcode):
        """set Vx = DT (delay timer) value"""
        x = (opcode & 0x0F00) >> 8
        self.v_regs[x] = self.dt
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD DT, V{x}")
    def _set_dt_vx(self, opcode):
        """set DT (delay timer) = Vx"""
        x = (opcode & 0x0F00) >> 8
        self.dt = self.v_regs[x]
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD ST, V{register}")
    def _set_st(self, opcode):
        """set ST = Vx"""
        register = (opcode & 0x0F00) >> 8
        self.st = self.v_regs[register]
        self._goto_next_instruction()
        return locals()

    # ********** INPUT
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKP V{x}")
    def _skip_if_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        x = (opcode & 0x0F00) >> 8
        key = self.v_regs[x] & 0xF
        self._skip_next_instruction_if(self.keys[key])
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKNP V{x}")
    def _skip_if_not_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        x = (opcode & 0x0F00) >> 8
        key = self.v_regs[x] & 0xF
        self._skip_next_instruction_if(not self.keys[key])
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, K")
    def _wait_keypress(self, opcode):
        """suspend execution until a key is pressed, the key gets stored in Vx by step()"""
        x = (opcode & 0x0F00) >> 8
        self.key_wait = True
        self.key_wait_reg = x
        self._goto_next_instruction()
        return locals()

    # ********** DISPLAY
    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CLS")
    def _clear_screen(self, opcode):
        self.gfx = [[0] * SCREEN_WIDTH for _ in range(SCREEN_HEIGHT)]
        self.draw = True
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: DRW V{x}, V{y}, {n_bytes}")
    def _to_screen(self, opcode):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        n_bytes = opcode & 0x000F
        vx, vy = self.v_regs[x], self.v_regs[y]
        collision = 0
        # step through each sprite byte, one screen row each
        for row, sprite_byte in enumerate(self.mem.read(self.idx, n_bytes)):
            y_coordinate = (vy + row) % SCREEN_HEIGHT      # wrap around vertically
            for col in range(8):
                if sprite_byte & (0x80 >> col) == 0:
                    continue
                x_coordinate = (vx + col) % SCREEN_WIDTH   # wrap around horizontally
                # sprites are XORed onto the existing screen, a pixel turned OFF is a collision
                if self.gfx[y_coordinate][x_coordinate] == 1:
                    collision = 1
                self.gfx[y_coordinate][x_coordinate] ^= 1
        self.v_regs[0xF] = collision
        self.draw = True
        self._goto_next_instruction()
        return locals()

    # ********** HELPERS
    def _alu(self, opcode, operation):
        """apply an 8XY* operation, VF is written before Vx so VF holds the result when x == 0xF"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        vx, vf = operation(self.v_regs[x], self.v_regs[y])
        if vf is not None:
            self.v_regs[0xF] = vf
        self.v_regs[x] = vx
        self._goto_next_instruction()
        return x, y

    def _goto_next_instruction(self):
        self.pc += 0x2

    def _skip_next_instruction_if(self, condition):
        self.pc += 0x4 if condition else 0x2

    def fetch(self):
        """each instruction is two bytes long, stored big-endian"""
        high, low = self.mem.read(self.pc, 2)
        return high << 8 | low

    def decode(self, opcode):
        """decode opcodes using the two-level instruction tables and return the respective handler"""
        instruction = self.instructions[(opcode & 0xF000) >> 12]
        if isinstance(instruction, OpcodeFamily):
            instruction = instruction.table.get(opcode & instruction.mask, instruction.default)
        if instruction is None:
            raise UnknownOpcodeError(opcode, self.pc)
        return instruction

    def step(self, keys):
        """record the keypad snapshot, then either resolve a pending key wait or execute one instruction"""
        if len(keys) != NUM_KEYS:
            raise ValueError(f"Expected a snapshot of {NUM_KEYS} keys, got {len(keys)}")
        self.keys = [bool(k) for k in keys]
        if self.key_wait:
            # no early exit: with several keys down the highest one wins
            for key, pressed in enumerate(self.keys):
                if pressed:
                    self.v_regs[self.key_wait_reg] = key
                    self.key_wait = False
            return
        self.opcode = self.fetch()
        instruction = self.decode(self.opcode)
        instruction(self.opcode)
