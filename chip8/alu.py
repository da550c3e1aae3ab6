# ******************** 8XY* REGISTER/REGISTER OPERATIONS
# every operation takes the current values of Vx and Vy and returns (new Vx, new VF)
# a VF of None means the operation leaves the flag register untouched


def load(vx, vy):
    return vy, None

def bit_or(vx, vy):
    return vx | vy, None

def bit_and(vx, vy):
    return vx & vy, None

def bit_xor(vx, vy):
    return vx ^ vy, None

def add(vx, vy):
    """Vx + Vy, VF = carry"""
    total = vx + vy
    return total & 0xFF, 1 if total > 255 else 0

def sub(vx, vy):
    """Vx - Vy, VF = NOT borrow"""
    return (vx - vy) & 0xFF, 0 if vy > vx else 1

def shr(vx, vy):
    """Vy >> 1, VF = least significant bit of Vx before the shift"""
    return vy >> 1, vx & 0x1

def subn(vx, vy):
    """Vy - Vx, VF = NOT borrow"""
    return (vy - vx) & 0xFF, 0 if vx > vy else 1

def shl(vx, vy):
    """Vx << 1, VF = most significant bit of Vx before the shift"""
    return (vx << 1) & 0xFF, (vx & 0x80) >> 7
