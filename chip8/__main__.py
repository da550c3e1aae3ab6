from chip8.emulator import main

main()
