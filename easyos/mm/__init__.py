"""Sv39 memory management and ELF loading over simulated physical memory."""