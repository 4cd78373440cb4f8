"""PLIC interrupt-controller model and board exit device on a memory-mapped bus."""