"""Single-processor cell that masks interrupts while borrowed."""