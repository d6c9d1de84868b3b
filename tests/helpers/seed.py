# tests/helpers/seed.py
# Baseline master data ids inserted by tests/conftest.py for every test.

WH1, WH2, WH3 = 1, 2, 3
LOC_W1_A, LOC_W1_B, LOC_W2_A = 11, 12, 21
P1, P2, P3 = 101, 102, 103
