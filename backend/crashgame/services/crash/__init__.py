"""Crash round domain services: fairness, quotas, risk, bets and timing.

This package holds the round lifecycle engine. Nothing in here imports
Flask or Socket.IO; the transport, account ledger and round archive are
handed to :class:`RoundEngine` by the application factory, keeping
transport concerns separated from core game mechanics.
"""

from .errors import CrashGameError, InsufficientFunds, TimerInvariantViolation, ValidationError
from .engine import RoundEngine, next_transition
from .fairness import compute_crash_point, generate_seed, seed_digest, verify_crash_point
from .rounds import CRASHED, RUNNING, WAITING, Bet, Player, Round

__all__ = [
    'Bet',
    'CRASHED',
    'CrashGameError',
    'InsufficientFunds',
    'Player',
    'RUNNING',
    'Round',
    'RoundEngine',
    'TimerInvariantViolation',
    'ValidationError',
    'WAITING',
    'compute_crash_point',
    'generate_seed',
    'next_transition',
    'seed_digest',
    'verify_crash_point',
]
