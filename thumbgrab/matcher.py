"""Timestamp-window frame matching.

A decode run starts in ``SKIPPING``: frames earlier than
``target - skip_tolerance`` are dropped without being looked at further.
The first frame past that guard moves the run to ``SEARCHING`` (it never
goes back), where a frame is accepted once it reaches
``target - match_tolerance``. A zero target accepts the first frame.

The first acceptable frame wins, not the one closest to the target.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchState(Enum):
    SKIPPING = "skipping"
    SEARCHING = "searching"
    ACCEPTED = "accepted"


class Verdict(Enum):
    SKIP = "skip"
    REJECT = "reject"
    ACCEPT = "accept"


@dataclass
class FrameMatcher:
    target: float
    skip_tolerance: float
    match_tolerance: float
    state: MatchState = MatchState.SKIPPING
    skipped: int = 0
    rejected: int = 0

    @classmethod
    def for_profile(cls, target: float, profile) -> "FrameMatcher":
        return cls(target, profile.skip_tolerance, profile.match_tolerance)

    def evaluate(self, frame_time: float) -> Verdict:
        if self.state is MatchState.ACCEPTED:
            raise RuntimeError("matcher already accepted a frame")
        t = self.target
        if self.state is MatchState.SKIPPING:
            if t > 0 and frame_time < t - self.skip_tolerance:
                self.skipped += 1
                return Verdict.SKIP
            self.state = MatchState.SEARCHING
        if t == 0 or frame_time >= t - self.match_tolerance:
            self.state = MatchState.ACCEPTED
            return Verdict.ACCEPT
        self.rejected += 1
        return Verdict.REJECT
