"""Lifecycle phase classification from observed pods."""

from typing import Sized

from redis_operator.state import LifecyclePhase


def classify(
    desired_leaders: int,
    desired_followers_per_leader: int,
    leader_snapshot: Sized,
    follower_snapshot: Sized,
    previous_phase: LifecyclePhase | None,
) -> LifecyclePhase:
    """Infer the cluster's lifecycle phase.

    Rules are evaluated in order, first match wins:

    1. No leader pods: ``Initializing`` if a bootstrap was already started
       (previous phase is ``Initializing``), otherwise ``NotExists``.
    2. Exactly the desired leader count and exactly
       ``leaders * followers_per_leader`` followers: ``Ready``.
    3. Anything else: ``Unknown``.

    Pure function; the caller supplies the previous phase and logs the result.
    """
    leaders = len(leader_snapshot)

    if leaders == 0:
        if previous_phase == LifecyclePhase.INITIALIZING:
            return LifecyclePhase.INITIALIZING
        return LifecyclePhase.NOT_EXISTS

    expected_followers = desired_leaders * desired_followers_per_leader
    if leaders == desired_leaders and len(follower_snapshot) == expected_followers:
        return LifecyclePhase.READY

    return LifecyclePhase.UNKNOWN
