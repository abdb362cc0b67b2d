"""
Visit goal arithmetic.

A customer reaches a reward each time their visit count lands on a
multiple of the business's visit goal. Pure functions, no database access.
"""


def _check_goal(visit_goal: int) -> None:
    if visit_goal is None or visit_goal < 1:
        raise ValueError(f'visit_goal must be a positive integer, got {visit_goal!r}')


def reaches_goal(visit_count: int, visit_goal: int) -> bool:
    """True when visit_count is a positive multiple of visit_goal."""
    _check_goal(visit_goal)
    return visit_count > 0 and visit_count % visit_goal == 0


def reward_number(visit_count: int, visit_goal: int) -> int:
    """How many reward cycles visit_count covers (1 at the first goal)."""
    _check_goal(visit_goal)
    return visit_count // visit_goal


def visits_until_next_reward(visit_count: int, visit_goal: int) -> int:
    """Visits still needed for the next reward; a full cycle right after one is reached."""
    _check_goal(visit_goal)
    remainder = visit_count % visit_goal
    return visit_goal if remainder == 0 else visit_goal - remainder
