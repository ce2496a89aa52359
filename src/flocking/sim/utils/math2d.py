from __future__ import annotations

import math
from typing import Optional, Tuple

from pygame.math import Vector2

TWO_PI = 2.0 * math.pi
HALF_PI = 0.5 * math.pi
THREE_HALVES_PI = 1.5 * math.pi

_SIN_B = 4.0 / math.pi
_SIN_C = -4.0 / (math.pi * math.pi)
_SIN_P = 0.225


def local_coordinates(observer: Vector2, heading: float, other: Vector2) -> Tuple[float, float]:
    """Rotate ``other - observer`` into the observer's frame, where the heading is local +Y."""
    dx = other.x - observer.x
    dy = other.y - observer.y
    cos_h = math.cos(heading)
    sin_h = math.sin(heading)
    return dx * cos_h + dy * sin_h, -dx * sin_h + dy * cos_h


def angle_to_point(x: float, y: float) -> float:
    if x == 0.0:
        if y > 0.0:
            return HALF_PI
        if y < 0.0:
            return -HALF_PI
        return 0.0
    angle = math.atan(y / x)
    if x < 0.0:
        return angle + math.pi
    return angle


def visibility(vision_angle: float, local_x: float, local_y: float) -> Tuple[bool, float]:
    """Return ``(is_visible, angle)`` for a point given in the observer's local frame.

    ``vision_angle`` is the half-angle of the cone on each side of the heading.
    The bearing is measured from local +Y, so a zero vision angle sees nothing
    and a half-angle of pi or more sees every direction.
    """
    angle = angle_to_point(local_x, local_y)
    bearing = unwrap(angle - HALF_PI)
    if bearing > math.pi:
        bearing = TWO_PI - bearing
    if vision_angle >= math.pi:
        return True, angle
    return bearing < vision_angle, angle


def unwrap(angle: float, modulus: float = TWO_PI) -> float:
    if 0.0 <= angle < modulus:
        return angle
    wrapped = angle - math.floor(angle / modulus) * modulus
    # tiny negative inputs round up to exactly ``modulus``
    if wrapped >= modulus or wrapped < 0.0:
        return 0.0
    return wrapped


def shortest_angle(current: float, target: float) -> float:
    """Signed turn in (-pi, pi] that takes ``current`` onto ``target``."""
    diff = unwrap(target - current)
    if diff > math.pi:
        diff -= TWO_PI
    return diff


def squared_distance(p1: Vector2, p2: Vector2, max_radius: Optional[float] = None) -> Optional[float]:
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    if max_radius is not None and (abs(dx) > max_radius or abs(dy) > max_radius):
        return None
    return dx * dx + dy * dy


def fast_sin(x: float) -> float:
    x = (x + math.pi) % TWO_PI - math.pi
    y = _SIN_B * x + _SIN_C * x * abs(x)
    return _SIN_P * (y * abs(y) - y) + y


def fast_cos(x: float) -> float:
    return fast_sin(x + HALF_PI)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
