# iloc/utils/orientation.py

"""
Device orientation helpers for sensor sources.
"""

import math
from typing import Sequence


def rotation_matrix_from_vector(values: Sequence[float]) -> list[float]:
    """
    Convert a rotation vector to a row-major 3x3 rotation matrix.

    Parameters
    ----------
    values
        Rotation vector (x, y, z[, w[, accuracy]]), i.e. the vector part of a
        unit quaternion. When w is omitted it is recovered from the unit norm.

    Returns
    -------
    list[float]
        Nine matrix entries, row-major.
    """
    q1, q2, q3 = float(values[0]), float(values[1]), float(values[2])
    if len(values) >= 4:
        q0 = float(values[3])
    else:
        q0 = 1.0 - q1 * q1 - q2 * q2 - q3 * q3
        q0 = math.sqrt(q0) if q0 > 0 else 0.0

    sq_q1 = 2 * q1 * q1
    sq_q2 = 2 * q2 * q2
    sq_q3 = 2 * q3 * q3
    q1_q2 = 2 * q1 * q2
    q3_q0 = 2 * q3 * q0
    q1_q3 = 2 * q1 * q3
    q2_q0 = 2 * q2 * q0
    q2_q3 = 2 * q2 * q3
    q1_q0 = 2 * q1 * q0

    return [
        1 - sq_q2 - sq_q3, q1_q2 - q3_q0,     q1_q3 + q2_q0,
        q1_q2 + q3_q0,     1 - sq_q1 - sq_q3, q2_q3 - q1_q0,
        q1_q3 - q2_q0,     q2_q3 + q1_q0,     1 - sq_q1 - sq_q2,
    ]


def azimuth_from_rotation_vector(values: Sequence[float]) -> float:
    """
    Azimuth (radians, in [-pi, pi]) of a device orientation given as a
    rotation vector.

    This is the first component of the (azimuth, pitch, roll) decomposition
    of the rotation matrix: atan2(R[0][1], R[1][1]).
    """
    r = rotation_matrix_from_vector(values)
    return math.atan2(r[1], r[4])
