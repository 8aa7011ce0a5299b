import math


def _midpoint(a, b):
    return ((a[0]+b[0]) / 2.0, (a[1]+b[1]) / 2.0)


def _toward(p, v, alpha):
    return (p[0] + alpha*(v[0]-p[0]), p[1] + alpha*(v[1]-p[1]))


def deflection(prev, cur, nxt):
    """Turning angle at `cur` in degrees (0 = straight on, 180 = reversal)."""
    ax, ay = cur[0]-prev[0], cur[1]-prev[1]
    bx, by = nxt[0]-cur[0], nxt[1]-cur[1]
    return abs(math.degrees(math.atan2(ax*by - ay*bx, ax*bx + ay*by)))


def polygon_commands(vertices):
    if len(vertices) < 3:
        return []
    cmds = [("M", [tuple(map(float, vertices[0]))])]
    for v in vertices[1:]:
        cmds.append(("L", [tuple(map(float, v))]))
    cmds.append(("Z", []))
    return cmds


def curve_commands(vertices, corner_angle=70.0):
    """
    Smooth a closed polygon into cubic Béziers.

    Each vertex becomes one segment running between the midpoints of its two
    adjacent edges. Vertices turning by `corner_angle` or more stay sharp
    corners; the rest get control points pulled toward the vertex by alpha,
    which grows from 0.55 for gentle bends to 1.0 at the corner limit.
    """
    n = len(vertices)
    if n < 3:
        return []
    mids = [_midpoint(vertices[i], vertices[(i+1) % n]) for i in range(n)]
    cmds = [("M", [mids[-1]])]
    for i in range(n):
        v = tuple(map(float, vertices[i]))
        m_in, m_out = mids[i-1], mids[i]
        theta = deflection(vertices[i-1], vertices[i], vertices[(i+1) % n])
        if theta >= corner_angle:
            cmds.append(("L", [v]))
            cmds.append(("L", [m_out]))
        else:
            alpha = min(1.0, max(0.55, theta / corner_angle))
            cmds.append(("C", [_toward(m_in, v, alpha), _toward(m_out, v, alpha), m_out]))
    cmds.append(("Z", []))
    return cmds


def fit_contour(vertices, use_curves=True, corner_angle=70.0):
    if use_curves:
        return curve_commands(vertices, corner_angle)
    return polygon_commands(vertices)


def node_count(cmds):
    return sum(1 for op, _ in cmds if op in ("L", "C"))
