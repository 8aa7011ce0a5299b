from math import hypot


def perp_dist(p, a, b):
    ax, ay = a; bx, by = b; px, py = p
    dx, dy = bx-ax, by-ay
    if dx==dy==0:
        return hypot(px-ax, py-ay)
    t = ((px-ax)*dx + (py-ay)*dy) / (dx*dx + dy*dy)
    t = max(0, min(1, t))
    cx, cy = (ax + t*dx, ay + t*dy)
    return hypot(px-cx, py-cy)


def rdp(points, epsilon):
    # Ramer–Douglas–Peucker for polyline, explicit stack so long contours
    # can't hit the recursion limit
    if len(points) < 3:
        return list(points)
    keep = [False] * len(points)
    keep[0] = keep[-1] = True
    stack = [(0, len(points)-1)]
    while stack:
        lo, hi = stack.pop()
        max_d, idx = 0.0, 0
        for i in range(lo+1, hi):
            d = perp_dist(points[i], points[lo], points[hi])
            if d > max_d:
                idx, max_d = i, d
        if max_d > epsilon:
            keep[idx] = True
            stack.append((idx, hi))
            stack.append((lo, idx))
    return [p for p, k in zip(points, keep) if k]


def corner_points(points):
    """Drop lattice points that sit in the middle of a straight run."""
    n = len(points)
    out = []
    for i in range(n):
        px, py = points[i-1]
        cx, cy = points[i]
        nx, ny = points[(i+1) % n]
        if (cx-px, cy-py) != (nx-cx, ny-cy):
            out.append(points[i])
    return out


def simplify_contour(points, epsilon):
    """
    Simplify a closed lattice contour.

    The ring is opened at its first point (always the top-left corner of the
    region) and closed again after RDP. Never returns fewer than three
    vertices; tiny shapes fall back to their raw corners.
    """
    corners = corner_points(points)
    if len(corners) <= 3:
        return corners
    ring = corners + [corners[0]]
    simp = rdp(ring, epsilon)[:-1]
    if len(simp) < 3:
        return corners
    return simp
