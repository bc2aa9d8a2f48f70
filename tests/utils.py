OUTER = [(56.7, 83.6), (43.9, 5.8), (43.9, 10), (56.7, 83.6)]
HOLE = [(46.7, 73.6), (33.9, 5.8), (33.9, 9), (46.7, 73.6)]


def nested_collections(depth, leaf=None):
    """Build the builtin form of ``depth`` geometry collections nested inside
    each other, with ``leaf`` (a point by default) innermost"""
    if leaf is None:
        leaf = {"type": "point", "coordinates": [1, 2]}
    out = leaf
    for _ in range(depth):
        out = {"type": "geometrycollection", "geometries": [out]}
    return out
