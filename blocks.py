class MaterialNotFound(KeyError):
    """Raised when a material name is not in the block catalog."""


class Block(object):
    name = None

class DirtWithGrass(Block):
    name = 'Grass'

class Dirt(Block):
    name = 'Dirt'

class Snow(Block):
    name = 'Snow'

class Stone(Block):
    name = 'Stone'


BLOCKS = [
    DirtWithGrass,
    Dirt,
    Snow,
    Stone,
]

# 0 is air; catalog ids start at 1 in registration order.
i = 1
BLOCK_ID = {}
for x in BLOCKS:
    BLOCK_ID[x.name] = i
    i+=1
BLOCK_NAME = {v: k for k, v in BLOCK_ID.items()}


def resolve_material(name, catalog=None):
    """Map a material name to its block id in `catalog` (BLOCK_ID by default)."""
    catalog = BLOCK_ID if catalog is None else catalog
    try:
        return catalog[name]
    except KeyError:
        raise MaterialNotFound(name) from None
