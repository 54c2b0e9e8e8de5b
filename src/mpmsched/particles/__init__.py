"""Particle arena and block-to-particle index.

Exports all public symbols from :mod:`mpmsched.particles.store` and
:mod:`mpmsched.particles.index`.
"""

from mpmsched.particles.index import ParticleIndex
from mpmsched.particles.store import ParticleStore

__all__ = [
    "ParticleIndex",
    "ParticleStore",
]
