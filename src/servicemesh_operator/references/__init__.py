"""Reference resolution between resource kinds."""

from .resolver import ENTITY_NAMES, ResolvedRef, Resolver, spec_name

__all__ = ["ENTITY_NAMES", "ResolvedRef", "Resolver", "spec_name"]
