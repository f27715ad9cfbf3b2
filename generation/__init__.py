"""Document generation: fingerprints, the bundle cache and the generator."""

from .document_cache import CacheEntry, CacheStats, DocumentCache
from .document_generator import DOCUMENT_PROFILES, DocumentGenerator, DocumentProfile
from .fingerprint import RequestFingerprint, compute_fingerprint

__all__ = [
    "CacheEntry",
    "CacheStats",
    "DocumentCache",
    "DOCUMENT_PROFILES",
    "DocumentGenerator",
    "DocumentProfile",
    "RequestFingerprint",
    "compute_fingerprint",
]
