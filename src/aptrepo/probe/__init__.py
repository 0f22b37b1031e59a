"""Repository metadata probing: local cache plus network reachability."""

from .cache import cache_file_name, cache_lookup, cache_path, read_release_fields
from .models import ProbeResult, Reachability, ReleaseFields
from .network import Endpoint, check_reachable, parse_endpoint
from .worker import MetadataProbe, ProbeMailbox

__all__ = [
    "Endpoint",
    "MetadataProbe",
    "ProbeMailbox",
    "ProbeResult",
    "Reachability",
    "ReleaseFields",
    "cache_file_name",
    "cache_lookup",
    "cache_path",
    "check_reachable",
    "parse_endpoint",
    "read_release_fields",
]
