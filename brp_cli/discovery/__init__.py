from brp_cli.discovery.service import AppDiscovery, MetadataCache, find_binary
from brp_cli.discovery.views import BinaryInfo, ResolvedApp

__all__ = ['AppDiscovery', 'MetadataCache', 'find_binary', 'BinaryInfo', 'ResolvedApp']
