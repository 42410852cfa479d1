"""brp - remote control for apps speaking the Bevy Remote Protocol.

The package talks JSON-RPC over HTTP to a running app, and can also start
the app itself, either for the duration of one command batch (managed mode)
or as a persistent background session (detached mode).

Usage:
    brp list
    brp get 4294967298 bevy_transform::components::transform::Transform
    brp -m 'list, wait:1, shutdown'
    brp -d
    brp --info
    brp --cleanup-logs
"""

__all__ = ['RemoteClient', 'main']


def __getattr__(name: str):
	"""Lazy import to keep `python -m brp_cli.main` free of runpy warnings."""
	if name == 'main':
		from brp_cli.main import main

		return main
	if name == 'RemoteClient':
		from brp_cli.rpc.client import RemoteClient

		return RemoteClient
	raise AttributeError(f'module {__name__!r} has no attribute {name!r}')
