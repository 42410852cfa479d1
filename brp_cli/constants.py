"""Constants shared across the CLI."""

BIN_NAME = 'brp'

# Port the remote plugin listens on unless the app is told otherwise
DEFAULT_REMOTE_PORT = 15702

# Managed instances get a random port from this range, disjoint from the default
MANAGED_PORT_MIN = 15703
MANAGED_PORT_MAX = 16702
MANAGED_PORT_ATTEMPTS = 50

# Polling
POLL_INTERVAL_MS = 50
MANAGED_START_TIMEOUT_SECS = 10.0
APP_READY_TIMEOUT_SECS = 5.0
DETACHED_READY_TIMEOUT_SECS = 30.0
DETACHED_POLL_INTERVAL_MS = 100

# Concurrent per-type queries issued at once when listing every entity
LIST_ENTITIES_BATCH_SIZE = 10

# Extra ports probed when the default port is requested
NEARBY_PORT_SCAN = 5

# Environment variable pointing the target at its project root (assets are resolved from it)
PROJECT_ROOT_ENV = 'CARGO_MANIFEST_DIR'

# Remote protocol methods
BEVY_QUERY = 'bevy/query'
BEVY_LIST = 'bevy/list'
BEVY_LIST_RESOURCES = 'bevy/list_resources'
BEVY_GET = 'bevy/get'
BEVY_GET_RESOURCE = 'bevy/get_resource'
BEVY_INSERT = 'bevy/insert'
BEVY_INSERT_RESOURCE = 'bevy/insert_resource'
BEVY_SPAWN = 'bevy/spawn'
BEVY_DESTROY = 'bevy/destroy'
BEVY_REMOVE = 'bevy/remove'
BEVY_REMOVE_RESOURCE = 'bevy/remove_resource'
BEVY_MUTATE_COMPONENT = 'bevy/mutate_component'
BEVY_MUTATE_RESOURCE = 'bevy/mutate_resource'
BEVY_REPARENT = 'bevy/reparent'
BEVY_REGISTRY_SCHEMA = 'bevy/registry/schema'
RPC_DISCOVER = 'rpc.discover'

# Streaming variants
BEVY_GET_WATCH = 'bevy/get+watch'
BEVY_LIST_WATCH = 'bevy/list+watch'

# Methods provided by the companion app-side plugin
BRP_TOOL_SCREENSHOT = 'brp_tool/screenshot'
BRP_TOOL_SHUTDOWN = 'brp_tool/shutdown'

# Lightweight call used to check that an app answers on a port
LIVENESS_METHOD = BEVY_LIST

# Shared prefix of every detached-session file (descriptors and logs)
SESSION_PREFIX = f'{BIN_NAME}_session'
