"""Configuration constants for smolder."""

# Project-local data directory and database file
DATA_DIR_NAME = ".smolder"
DEFAULT_DB_FILE = "smolder.db"
DATABASE_URL_ENV = "SMOLDER_DATABASE_URL"

# Foundry project layout
FOUNDRY_CONFIG = "foundry.toml"
OUT_DIR_NAME = "out"
SRC_DIR_NAME = "src"
BROADCAST_DIR_NAME = "broadcast"
BROADCAST_FILE_NAME = "run-latest.json"
BUILD_INFO_DIR_NAME = "build-info"
METADATA_SUFFIX = ".metadata"

# Broadcast transaction type that denotes contract creation
CREATE_TRANSACTION_TYPE = "CREATE"

# Bytecode values forge emits for contracts that cannot be deployed
PLACEHOLDER_BYTECODE = {"", "0x", "0x0"}

# Bounded connection pool shared by concurrent registry callers
DEFAULT_POOL_SIZE = 5

# Seconds before a JSON-RPC request is abandoned
RPC_TIMEOUT = 30
