"""
Configuration constants for the GeoVault core.
"""

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the package. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "GeoVault"  # Use: Name of the application, used in log messages. Type: str. Range: Any valid string.

# Security Settings
SALT_SIZE = 16  # Use: Size of the random salts (passphrase hash and vault key) in bytes. Type: int. Range: At least 16 bytes (128 bits).
HASH_SIZE = 64  # Use: Length of the derived passphrase digest in bytes (512 bits). Type: int. Range: 32 to 64 bytes.
KEY_SIZE = 32  # Use: Size of the vault encryption key in bytes. Corresponds to AES-256. Type: int. Range: 16, 24 or 32 bytes.
NONCE_SIZE = 12  # Use: Size of the AES-GCM nonce in bytes. Type: int. Range: 12 bytes (96 bits) is the recommended size for GCM.
TAG_SIZE = 16  # Use: Size of the AES-GCM authentication tag in bytes. Type: int. Range: 16 bytes (128 bits).
PBKDF2_ITERATIONS = 210000  # Use: PBKDF2-HMAC-SHA512 iterations for the passphrase hash. Type: int. Range: At least PBKDF2_MIN_ITERATIONS.
PBKDF2_MIN_ITERATIONS = 10000  # Use: Lowest iteration count accepted by CredentialManager. Type: int. Range: Positive integer.
ARGON2_TIME_COST = 2  # Use: Argon2id time cost for the vault key. Type: int. Range: Typically 1 to 10.
ARGON2_MEMORY_COST = 65536  # Use: Argon2id memory cost in KiB for the vault key. Type: int. Range: At least 8 * ARGON2_PARALLELISM; 65536 (64 MB) recommended.
ARGON2_PARALLELISM = 4  # Use: Argon2id lanes for the vault key. Type: int. Range: Typically 1 to 8.
PASSWORD_MIN_LENGTH = 8  # Use: Minimum length of the master passphrase at setup and rotation. Type: int. Range: Positive integer.

# Trusted Zone Settings
ZONE_RADIUS_MIN_METERS = 50  # Use: Smallest allowed trusted zone radius. Type: int. Range: Positive integer below ZONE_RADIUS_MAX_METERS.
ZONE_RADIUS_MAX_METERS = 5000  # Use: Largest allowed trusted zone radius. Type: int. Range: Positive integer.
ZONE_RADIUS_DEFAULT_METERS = 100  # Use: Radius suggested for new zones. Type: int. Range: ZONE_RADIUS_MIN_METERS to ZONE_RADIUS_MAX_METERS.
ZONE_DUPLICATE_DISTANCE_METERS = 50  # Use: A new zone whose center is closer than this to an existing one is rejected. Type: int. Range: Positive integer.
EARTH_RADIUS_METERS = 6371000.0  # Use: Mean Earth radius for the haversine distance. Type: float. Range: 6371000.0

# Location Sampling Settings
LOCATION_POLL_INTERVAL_SECONDS = 30  # Use: Interval between recurring location requests. Type: int. Range: Positive integer.
LOCATION_TIMEOUT_SECONDS = 10  # Use: Time the provider may take to answer a single request. Type: int. Range: Positive integer.
LOCATION_MAX_AGE_SECONDS = 60  # Use: Oldest cached fix the provider may return for a request. Type: int. Range: 0 (always fresh) or positive integer.
LOCATION_HIGH_ACCURACY = True  # Use: Whether high-accuracy positioning is requested from the provider. Type: bool. Range: True or False.
LOCATION_STALENESS_CEILING_SECONDS = 90  # Use: Age after which the last sample counts as unknown location. Type: int. Range: At least LOCATION_POLL_INTERVAL_SECONDS.
POLL_INTERVAL = LOCATION_POLL_INTERVAL_SECONDS * 1000  # Use: Recurring poll interval in milliseconds, for QTimer. Type: int. Range: Derived value.

# Persistence Settings
SETTINGS_RECORD_KEY = "geovault_settings"  # Use: Key of the settings record in the key-value store. Type: str. Range: Any valid key.
VAULT_RECORD_KEY = "geovault_vault"  # Use: Key of the encrypted vault record in the key-value store. Type: str. Range: Any valid key.
VAULT_MAGIC_BYTES = b"GVLT"  # Use: Header identifying a vault record. Type: bytes. Range: 4 bytes.
VAULT_FORMAT_VERSION = 1  # Use: Version of the vault record layout. Type: int. Range: Positive integer.
CONFIG_DIR_NAME = ".geovault"  # Use: Hidden directory in the user's home holding the records. Type: str. Range: Any valid directory name.
RECORD_FILE_SUFFIX = ".dat"  # Use: File extension used by the file-backed key-value store. Type: str. Range: Any valid suffix.

# Logging
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'  # Use: Format passed to logging.basicConfig. Type: str. Range: Any logging format string.
