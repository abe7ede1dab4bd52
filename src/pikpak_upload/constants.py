# Transfer defaults
DEFAULT_CHUNK_SIZE = 256 * 1024  # 256 KB floor
MAX_PARTS = 10000
DEFAULT_CONCURRENCY = 16
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF = 0.5  # seconds
DEFAULT_TIMEOUT = 30  # seconds

# Client identity
CLIENT_ID = "YNxT9w7GMdWvEOKa"
CLIENT_VERSION = "1.21.0"
CLIENT_VERSION_CODE = "10083"
PACKAGE_NAME = "com.pikcloud.pikpak"
OSS_USER_AGENT = (
    "aliyun-sdk-android/2.9.5(Linux/Android 11/ONEPLUS%20A6000;RKQ1.201217.002)"
)

# Endpoints
DRIVE_FILES_URL = "https://api-drive.mypikpak.com/drive/v1/files"
CAPTCHA_INIT_URL = "https://user.mypikpak.com/v1/shield/captcha/init"
CAPTCHA_REDIRECT_URI = "https://api.mypikpak.com/v1/auth/callback"
CREATE_FILE_ACTION = "POST:/drive/v1/files"

# Drive file phases
PHASE_COMPLETE = "PHASE_TYPE_COMPLETE"
PHASE_PENDING = "PHASE_TYPE_PENDING"
KIND_FILE = "drive#file"

# Captcha
CAPTCHA_SIGN_VERSION = "1."
CAPTCHA_ALG_MD5 = "md5"
CAPTCHA_INVALID_CODE = 9
CAPTCHA_INVALID_ERROR = "captcha_invalid"

# Object store
OSS_HEADER_PREFIX = "x-oss-"
OSS_CONTENT_TYPE = "application/octet-stream"
