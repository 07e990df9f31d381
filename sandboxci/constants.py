# Archive naming: <source basename>_compressed_<epoch millis>.gz
ARCHIVE_INFIX = "_compressed_"
ARCHIVE_SUFFIX = ".gz"
PARTIAL_SUFFIX = ".partial"

# gzip level for both per-file payloads and the outer manifest
COMPRESS_LEVEL = 9

MANIFEST_ENCODING = "utf-8"

DEFAULT_EXTRACT_DIRNAME = "extracted"
DEFAULT_OUTPUT_DIRNAME = "bbOut"
DEFAULT_TEST_RUNNER = "forge"

# Webhook
WEBHOOK_TASK_SIMULATE_TEST = "simulate_test"
WEBHOOK_TASK_AUTO_VERIFICATION = "auto_verification"
ARTIFACT_CONTENT_TYPE = "application/gzip"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

DEFAULT_API_BASE_URL = "https://api.buildbear.io"
SANDBOX_ENDPOINT = "/v1/buildbear-sandbox"
WEBHOOK_ENDPOINT = "/ci/webhook"
DEFAULT_HTTP_TIMEOUT = 30.0

# Liveness polling
LIVENESS_MAX_RETRIES = 10
LIVENESS_DELAY_SEC = 5.0

READ_BLOCK_SIZE = 1 << 16

# Deployment logs and compiler output of the contract toolchain:
# broadcast/<script>/<chain id>/run-latest.json and out/**/<Contract>.json
BROADCAST_DIRNAME = "broadcast"
BUILD_OUT_DIRNAME = "out"
RUN_LATEST_FILENAME = "run-latest.json"
DEFAULT_LANGUAGE = "Solidity"
