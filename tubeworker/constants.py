"""Constants used throughout the tubeworker codebase."""

# Broker connection
DEFAULT_BEANSTALK_URL = "beanstalk://localhost/"
DEFAULT_BEANSTALK_PORT = 11300
BEANSTALK_URL_ENV = "BEANSTALK_URL"

# Enqueue defaults, matching beanstalkd's conventional values
DEFAULT_PRIORITY = 65536
DEFAULT_DELAY = 0
DEFAULT_TTR = 120

# The engine deadline sits this many seconds inside the broker's time-to-run
DEADLINE_MARGIN_SECONDS = 1

LOG_LEVEL_ENV = "TUBEWORKER_LOG_LEVEL"
LOGGER_NAME = "tubeworker"
