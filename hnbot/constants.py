"""
Constants and default configuration values for the HN Slack bot.
"""

# Upstream APIs
HN_API_BASE = "https://hacker-news.firebaseio.com/v0"
HN_ITEM_URL_PREFIX = "https://news.ycombinator.com/item?id="
SLACK_API_BASE = "https://slack.com/api"
SLACK_ORIGIN = "https://api.slack.com/"
STOCK_QUOTE_URL = "http://download.finance.yahoo.com/d/quotes.csv?s={symbol}&f=nsl1op&e=.csv"

# Pipeline
SCORE_THRESHOLD = 500  # 100 is typical, 500 is rare, 20 is too low
WORKER_COUNT = 100
STORY_FETCH_TIMEOUT = 2.0  # Seconds per story round trip
TOP_STORIES_TIMEOUT = 10.0

# Background refresh
REFRESH_INTERVAL = 900  # 15 minutes

# Commands
DEFAULT_NEWS_COUNT = 3
MAX_NEWS_COUNT = 5
DEFAULT_TOP_TIMEOUT = 5  # Seconds
MAX_TOP_TIMEOUT = 60
ALLOWED_CHANNELS = ("random", "test-chamber")

# Websocket
WS_PING_INTERVAL = 20.0
WS_PING_TIMEOUT = 10.0
WS_CLOSE_TIMEOUT = 5.0
