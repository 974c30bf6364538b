import os
from dotenv import load_dotenv

load_dotenv()

USE_TESTNET = os.getenv("USE_TESTNET", "false").lower() in ("1", "true", "yes")
BIN_KEY = os.getenv("BINANCE_KEY")
BIN_SEC = os.getenv("BINANCE_SEC")

# Symbols to track when the top-by-volume lookup is disabled (HEDGER_TOP_SYMBOLS=0)
SYMBOLS = [
    s.strip().upper()
    for s in os.getenv("HEDGER_SYMBOLS", "BTCUSDT,ETHUSDT,BNBUSDT,SOLUSDT,XRPUSDT").split(",")
    if s.strip()
]
QUOTE_ASSET = os.getenv("HEDGER_QUOTE_ASSET", "USDT").upper()
TOP_SYMBOLS = int(os.getenv("HEDGER_TOP_SYMBOLS", "20"))

# Strategy params
EMA_PERIOD = int(os.getenv("HEDGER_EMA_PERIOD", "50"))
ORDER_SIZE_USDT = float(os.getenv("HEDGER_ORDER_SIZE_USDT", "100"))
AVERAGING_DROP_PCT = float(os.getenv("HEDGER_AVERAGING_DROP_PCT", "1.0"))
STARTING_BALANCE = float(os.getenv("HEDGER_STARTING_BALANCE", "10000"))

# Backfill pacing (keeps REST weight under the exchange limits)
TIMEFRAME = os.getenv("HEDGER_TIMEFRAME", "5m")
BACKFILL_LIMIT = int(os.getenv("HEDGER_BACKFILL_LIMIT", "200"))
BACKFILL_BATCH = int(os.getenv("HEDGER_BACKFILL_BATCH", "5"))
BACKFILL_PAUSE_SEC = float(os.getenv("HEDGER_BACKFILL_PAUSE_SEC", "1.0"))

LOG_LEVEL = os.getenv("HEDGER_LOG_LEVEL", "INFO").upper()

DEFAULT_CONFIG = {
    "emaPeriod": EMA_PERIOD,
    "orderSizeUsdt": ORDER_SIZE_USDT,
    "averagingDropPct": AVERAGING_DROP_PCT,
    "startingBalance": STARTING_BALANCE,
    "timeframe": TIMEFRAME,
    "backfillLimit": BACKFILL_LIMIT,
}

# start trading on service startup (otherwise via POST /trading/start)
AUTOSTART = os.getenv("HEDGER_AUTOSTART", "false").lower() in ("1", "true", "yes")
