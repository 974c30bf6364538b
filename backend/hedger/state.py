from .background import SymbolManager
from .config import BIN_KEY, BIN_SEC
from .exchange import make_client
from .indicators import EMAEngine
from .ledger import PositionLedger
from .strategy import StrategyEngine

# process-wide strategy core; one instance per running service
ema_engine = EMAEngine()
ledger = PositionLedger()
strategy = StrategyEngine(ema_engine, ledger)

manager = SymbolManager(strategy, lambda: make_client(BIN_KEY, BIN_SEC))
