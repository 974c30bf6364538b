import sys
from pathlib import Path

# make the `hedger` package importable without installing the project
BACKEND = Path(__file__).resolve().parents[1] / "backend"
backend_str = str(BACKEND)
if backend_str not in sys.path:
    sys.path.insert(0, backend_str)
