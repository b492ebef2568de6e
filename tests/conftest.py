import sys
from pathlib import Path

# Make the src/ layout importable when the package is not installed
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))
