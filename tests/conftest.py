"""
Test configuration shared by every test package.

Puts ``src/`` first on the path so the suite runs against the working tree
without installing the package.
"""
import sys
from pathlib import Path

src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))
