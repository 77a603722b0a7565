"""Root conftest: make the ``volcanoml`` package importable without installing.

The package lives one level down (``volcanoml/volcanoml``), so the repo root
alone is not enough on ``sys.path``.
"""

import os
import sys

_PKG_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "volcanoml")
if _PKG_ROOT not in sys.path:
    sys.path.insert(0, _PKG_ROOT)
