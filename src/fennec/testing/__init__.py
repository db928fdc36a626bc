"""Test utilities for fennec applications.

    from fennec.testing import TestClient
"""

from fennec.testing.client import TestClient

__all__ = ["TestClient"]
